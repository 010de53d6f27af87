"""Uniform HTTP boundary to the chat, transcription and speech services."""

from dijiang.gateway.client import ServiceGateway
from dijiang.gateway.types import GatewayError, GatewayErrorKind

__all__ = ["GatewayError", "GatewayErrorKind", "ServiceGateway"]
