"""Typed failures raised by the service gateway."""

from enum import Enum


class GatewayErrorKind(str, Enum):
    """Why a remote call did not produce a usable result."""

    TRANSPORT = "transport"
    SERVICE_REJECTED = "service_rejected"
    MALFORMED_RESPONSE = "malformed_response"


class GatewayError(Exception):
    """A remote call failed. ``message`` is safe to show to the user."""

    def __init__(
        self,
        kind: GatewayErrorKind,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"GatewayError(kind={self.kind.value!r}, message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )
