"""Dijiang — voice and text chat session controller for a remote persona."""

__version__ = "0.1.0"
