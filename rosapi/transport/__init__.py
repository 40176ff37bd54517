"""Byte stream transports for the RouterOS API client."""

from .base import Transport
from .tcp import TcpTransport

__all__ = [
    "Transport",
    "TcpTransport",
]
