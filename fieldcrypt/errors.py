"""
Exception classes for the field encryption interceptor.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of reasons an exchange can be aborted."""
    PROTOCOL = "protocol"            # Message lacks expected structure
    CONFIGURATION = "configuration"  # Key resources missing or unusable
    CRYPTO = "crypto"                # Cipher rejected the input


class InterceptorError(Exception):
    """Base exception for interceptor errors."""

    kind: ErrorKind

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ProtocolError(InterceptorError):
    """Message has no body, no operation wrapper or no operation metadata."""
    kind = ErrorKind.PROTOCOL


class ConfigurationError(InterceptorError):
    """Certificate or keystore missing, unreadable, or locked with another secret."""
    kind = ErrorKind.CONFIGURATION


class CryptoError(InterceptorError):
    """Cipher primitive rejected the payload or failed internally."""
    kind = ErrorKind.CRYPTO
