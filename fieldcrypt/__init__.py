"""
fieldcrypt - Selective field encryption for SOAP message pipelines.

Encrypts one parameter of one operation (by default the ``creditCardNr`` of
``buyCart``) end-to-end: the sender encrypts it for the recipient's
certificate, and only the recipient's private key can restore it.
"""

from fieldcrypt.errors import (
    ErrorKind,
    InterceptorError,
    ProtocolError,
    ConfigurationError,
    CryptoError,
)
from fieldcrypt.config import (
    Settings,
    TargetSpec,
    get_settings,
    load_settings,
)
from fieldcrypt.crypto import (
    AsymmetricCipher,
    PaddingScheme,
)
from fieldcrypt.cache import KeyCache
from fieldcrypt.keys import KeyResolver
from fieldcrypt.message import (
    FieldLocator,
    FieldNode,
    SOAPMessage,
)
from fieldcrypt.interceptor import (
    Direction,
    EncryptionInterceptor,
    InterceptResult,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ErrorKind",
    "InterceptorError",
    "ProtocolError",
    "ConfigurationError",
    "CryptoError",
    # Config
    "Settings",
    "TargetSpec",
    "get_settings",
    "load_settings",
    # Crypto
    "AsymmetricCipher",
    "PaddingScheme",
    # Keys
    "KeyCache",
    "KeyResolver",
    # Messages
    "FieldLocator",
    "FieldNode",
    "SOAPMessage",
    # Interceptor
    "Direction",
    "EncryptionInterceptor",
    "InterceptResult",
]
