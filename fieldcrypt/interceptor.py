"""
Field encryption interceptor.

Sits in the SOAP handler chain on both ends of an exchange. On the way out it
encrypts the target field with the destination's public key; on the way in it
decrypts it with the local node's private key. Every other message, and every
other field, passes through untouched.
"""

import base64
import binascii
import time
from dataclasses import dataclass
from enum import Enum

from lxml import etree

from fieldcrypt.cache import KeyCache
from fieldcrypt.config import Settings, get_settings
from fieldcrypt.crypto import AsymmetricCipher
from fieldcrypt.errors import CryptoError, InterceptorError, ProtocolError
from fieldcrypt.keys import KeyResolver
from fieldcrypt.logging import exchange_context, exchange_id_var, get_logger, setup_logging
from fieldcrypt.message import FieldLocator, FieldNode, SOAPMessage

logger = get_logger(__name__)

Operation = str | etree.QName | None


class Direction(str, Enum):
    """Which way a message is travelling through the local pipeline."""
    OUTBOUND = "outbound"
    INBOUND = "inbound"


@dataclass
class InterceptResult:
    """Outcome of one interceptor pass."""
    message: SOAPMessage | None
    error: InterceptorError | None = None
    transformed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class EncryptionInterceptor:
    """Encrypts or decrypts the configured field of the configured operation."""

    # Processes all header blocks
    headers = None

    def __init__(
        self,
        settings: Settings,
        resolver: KeyResolver | None = None,
        cipher: AsymmetricCipher | None = None,
        locator: FieldLocator | None = None,
    ):
        self.settings = settings
        self.target = settings.target

        if resolver is None:
            cache = None
            if settings.key_cache_ttl > 0:
                cache = KeyCache(
                    max_size=settings.key_cache_size,
                    default_ttl=settings.key_cache_ttl,
                )
            resolver = KeyResolver(settings.keys_dir, cache)

        self.resolver = resolver
        self.cipher = cipher or AsymmetricCipher(settings.cipher_padding)
        self.locator = locator or FieldLocator()

    @classmethod
    def from_environment(cls) -> "EncryptionInterceptor":
        """Build an interceptor from FIELDCRYPT_* settings and configure logging."""
        settings = get_settings()
        setup_logging(json_output=settings.log_json, level=settings.log_level)
        return cls(settings)

    def handle(
        self,
        direction: Direction | str,
        message: SOAPMessage,
        operation: Operation,
    ) -> InterceptResult:
        """Run one pass over a message.

        Log lines of the pass share one exchange ID, reusing the caller's if
        one is already bound.

        Returns:
            InterceptResult holding either the (possibly rewritten) message or
            the error that aborted the pass
        """
        start = time.monotonic()

        try:
            direction = Direction(direction)
        except ValueError:
            error = ProtocolError(f"Unknown message direction: {direction!r}")
            return self._abort(error, operation, str(direction))

        with exchange_context(exchange_id_var.get(), peer=self._peer(direction)):
            try:
                transformed = self._process(direction, message, operation)
            except InterceptorError as e:
                return self._abort(e, operation, direction.value)

            duration_ms = (time.monotonic() - start) * 1000
            if transformed:
                logger.info(
                    "Field encrypted" if direction is Direction.OUTBOUND else "Field decrypted",
                    operation=self.target.operation,
                    field=self.target.field,
                    direction=direction.value,
                    duration_ms=round(duration_ms, 2),
                )
            else:
                logger.debug(
                    "Message passed through",
                    operation=str(operation),
                    direction=direction.value,
                )
        return InterceptResult(message=message, transformed=transformed)

    def _abort(self, error: InterceptorError, operation: Operation, direction: str) -> InterceptResult:
        logger.error(
            "Field transform aborted",
            operation=str(operation),
            direction=direction,
            error_kind=error.kind.value,
            error=error.message,
        )
        return InterceptResult(message=None, error=error)

    def on_message(
        self,
        direction: Direction | str,
        message: SOAPMessage,
        operation: Operation,
    ) -> SOAPMessage:
        """Pipeline hook for normal messages.

        Raises:
            InterceptorError: The pass was aborted; the exchange must fail
        """
        result = self.handle(direction, message, operation)
        if result.error is not None:
            raise result.error
        return result.message

    def on_fault(
        self,
        direction: Direction | str,
        message: SOAPMessage,
        operation: Operation = None,
    ) -> SOAPMessage:
        """Pipeline hook for fault messages; faults are never transformed."""
        return message

    def close(self, context=None) -> None:
        """Called when the exchange completes; nothing to clean up."""

    def _process(
        self,
        direction: Direction,
        message: SOAPMessage,
        operation: Operation,
    ) -> bool:
        if message.is_fault:
            return False

        node = self.locator.locate(message, operation, self.target)
        if node is None:
            return False

        if direction is Direction.OUTBOUND:
            key = self.resolver.resolve_public_key(self.settings.destination)
            result = self.cipher.encrypt(key, _decode_field(node))
        else:
            key = self.resolver.resolve_private_key(
                self.settings.sender,
                self.settings.keystore_password.get_secret_value(),
            )
            result = self.cipher.decrypt(key, _decode_field(node))

        node.value = base64.b64encode(result).decode("ascii")
        return True

    def _peer(self, direction: Direction) -> str:
        if direction is Direction.OUTBOUND:
            return self.settings.destination
        return self.settings.sender


def _decode_field(node: FieldNode) -> bytes:
    # Base64 in XML text may be line-wrapped
    text = "".join(node.value.split())
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError(f"Field {node.name} is not valid base64: {e}") from e
