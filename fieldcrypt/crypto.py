"""Asymmetric cipher for single-field payloads.

Wraps RSA encryption from the ``cryptography`` library behind a stateless
call boundary:

- ``encrypt(public_key, plaintext) -> ciphertext``
- ``decrypt(private_key, ciphertext) -> plaintext``

Inputs that do not fit in one RSA block are rejected with CryptoError
instead of being truncated or split. Base64 handling is left to the caller.
"""

from enum import Enum
from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from fieldcrypt.errors import CryptoError


class PaddingScheme(str, Enum):
    """Supported RSA padding schemes."""
    PKCS1V15 = "pkcs1v15"        # Java "RSA" / RSA/ECB/PKCS1Padding
    OAEP_SHA1 = "oaep-sha1"      # RSA/ECB/OAEPWithSHA-1AndMGF1Padding
    OAEP_SHA256 = "oaep-sha256"


# PKCS#1 v1.5 encryption padding overhead in bytes
_PKCS1V15_OVERHEAD = 11


class AsymmetricCipher:
    """Handles RSA encryption of a single field value."""

    def __init__(self, scheme: PaddingScheme = PaddingScheme.PKCS1V15):
        self.scheme = PaddingScheme(scheme)

    def encrypt(self, public_key: Any, plaintext: bytes) -> bytes:
        """Encrypt plaintext for the holder of the matching private key.

        Args:
            public_key: RSA public key of the recipient
            plaintext: Raw bytes to encrypt

        Returns:
            Ciphertext, exactly one modulus length long

        Raises:
            CryptoError: Wrong key type or payload larger than max_payload()
        """
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise CryptoError(f"Unsupported public key type: {type(public_key).__name__}")

        limit = self.max_payload(public_key)
        if len(plaintext) > limit:
            raise CryptoError(
                f"Payload of {len(plaintext)} bytes exceeds the {limit} byte "
                f"limit for a {public_key.key_size}-bit key with {self.scheme.value}"
            )

        try:
            return public_key.encrypt(plaintext, self._padding())
        except ValueError as e:
            raise CryptoError(f"Encryption failed: {e}") from e

    def decrypt(self, private_key: Any, ciphertext: bytes) -> bytes:
        """Decrypt ciphertext produced by encrypt() with the matching public key.

        Raises:
            CryptoError: Wrong key type, wrong ciphertext length or padding failure
        """
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise CryptoError(f"Unsupported private key type: {type(private_key).__name__}")

        block_size = (private_key.key_size + 7) // 8
        if len(ciphertext) != block_size:
            raise CryptoError(
                f"Ciphertext is {len(ciphertext)} bytes, expected {block_size}"
            )

        try:
            return private_key.decrypt(ciphertext, self._padding())
        except ValueError as e:
            raise CryptoError(f"Decryption failed: {e}") from e

    def max_payload(self, key: Any) -> int:
        """Largest plaintext, in bytes, that fits in one block for this key."""
        key_size_bytes = (key.key_size + 7) // 8
        if self.scheme == PaddingScheme.PKCS1V15:
            return key_size_bytes - _PKCS1V15_OVERHEAD
        hash_alg = self._hash()
        return key_size_bytes - 2 * hash_alg.digest_size - 2

    def _hash(self) -> hashes.HashAlgorithm:
        if self.scheme == PaddingScheme.OAEP_SHA1:
            return hashes.SHA1()
        return hashes.SHA256()

    def _padding(self) -> padding.AsymmetricPadding:
        if self.scheme == PaddingScheme.PKCS1V15:
            return padding.PKCS1v15()
        hash_alg = self._hash()
        return padding.OAEP(
            mgf=padding.MGF1(algorithm=hash_alg),
            algorithm=hash_alg,
            label=None,
        )
