"""Key resolution by peer identity.

Key material is looked up by naming convention inside a key directory:

- ``<identity>.cer``: X.509 certificate (PEM or DER) of a peer; only its
  public key is used.
- ``<identity>.jks``: PKCS#12 keystore holding the identity's own private key
  under the alias ``identity.lower()``, protected by the keystore secret.
  Only the first private key entry of a keystore is readable; other aliases
  are seen as certificates without a usable key.

Encryption always targets the remote peer's certificate; decryption always
uses the local node's keystore.
"""

import hashlib
import re
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs12

from fieldcrypt.cache import KeyCache
from fieldcrypt.errors import ConfigurationError
from fieldcrypt.logging import get_logger, log_operation

logger = get_logger(__name__)

CERTIFICATE_SUFFIX = ".cer"
KEYSTORE_SUFFIX = ".jks"

_IDENTITY_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def validate_identity(identity: str) -> str:
    """Check that an identity is usable as a resource filename stem."""
    if not identity or not identity.strip():
        raise ConfigurationError("Identity must not be blank")
    if not _IDENTITY_PATTERN.match(identity) or ".." in identity:
        raise ConfigurationError(f"Invalid identity name: {identity!r}")
    return identity


def _secret_digest(secret: str) -> bytes:
    return hashlib.sha256(secret.encode("utf-8")).digest()


class KeyResolver:
    """Maps peer identities to public and private keys."""

    def __init__(self, keys_dir: Path | str, cache: KeyCache | None = None):
        self.keys_dir = Path(keys_dir)
        self.cache = cache

    def certificate_path(self, identity: str) -> Path:
        return self.keys_dir / f"{validate_identity(identity)}{CERTIFICATE_SUFFIX}"

    def keystore_path(self, identity: str) -> Path:
        return self.keys_dir / f"{validate_identity(identity)}{KEYSTORE_SUFFIX}"

    def resolve_public_key(self, identity: str) -> Any:
        """Get the public key of a peer from its certificate.

        Args:
            identity: Peer the payload is destined for

        Returns:
            Public key extracted from <identity>.cer

        Raises:
            ConfigurationError: Certificate missing, unreadable or malformed
        """
        if self.cache is not None:
            cached = self.cache.get(identity, "public")
            if cached is not None:
                return cached.key

        certificate = self._load_certificate(self.certificate_path(identity))
        public_key = certificate.public_key()

        if self.cache is not None:
            self.cache.put(identity, public_key, "public")
        return public_key

    def resolve_private_key(self, identity: str, secret: str) -> Any:
        """Get an identity's own private key from its keystore.

        Args:
            identity: Local identity owning the keystore
            secret: Secret protecting both the keystore and the key entry

        Returns:
            Private key stored under alias identity.lower()

        Raises:
            ConfigurationError: Keystore missing, wrong secret, or alias absent
        """
        digest = _secret_digest(secret)
        if self.cache is not None:
            cached = self.cache.get(identity, "private", secret_digest=digest)
            if cached is not None:
                return cached.key

        private_key = self._load_private_key(
            self.keystore_path(identity), identity.lower(), secret
        )

        if self.cache is not None:
            self.cache.put(identity, private_key, "private", secret_digest=digest)
        return private_key

    @log_operation("certificate load")
    def _load_certificate(self, path: Path) -> x509.Certificate:
        """Load a certificate from PEM or DER format."""
        cert_data = self._read(path, "Certificate")
        try:
            if b"-----BEGIN" in cert_data:
                return x509.load_pem_x509_certificate(cert_data)
            return x509.load_der_x509_certificate(cert_data)
        except ValueError as e:
            raise ConfigurationError(f"Malformed certificate {path.name}: {e}") from e

    @log_operation("keystore load")
    def _load_private_key(self, path: Path, alias: str, secret: str) -> Any:
        """Unlock a keystore and pull out the private key under alias."""
        keystore_data = self._read(path, "Keystore")
        password = secret.encode("utf-8") if secret else None

        try:
            keystore = pkcs12.load_pkcs12(keystore_data, password)
        except ValueError as e:
            # Generic error to prevent password enumeration
            raise ConfigurationError(
                f"Failed to open keystore {path.name} (wrong secret or corrupted data)"
            ) from e

        entry = keystore.cert
        if entry is not None and _alias_of(entry) == alias:
            if keystore.key is None:
                raise ConfigurationError(
                    f"Alias {alias!r} in {path.name} holds no private key"
                )
            return keystore.key

        if any(_alias_of(extra) == alias for extra in keystore.additional_certs):
            raise ConfigurationError(
                f"Alias {alias!r} in {path.name} has no usable private key "
                "(only the first key entry of a keystore is read)"
            )

        raise ConfigurationError(f"Alias {alias!r} not found in {path.name}")

    def _read(self, path: Path, what: str) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ConfigurationError(f"{what} not found: {path}") from e
        except OSError as e:
            raise ConfigurationError(f"I/O error reading {path}: {e}") from e


def _alias_of(entry: pkcs12.PKCS12Certificate) -> str | None:
    if entry.friendly_name is None:
        return None
    return entry.friendly_name.decode("utf-8", errors="replace").lower()
