"""Interceptor configuration."""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fieldcrypt.crypto import PaddingScheme
from fieldcrypt.errors import ConfigurationError
from fieldcrypt.keys import validate_identity


@dataclass(frozen=True)
class TargetSpec:
    """The single (operation, field) pair subject to transformation."""
    operation: str = "buyCart"
    field: str = "creditCardNr"


class Settings(BaseSettings):
    """Interceptor settings loaded from FIELDCRYPT_* environment variables.

    Settings are frozen once loaded, so a single instance can be shared by
    every exchange handled in the process.
    """

    # Identities: sender is the local node, destination the remote peer
    sender: str
    destination: str

    # Secret protecting the sender's keystore and its private key entry
    keystore_password: SecretStr

    # Directory holding <identity>.cer and <identity>.jks resources
    keys_dir: Path = Path(".")

    # Target field
    target_operation: str = "buyCart"
    target_field: str = "creditCardNr"

    # Cipher
    cipher_padding: PaddingScheme = PaddingScheme.PKCS1V15

    # Key material cache (ttl of 0 disables caching)
    key_cache_ttl: float = 300.0
    key_cache_size: int = 32

    # Logging
    log_json: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FIELDCRYPT_",
        env_file=".env",
        case_sensitive=False,
        frozen=True,
    )

    @field_validator("sender", "destination")
    @classmethod
    def _check_identity(cls, value: str) -> str:
        try:
            return validate_identity(value)
        except ConfigurationError as e:
            raise ValueError(e.message) from e

    @field_validator("target_operation", "target_field")
    @classmethod
    def _check_target(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("target names must not be blank")
        return value

    @field_validator("key_cache_ttl", "key_cache_size")
    @classmethod
    def _check_non_negative(cls, value):
        if value < 0:
            raise ValueError("must be zero or positive")
        return value

    @property
    def target(self) -> TargetSpec:
        """Get the configured target as a TargetSpec."""
        return TargetSpec(operation=self.target_operation, field=self.target_field)


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, raising ConfigurationError if invalid."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid interceptor settings: {e}") from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
