"""Test configuration and fixtures."""

import base64
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from fieldcrypt.config import Settings, get_settings
from fieldcrypt.message import SOAP11_NS

KEYSTORE_PASSWORD = "keystore-test-password"
CARD_NUMBER = "4111111111111111"
SERVICE_NS = "http://ws.mediator.example.org/"


def create_self_signed_cert(private_key, subject_name="Test Cert"):
    """Create a self-signed certificate for testing."""
    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "PT"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
        x509.NameAttribute(NameOID.COMMON_NAME, subject_name),
    ])

    builder = x509.CertificateBuilder()
    builder = builder.subject_name(subject)
    builder = builder.issuer_name(issuer)
    builder = builder.public_key(private_key.public_key())
    builder = builder.serial_number(x509.random_serial_number())
    builder = builder.not_valid_before(datetime.now(timezone.utc))
    builder = builder.not_valid_after(datetime.now(timezone.utc) + timedelta(days=365))
    builder = builder.add_extension(
        x509.BasicConstraints(ca=False, path_length=None),
        critical=True,
    )

    return builder.sign(private_key, hashes.SHA256())


def write_identity(
    keys_dir,
    identity,
    password=KEYSTORE_PASSWORD,
    alias=None,
    der=False,
    key_size=2048,
):
    """Provision <identity>.cer and <identity>.jks in keys_dir.

    Returns:
        The generated RSA private key
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    cert = create_self_signed_cert(private_key, subject_name=identity)

    encoding = serialization.Encoding.DER if der else serialization.Encoding.PEM
    (keys_dir / f"{identity}.cer").write_bytes(cert.public_bytes(encoding))

    keystore = pkcs12.serialize_key_and_certificates(
        name=(alias if alias is not None else identity.lower()).encode(),
        key=private_key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(password.encode()),
    )
    (keys_dir / f"{identity}.jks").write_bytes(keystore)

    return private_key


@pytest.fixture(scope="session")
def keys_dir(tmp_path_factory):
    """Key directory provisioned for mediator, supplierA and supplierB."""
    directory = tmp_path_factory.mktemp("keys")
    return directory


@pytest.fixture(scope="session")
def identities(keys_dir):
    """Private keys of the provisioned identities, by name."""
    return {
        "mediator": write_identity(keys_dir, "mediator"),
        "supplierA": write_identity(keys_dir, "supplierA"),
        "supplierB": write_identity(keys_dir, "supplierB", der=True),
    }


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep FIELDCRYPT_* variables from the host out of the tests."""
    import os

    for name in list(os.environ):
        if name.upper().startswith("FIELDCRYPT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(os.path.dirname(__file__))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mediator_settings(keys_dir, identities):
    """Settings of the mediator sending to supplierA."""
    return Settings(
        sender="mediator",
        destination="supplierA",
        keystore_password=KEYSTORE_PASSWORD,
        keys_dir=keys_dir,
        key_cache_ttl=0,
    )


@pytest.fixture
def supplier_settings(keys_dir, identities):
    """Settings of supplierA answering the mediator."""
    return Settings(
        sender="supplierA",
        destination="mediator",
        keystore_password=KEYSTORE_PASSWORD,
        keys_dir=keys_dir,
        key_cache_ttl=0,
    )


def b64(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode()
    return base64.b64encode(data).decode("ascii")


def build_envelope(operation="buyCart", fields=None, soap_ns=SOAP11_NS) -> bytes:
    """Build a serialized request envelope with the given parameters."""
    if fields is None:
        fields = [("cartId", "cart-1"), ("creditCardNr", b64(CARD_NUMBER))]
    params = "".join(f"<{name}>{value}</{name}>" for name, value in fields)
    return (
        f'<S:Envelope xmlns:S="{soap_ns}">'
        f"<S:Header/>"
        f"<S:Body>"
        f'<ns2:{operation} xmlns:ns2="{SERVICE_NS}">{params}</ns2:{operation}>'
        f"</S:Body>"
        f"</S:Envelope>"
    ).encode()
