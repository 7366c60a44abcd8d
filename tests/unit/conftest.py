from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


@dataclass(frozen=True)
class PKIMaterial:
    ca_pem: bytes
    client_cert_pem: bytes
    client_key_pem: bytes
    other_key_pem: bytes


def _key_pem(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _issue(common_name: str, key, issuer_name: str, issuer_key, is_ca: bool):
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name)]))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def pki() -> PKIMaterial:
    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = _issue("nkl-test-ca", ca_key, "nkl-test-ca", ca_key, is_ca=True)

    client_key = ec.generate_private_key(ec.SECP256R1())
    client_cert = _issue("nkl-client", client_key, "nkl-test-ca", ca_key, is_ca=False)

    other_key = ec.generate_private_key(ec.SECP256R1())

    return PKIMaterial(
        ca_pem=ca_cert.public_bytes(serialization.Encoding.PEM),
        client_cert_pem=client_cert.public_bytes(serialization.Encoding.PEM),
        client_key_pem=_key_pem(client_key),
        other_key_pem=_key_pem(other_key),
    )
