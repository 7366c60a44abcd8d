"""PEM parsing primitives used by the TLS factory.

The helpers in here accept raw PEM material as handed over by the certificate
management collaborator (files mounted from a Secret, ConfigMap entries, ...)
and turn it into :mod:`cryptography` objects.  Failures are reported through
the exceptions in :mod:`nkl_authentication.errors`, each naming the material
that could not be used.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .errors import CertificateParseError, InvalidPEMError, KeyPairMismatchError

PEMInput = Union[bytes, str, None]

CA_CERTIFICATE = "CA certificate"
CLIENT_CERTIFICATE = "client certificate"
CLIENT_KEY = "client key"

_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[^\r\n-]+)-----\r?\n"
    rb"(?P<body>.*?)"
    rb"-----END (?P=label)-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class PEMBlock:
    """A single decoded PEM block."""

    label: str
    der: bytes


@dataclass(frozen=True)
class CertificateBundle:
    """PEM material supplied by the caller.

    Which fields must be present depends on the trust mode; nothing is
    validated until the bundle is handed to the factory.
    """

    ca_certificate: Optional[bytes] = None
    client_certificate: Optional[bytes] = None
    client_key: Optional[bytes] = None

    @classmethod
    def from_files(
        cls,
        ca_certificate: Optional[Path] = None,
        client_certificate: Optional[Path] = None,
        client_key: Optional[Path] = None,
    ) -> "CertificateBundle":
        def _read(path: Optional[Path]) -> Optional[bytes]:
            return Path(path).read_bytes() if path is not None else None

        return cls(
            ca_certificate=_read(ca_certificate),
            client_certificate=_read(client_certificate),
            client_key=_read(client_key),
        )


@dataclass(frozen=True)
class TrustRoot:
    """The set of CA certificates a peer must chain up to."""

    certificates: Tuple[x509.Certificate, ...]

    def to_pem(self) -> str:
        return "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in self.certificates
        )


@dataclass(frozen=True)
class ClientIdentity:
    """Certificate and matching private key presented to NGINX Plus."""

    certificate: x509.Certificate
    private_key: object

    def certificate_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(  # type: ignore[attr-defined]
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


def _as_bytes(material: PEMInput) -> bytes:
    if material is None:
        return b""
    if isinstance(material, str):
        return material.encode("utf-8")
    return bytes(material)


def decode_pem_block(material: PEMInput, what: str) -> PEMBlock:
    """Return the first PEM block found in ``material``.

    Header lines (``Proc-Type: ...``) inside the block are ignored; the body
    must be valid base64.
    """

    match = _PEM_BLOCK.search(_as_bytes(material))
    if match is None:
        raise InvalidPEMError(
            f"failed to decode PEM block containing {what}", material=what
        )

    body_lines = [
        line.strip()
        for line in match.group("body").splitlines()
        if line.strip() and b":" not in line
    ]
    try:
        der = base64.b64decode(b"".join(body_lines), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidPEMError(
            f"PEM block containing {what} is not valid base64: {exc}",
            material=what,
        ) from exc

    return PEMBlock(label=match.group("label").decode("ascii", "replace"), der=der)


def parse_certificate(material: PEMInput, what: str) -> x509.Certificate:
    block = decode_pem_block(material, what)
    try:
        return x509.load_der_x509_certificate(block.der)
    except ValueError as exc:
        raise CertificateParseError(
            f"error parsing {what}: {exc}", material=what
        ) from exc


def parse_private_key(material: PEMInput, what: str = CLIENT_KEY) -> object:
    # Confirm there is a PEM block before handing off so an empty or
    # non-PEM value is reported the same way as for certificates.
    decode_pem_block(material, what)
    try:
        return serialization.load_pem_private_key(_as_bytes(material), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidPEMError(f"error parsing {what}: {exc}", material=what) from exc


def _public_key_der(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def build_trust_root(ca_certificate: PEMInput) -> TrustRoot:
    """Build a trust root containing exactly the supplied CA certificate.

    Only the first PEM block is considered; intermediates are not supported.
    """

    certificate = parse_certificate(ca_certificate, CA_CERTIFICATE)
    return TrustRoot(certificates=(certificate,))


def build_client_identity(
    client_certificate: PEMInput, client_key: PEMInput
) -> ClientIdentity:
    """Pair a client certificate with its private key."""

    certificate = parse_certificate(client_certificate, CLIENT_CERTIFICATE)
    private_key = parse_private_key(client_key, CLIENT_KEY)

    try:
        key_public = _public_key_der(private_key.public_key())  # type: ignore[attr-defined]
    except AttributeError as exc:
        raise InvalidPEMError(
            f"{CLIENT_KEY} does not carry a public key", material=CLIENT_KEY
        ) from exc

    if key_public != _public_key_der(certificate.public_key()):
        raise KeyPairMismatchError(
            "private key does not match public key in client certificate",
            material=CLIENT_KEY,
        )

    return ClientIdentity(certificate=certificate, private_key=private_key)
