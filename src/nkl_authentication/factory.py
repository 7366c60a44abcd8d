"""Factory turning a trust mode and certificate bundle into TLS settings."""

from __future__ import annotations

import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .certificates import (
    CertificateBundle,
    ClientIdentity,
    TrustRoot,
    build_client_identity,
    build_trust_root,
)
from .errors import UnknownTrustModeError
from .modes import TrustMode


@dataclass(frozen=True)
class TLSConfiguration:
    """Immutable description of how to secure connections to NGINX Plus.

    Attributes
    ----------
    mode:
        The trust mode the configuration was built for.
    trust_root:
        The CA certificates peers must chain up to.  ``None`` means the
        system trust store is used (or nothing at all when verification is
        skipped).
    client_identity:
        Certificate/key pair presented for mutual TLS, if any.
    skip_verification:
        When ``True`` the peer certificate is not verified.
    """

    mode: TrustMode
    trust_root: Optional[TrustRoot] = None
    client_identity: Optional[ClientIdentity] = None
    skip_verification: bool = False

    @property
    def uses_system_roots(self) -> bool:
        return not self.skip_verification and self.trust_root is None

    def to_ssl_context(self) -> ssl.SSLContext:
        """Build a client-side :class:`ssl.SSLContext` for this configuration."""

        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2

        if self.skip_verification:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        elif self.trust_root is not None:
            ctx.load_verify_locations(cadata=self.trust_root.to_pem())
        else:
            ctx.load_default_certs(ssl.Purpose.SERVER_AUTH)

        if self.client_identity is not None:
            # load_cert_chain only accepts paths
            with tempfile.TemporaryDirectory(prefix="nkl-tls-") as tmp:
                certfile = Path(tmp) / "client.pem"
                keyfile = Path(tmp) / "client-key.pem"
                certfile.write_bytes(self.client_identity.certificate_pem())
                keyfile.write_bytes(self.client_identity.private_key_pem())
                ctx.load_cert_chain(str(certfile), str(keyfile))

        return ctx


def _build_basic(mode: TrustMode, skip_verification: bool) -> TLSConfiguration:
    return TLSConfiguration(mode=mode, skip_verification=skip_verification)


def _build_ca_mtls(bundle: CertificateBundle) -> TLSConfiguration:
    identity = build_client_identity(bundle.client_certificate, bundle.client_key)
    return TLSConfiguration(mode=TrustMode.CA_MTLS, client_identity=identity)


def _build_self_signed_tls(bundle: CertificateBundle) -> TLSConfiguration:
    trust_root = build_trust_root(bundle.ca_certificate)
    return TLSConfiguration(mode=TrustMode.SS_TLS, trust_root=trust_root)


def _build_self_signed_mtls(bundle: CertificateBundle) -> TLSConfiguration:
    trust_root = build_trust_root(bundle.ca_certificate)
    identity = build_client_identity(bundle.client_certificate, bundle.client_key)
    return TLSConfiguration(
        mode=TrustMode.SS_MTLS,
        trust_root=trust_root,
        client_identity=identity,
    )


def build_tls_config(
    mode: "TrustMode | str | None",
    bundle: Optional[CertificateBundle] = None,
    *,
    strict: bool = False,
) -> TLSConfiguration:
    """Build the TLS configuration for ``mode`` from ``bundle``.

    An unrecognised mode behaves like ``no-tls`` unless ``strict`` is set,
    in which case :class:`UnknownTrustModeError` is raised instead.
    """

    bundle = bundle or CertificateBundle()
    resolved = TrustMode.parse(mode)

    if resolved is None:
        if strict:
            raise UnknownTrustModeError(f"unknown TLS mode {mode!r}")
        return _build_basic(TrustMode.NO_TLS, skip_verification=True)

    if resolved is TrustMode.SS_TLS:
        return _build_self_signed_tls(bundle)
    if resolved is TrustMode.SS_MTLS:
        return _build_self_signed_mtls(bundle)
    if resolved is TrustMode.CA_TLS:
        return _build_basic(resolved, skip_verification=False)
    if resolved is TrustMode.CA_MTLS:
        return _build_ca_mtls(bundle)
    return _build_basic(TrustMode.NO_TLS, skip_verification=True)
