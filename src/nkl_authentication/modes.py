"""Trust modes understood by the TLS factory."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TrustMode(Enum):
    """How the connection to NGINX Plus hosts is secured.

    ``ca`` modes rely on certificates issued by a publicly trusted CA and use
    the system trust store; ``ss`` (self-signed) modes pin the trust store to
    the CA certificate supplied in the bundle.  The ``mtls`` variants also
    present a client certificate.
    """

    NO_TLS = "no-tls"
    CA_TLS = "ca-tls"
    CA_MTLS = "ca-mtls"
    SS_TLS = "ss-tls"
    SS_MTLS = "ss-mtls"

    @classmethod
    def parse(cls, value: "str | TrustMode | None") -> Optional["TrustMode"]:
        """Return the mode matching ``value`` or ``None`` if it is unknown.

        Only the exact literals are recognised; ``"SS-TLS"`` or ``" ss-tls"``
        are unknown modes.
        """

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def requires_ca_certificate(self) -> bool:
        return self in (TrustMode.SS_TLS, TrustMode.SS_MTLS)

    @property
    def requires_client_identity(self) -> bool:
        return self in (TrustMode.CA_MTLS, TrustMode.SS_MTLS)
