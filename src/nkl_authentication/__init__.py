"""TLS trust configuration for connecting to the NGINX Plus fleet.

The loadbalancer talks to every NGINX Plus host over the Plus API.  Depending
on how the fleet is deployed that connection may be plain, verified against
the system trust store, verified against a self-signed CA, and optionally
authenticated with a client certificate.  This package turns a trust mode and
a bundle of PEM material into a :class:`~nkl_authentication.factory.TLSConfiguration`
that the connection layer can convert into an :class:`ssl.SSLContext`.

Everything here is synchronous and free of side effects so the factory can be
called from any thread whenever the certificate material changes.
"""

from .certificates import (  # noqa: F401
    CertificateBundle,
    ClientIdentity,
    TrustRoot,
    build_client_identity,
    build_trust_root,
)
from .errors import (  # noqa: F401
    CertificateParseError,
    InvalidPEMError,
    KeyPairMismatchError,
    TrustConfigurationError,
    UnknownTrustModeError,
)
from .factory import TLSConfiguration, build_tls_config  # noqa: F401
from .modes import TrustMode  # noqa: F401

__all__ = [
    "CertificateBundle",
    "CertificateParseError",
    "ClientIdentity",
    "InvalidPEMError",
    "KeyPairMismatchError",
    "TLSConfiguration",
    "TrustConfigurationError",
    "TrustMode",
    "TrustRoot",
    "UnknownTrustModeError",
    "build_client_identity",
    "build_tls_config",
    "build_trust_root",
]
