"""Exceptions raised while assembling a TLS configuration."""

from __future__ import annotations


class TrustConfigurationError(Exception):
    """Base class for all trust factory failures.

    ``material`` names the piece of the certificate bundle that could not be
    used (e.g. ``"CA certificate"``) so operators can tell which file or
    ConfigMap entry to fix.
    """

    def __init__(self, message: str, material: str | None = None) -> None:
        super().__init__(message)
        self.material = material


class InvalidPEMError(TrustConfigurationError):
    """No PEM block could be found in the supplied material."""


class CertificateParseError(TrustConfigurationError):
    """A PEM block was found but does not decode as an X.509 certificate."""


class KeyPairMismatchError(TrustConfigurationError):
    """The client private key does not belong to the client certificate."""


class UnknownTrustModeError(TrustConfigurationError):
    """Raised in strict mode when the trust mode string is not recognised."""
