"""Entry point for the nkl agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from nkl_authentication import TrustConfigurationError, TrustMode
from nkl_configuration import (
    CONFIG_MAPS_NAMESPACE,
    ConfigMapWatchSource,
    ConfigSync,
    RegistrationError,
)

from .config import load_config
from .kube import build_core_api

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Keep the NGINX Plus host list in sync with the nkl ConfigMap"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/nkl/nkl.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)

    try:
        tls_config = config.tls.build()
    except (TrustConfigurationError, OSError) as exc:
        LOG.error("failed to build TLS configuration (mode=%s): %s", config.tls.mode, exc)
        return 1
    if TrustMode.parse(config.tls.mode) is None:
        LOG.warning(
            "unrecognised TLS mode %r, falling back to %s",
            config.tls.mode,
            tls_config.mode.value,
        )
    LOG.info("TLS mode %s configured", tls_config.mode.value)

    source = ConfigMapWatchSource(
        build_core_api(config.kubernetes),
        CONFIG_MAPS_NAMESPACE,
        timeout_seconds=config.watcher.timeout_seconds,
    )
    sync = ConfigSync(source)
    try:
        sync.initialize()
    except RegistrationError as exc:
        LOG.error("failed to initialise ConfigMap watch: %s", exc)
        return 1

    stop_event = Event()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    sync.run(stop_event)

    LOG.info("nkl agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
