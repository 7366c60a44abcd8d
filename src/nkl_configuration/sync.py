"""Derive the NGINX Plus host list from ConfigMap watch events."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Any, Optional, Sequence, Tuple

from .events import (
    ConfigurationAdded,
    ConfigurationDeleted,
    ConfigurationEvent,
    ConfigurationUpdated,
    resource_data,
    resource_name,
)
from .hosts import HostList
from .watch import RegistrationError, WatchSource

LOG = logging.getLogger(__name__)

CONFIG_MAPS_NAMESPACE = "nkl"
HOSTS_KEY = "nginx-hosts"
HOSTS_SEPARATOR = ","


def parse_hosts(value: str) -> Sequence[str]:
    """Split the ``nginx-hosts`` value into host identifiers.

    No trimming, de-duplication or validation happens here; ``""`` yields a
    single empty host.
    """

    return value.split(HOSTS_SEPARATOR)


class ConfigSync:
    """Keep :attr:`hosts` in sync with the ``nginx-hosts`` ConfigMap key.

    Malformed events never raise: an unrecognised payload or a missing key
    leaves the current list untouched, a delete clears it.
    """

    def __init__(
        self,
        source: WatchSource,
        *,
        namespace: str = CONFIG_MAPS_NAMESPACE,
        join_timeout: float = 5.0,
    ) -> None:
        self._source = source
        self._namespace = namespace
        self._join_timeout = join_timeout
        self._hosts = HostList()
        self._stop_event: Optional[Event] = None

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def hosts(self) -> Tuple[str, ...]:
        return self._hosts.snapshot()

    def snapshot(self) -> Tuple[str, ...]:
        return self._hosts.snapshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        LOG.info("Registering ConfigMap handlers for namespace %s", self._namespace)
        try:
            self._source.add_event_handler(
                self._namespace,
                self.on_added,
                self.on_updated,
                self.on_deleted,
            )
        except RegistrationError:
            raise
        except Exception as exc:
            raise RegistrationError(
                f"error occurred registering event handlers: {exc}"
            ) from exc

    def run(self, stop_event: Event) -> None:
        """Run the watch source on a worker thread until ``stop_event`` is set."""

        self._stop_event = stop_event
        worker = Thread(
            target=self._run_source,
            args=(stop_event,),
            name="nkl-configmap-watch",
            daemon=True,
        )
        worker.start()

        stop_event.wait()

        LOG.debug("Stop requested, shutting down ConfigMap watch")
        self._source.stop()
        worker.join(self._join_timeout)
        if worker.is_alive():
            LOG.warning(
                "ConfigMap watch did not exit within %.1fs", self._join_timeout
            )

    def _run_source(self, stop_event: Event) -> None:
        try:
            self._source.run(stop_event)
        except Exception:
            LOG.exception("ConfigMap watch loop crashed")

    def _stopped(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def handle(self, event: ConfigurationEvent) -> None:
        if isinstance(event, ConfigurationAdded):
            self.on_added(event.resource)
        elif isinstance(event, ConfigurationUpdated):
            self.on_updated(event.resource, event.previous)
        elif isinstance(event, ConfigurationDeleted):
            self.on_deleted(event.resource)
        else:
            raise TypeError(f"Unsupported event type: {type(event)!r}")

    def on_added(self, resource: Any) -> None:
        LOG.debug("ConfigMap added: %s", resource_name(resource))
        self.on_updated(resource, None)

    def on_updated(self, resource: Any, previous: Any = None) -> None:
        if self._stopped():
            return

        data = resource_data(resource)
        if data is None:
            LOG.error(
                "could not interpret %s as a ConfigMap, ignoring event",
                type(resource).__name__,
            )
            return

        hosts = data.get(HOSTS_KEY)
        if hosts is None:
            LOG.error(
                "%s key not found in ConfigMap %s",
                HOSTS_KEY,
                resource_name(resource),
            )
            return
        if not isinstance(hosts, str):
            LOG.error(
                "%s in ConfigMap %s is not a string, ignoring event",
                HOSTS_KEY,
                resource_name(resource),
            )
            return

        published = self._hosts.replace(parse_hosts(hosts))
        LOG.info("Updated NGINX Plus hosts: %s", list(published))

    def on_deleted(self, resource: Any = None) -> None:
        if self._stopped():
            return
        self._hosts.clear()
        LOG.info("ConfigMap %s deleted, cleared NGINX Plus hosts", resource_name(resource))
