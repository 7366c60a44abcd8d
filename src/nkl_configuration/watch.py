"""Watch sources delivering ConfigMap events to :class:`ConfigSync`.

A watch source owns the list/watch loop against the Kubernetes API and hands
each change to three registered callbacks.  Callbacks are invoked serially
from the thread running :meth:`WatchSource.run`.
"""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Event, Lock
from typing import Any, Callable, Dict, Optional

from kubernetes import watch
from kubernetes.client import ApiException, CoreV1Api

from .events import resource_name

LOG = logging.getLogger(__name__)

AddedHandler = Callable[[Any], None]
UpdatedHandler = Callable[[Any, Any], None]
DeletedHandler = Callable[[Any], None]


class RegistrationError(Exception):
    """The watch source refused to register event handlers."""


@dataclass(frozen=True)
class EventHandlers:
    on_added: AddedHandler
    on_updated: UpdatedHandler
    on_deleted: DeletedHandler


class WatchSource(ABC):
    """Subscription contract consumed by :class:`ConfigSync`."""

    @abstractmethod
    def add_event_handler(
        self,
        namespace: str,
        on_added: AddedHandler,
        on_updated: UpdatedHandler,
        on_deleted: DeletedHandler,
    ) -> None:
        """Register callbacks for ConfigMaps in ``namespace``.

        Raises :class:`RegistrationError` if the subscription cannot be
        established.
        """

    @abstractmethod
    def run(self, stop_event: Event) -> None:
        """Process events until ``stop_event`` is set or :meth:`stop` is called."""

    @abstractmethod
    def stop(self) -> None:
        """Stop processing; no callbacks are invoked once this returns."""


class ConfigMapWatchSource(WatchSource):
    """List/watch ConfigMaps in one namespace using the Kubernetes client.

    The loop lists the namespace first, dispatching every ConfigMap as added
    (or updated, if it was seen before a re-list), then streams changes from
    the list's ``resourceVersion``.  A ``410 Gone`` forces a re-list; other
    API errors back off exponentially with jitter up to ``max_backoff``
    seconds.  ``401``/``403`` are treated as configuration errors and end the
    loop.
    """

    def __init__(
        self,
        core_api: CoreV1Api,
        namespace: str,
        *,
        timeout_seconds: int = 30,
        max_backoff: float = 30.0,
    ) -> None:
        self._core_api = core_api
        self._namespace = namespace
        self._timeout_seconds = timeout_seconds
        self._max_backoff = max_backoff
        self._handlers: Optional[EventHandlers] = None
        self._known: Dict[Optional[str], Any] = {}
        self._resource_version: Optional[str] = None
        self._stopped = Event()
        self._active_watcher: Optional[watch.Watch] = None
        self._watcher_lock = Lock()

    @property
    def namespace(self) -> str:
        return self._namespace

    def add_event_handler(
        self,
        namespace: str,
        on_added: AddedHandler,
        on_updated: UpdatedHandler,
        on_deleted: DeletedHandler,
    ) -> None:
        if self._stopped.is_set():
            raise RegistrationError("watch source has already been stopped")
        if namespace != self._namespace:
            raise RegistrationError(
                f"watch source is scoped to namespace '{self._namespace}', "
                f"cannot register handlers for '{namespace}'"
            )
        if self._handlers is not None:
            raise RegistrationError("event handlers are already registered")
        self._handlers = EventHandlers(on_added, on_updated, on_deleted)

    def stop(self) -> None:
        self._stopped.set()
        with self._watcher_lock:
            active_watcher = self._active_watcher
        if active_watcher is not None:
            active_watcher.stop()

    def _should_stop(self, stop_event: Event) -> bool:
        return stop_event.is_set() or self._stopped.is_set()

    def _wait(self, stop_event: Event, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while not self._should_stop(stop_event):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            self._stopped.wait(min(remaining, 0.5))

    def run(self, stop_event: Event) -> None:
        if self._handlers is None:
            raise RuntimeError("run() called before event handlers were registered")

        LOG.info("Starting ConfigMap watch in namespace %s", self._namespace)
        backoff = 1.0
        while not self._should_stop(stop_event):
            try:
                if self._resource_version is None:
                    self._relist(stop_event)
                self._watch(stop_event)
                backoff = 1.0
                continue
            except ApiException as exc:
                if exc.status == 410:
                    LOG.warning("Watch resource version expired, re-listing")
                    self._resource_version = None
                    continue
                if exc.status in (401, 403):
                    LOG.error(
                        "Kubernetes API access denied watching ConfigMaps in %s "
                        "(status=%s); check RBAC for the service account",
                        self._namespace,
                        exc.status,
                    )
                    return
                LOG.exception("ConfigMap watch failed")
            except Exception:
                LOG.exception("Unexpected error in ConfigMap watch")

            jittered = backoff * (0.5 + random.random())  # noqa: S311
            LOG.debug("Retrying ConfigMap watch in %.2fs", jittered)
            self._wait(stop_event, jittered)
            backoff = min(backoff * 2, self._max_backoff)

        LOG.info("Stopped ConfigMap watch in namespace %s", self._namespace)

    def _relist(self, stop_event: Event) -> None:
        result = self._core_api.list_namespaced_config_map(namespace=self._namespace)
        items = getattr(result, "items", None) or []
        seen: Dict[Optional[str], Any] = {}

        for item in items:
            if self._should_stop(stop_event):
                return
            name = resource_name(item)
            seen[name] = item
            previous = self._known.get(name)
            if previous is None:
                self._dispatch("ADDED", item, None)
            else:
                self._dispatch("MODIFIED", item, previous)

        for name in set(self._known) - set(seen):
            if self._should_stop(stop_event):
                return
            self._dispatch("DELETED", self._known[name], None)

        self._known = seen
        self._resource_version = getattr(
            getattr(result, "metadata", None), "resource_version", None
        )
        LOG.debug(
            "Listed %d ConfigMap(s) in %s at resourceVersion %s",
            len(items),
            self._namespace,
            self._resource_version,
        )

    def _watch(self, stop_event: Event) -> None:
        watcher = watch.Watch()
        with self._watcher_lock:
            self._active_watcher = watcher
        try:
            stream = watcher.stream(
                self._core_api.list_namespaced_config_map,
                namespace=self._namespace,
                resource_version=self._resource_version,
                timeout_seconds=self._timeout_seconds,
            )
            for event in stream:
                if self._should_stop(stop_event):
                    break
                self._handle_stream_event(event)
        finally:
            with self._watcher_lock:
                self._active_watcher = None
            watcher.stop()

    def _handle_stream_event(self, event: Dict[str, Any]) -> None:
        event_type = str(event.get("type", ""))
        obj = event.get("object")

        if event_type == "ERROR":
            raw = event.get("raw_object") or obj or {}
            status = raw.get("code") if isinstance(raw, dict) else None
            reason = raw.get("message") if isinstance(raw, dict) else None
            raise ApiException(status=status or 500, reason=reason)

        if obj is None:
            return

        metadata = getattr(obj, "metadata", None)
        version = getattr(metadata, "resource_version", None)
        if version:
            self._resource_version = version

        if event_type == "BOOKMARK":
            return

        name = resource_name(obj)
        if event_type == "DELETED":
            self._known.pop(name, None)
            self._dispatch(event_type, obj, None)
        elif event_type in ("ADDED", "MODIFIED"):
            previous = self._known.get(name)
            self._known[name] = obj
            self._dispatch(event_type, obj, previous)
        else:
            LOG.debug("Ignoring ConfigMap watch event of type %r", event_type)

    def _dispatch(self, event_type: str, obj: Any, previous: Any) -> None:
        handlers = self._handlers
        if handlers is None:
            return
        try:
            if event_type == "ADDED":
                handlers.on_added(obj)
            elif event_type == "MODIFIED":
                handlers.on_updated(obj, previous)
            elif event_type == "DELETED":
                handlers.on_deleted(obj)
        except Exception:
            LOG.exception(
                "ConfigMap %s handler failed for %s",
                event_type.lower(),
                resource_name(obj),
            )
