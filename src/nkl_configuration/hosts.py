"""Thread-safe holder for the published NGINX Plus host list."""

from __future__ import annotations

from threading import Lock
from typing import Iterable, Iterator, Tuple


class HostList:
    """Atomically replaced, read-only sequence of host identifiers.

    The watch thread publishes new lists with :meth:`replace` while any number
    of readers call :meth:`snapshot`.  The stored value is an immutable tuple
    that is swapped under a lock, so a reader always gets one complete
    published list.
    """

    def __init__(self, hosts: Iterable[str] = ()) -> None:
        self._lock = Lock()
        self._hosts: Tuple[str, ...] = tuple(hosts)

    def snapshot(self) -> Tuple[str, ...]:
        with self._lock:
            return self._hosts

    def replace(self, hosts: Iterable[str]) -> Tuple[str, ...]:
        new_hosts = tuple(hosts)
        with self._lock:
            self._hosts = new_hosts
        return new_hosts

    def clear(self) -> None:
        self.replace(())

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self.snapshot())

    def __repr__(self) -> str:
        return f"HostList({list(self.snapshot())!r})"
