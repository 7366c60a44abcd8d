"""Synchronise the NGINX Plus host list from the ``nkl`` ConfigMap.

:class:`~nkl_configuration.sync.ConfigSync` subscribes to ConfigMap events in
the ``nkl`` namespace and publishes the comma separated ``nginx-hosts`` value
as an immutable snapshot that other threads can read at any time.
"""

from .events import (  # noqa: F401
    ConfigurationAdded,
    ConfigurationDeleted,
    ConfigurationUpdated,
)
from .hosts import HostList  # noqa: F401
from .sync import CONFIG_MAPS_NAMESPACE, HOSTS_KEY, ConfigSync  # noqa: F401
from .watch import ConfigMapWatchSource, RegistrationError, WatchSource  # noqa: F401

__all__ = [
    "CONFIG_MAPS_NAMESPACE",
    "HOSTS_KEY",
    "ConfigMapWatchSource",
    "ConfigSync",
    "ConfigurationAdded",
    "ConfigurationDeleted",
    "ConfigurationUpdated",
    "HostList",
    "RegistrationError",
    "WatchSource",
]
