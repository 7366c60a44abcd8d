"""Event primitives delivered by a ConfigMap watch source."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class ConfigurationAdded:
    """A ConfigMap appeared (or was seen during the initial list)."""

    resource: Any


@dataclass(frozen=True)
class ConfigurationUpdated:
    """A ConfigMap changed.

    ``previous`` is the last version seen by the watch source, when known.
    The host list is derived from ``resource`` alone.
    """

    resource: Any
    previous: Any = None


@dataclass(frozen=True)
class ConfigurationDeleted:
    """A ConfigMap was removed."""

    resource: Any = None


ConfigurationEvent = Union[ConfigurationAdded, ConfigurationUpdated, ConfigurationDeleted]


def resource_data(resource: Any) -> Optional[Mapping[str, Any]]:
    """Return the ``data`` map of a ConfigMap-like ``resource``.

    Accepts :class:`kubernetes.client.V1ConfigMap` instances (or anything with
    a ``data`` attribute) as well as plain mappings as returned by the raw
    API.  Returns ``None`` when ``resource`` has neither shape.  A ConfigMap
    without data yields an empty mapping.
    """

    if isinstance(resource, Mapping):
        data = resource.get("data")
    elif hasattr(resource, "data"):
        data = resource.data
    else:
        return None

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        return None
    return data


def resource_name(resource: Any) -> Optional[str]:
    if isinstance(resource, Mapping):
        metadata = resource.get("metadata") or {}
        return metadata.get("name") if isinstance(metadata, Mapping) else None
    metadata = getattr(resource, "metadata", None)
    return getattr(metadata, "name", None)
