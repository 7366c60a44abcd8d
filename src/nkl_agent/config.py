"""YAML configuration loader for the nkl agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from nkl_authentication import CertificateBundle, TLSConfiguration, build_tls_config


@dataclass(frozen=True)
class WatcherConfig:
    timeout_seconds: int = 30


@dataclass(frozen=True)
class KubernetesConfig:
    """Where to find cluster credentials; in-cluster config when unset."""

    kubeconfig: Optional[Path] = None
    context: Optional[str] = None


@dataclass(frozen=True)
class TLSConfig:
    mode: str = "no-tls"
    ca_certificate: Optional[Path] = None
    client_certificate: Optional[Path] = None
    client_key: Optional[Path] = None
    strict: bool = False

    def to_bundle(self) -> CertificateBundle:
        return CertificateBundle.from_files(
            ca_certificate=self.ca_certificate,
            client_certificate=self.client_certificate,
            client_key=self.client_key,
        )

    def build(self) -> TLSConfiguration:
        return build_tls_config(self.mode, self.to_bundle(), strict=self.strict)


@dataclass(frozen=True)
class AgentConfig:
    tls: TLSConfig = field(default_factory=TLSConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)


def _section(data: dict, name: str) -> dict:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _optional_path(value: Any) -> Optional[Path]:
    if value in (None, ""):
        return None
    return Path(str(value))


def _positive(value: Any, name: str) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"'{name}' must be at least 1")
    return number


def _parse_tls(section: dict) -> TLSConfig:
    mode = section.get("mode", "no-tls")
    if not isinstance(mode, str):
        raise ValueError("'tls.mode' must be a string")
    return TLSConfig(
        mode=mode,
        ca_certificate=_optional_path(section.get("ca_certificate")),
        client_certificate=_optional_path(section.get("client_certificate")),
        client_key=_optional_path(section.get("client_key")),
        strict=bool(section.get("strict", False)),
    )


def _parse_kubernetes(section: dict) -> KubernetesConfig:
    context = section.get("context")
    return KubernetesConfig(
        kubeconfig=_optional_path(section.get("kubeconfig")),
        context=str(context) if context else None,
    )


def _parse_watcher(section: dict) -> WatcherConfig:
    defaults = WatcherConfig()
    return WatcherConfig(
        timeout_seconds=_positive(
            section.get("timeout_seconds", defaults.timeout_seconds),
            "watcher.timeout_seconds",
        ),
    )


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    return AgentConfig(
        tls=_parse_tls(_section(data, "tls")),
        kubernetes=_parse_kubernetes(_section(data, "kubernetes")),
        watcher=_parse_watcher(_section(data, "watcher")),
    )
