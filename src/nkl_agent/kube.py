"""Kubernetes client construction."""

from __future__ import annotations

import logging

from kubernetes import client
from kubernetes import config as kube_config

from .config import KubernetesConfig

LOG = logging.getLogger(__name__)


def build_core_api(settings: KubernetesConfig) -> client.CoreV1Api:
    """Return a ``CoreV1Api`` using in-cluster credentials unless a kubeconfig is set."""

    if settings.kubeconfig is not None:
        LOG.info("Loading kubeconfig from %s", settings.kubeconfig)
        kube_config.load_kube_config(
            config_file=str(settings.kubeconfig), context=settings.context
        )
    else:
        LOG.info("Loading in-cluster Kubernetes configuration")
        kube_config.load_incluster_config()
    return client.CoreV1Api()
