"""Shared utilities for handlers."""

from __future__ import annotations

from kubernetes import config

from ..config import Settings
from ..store import KubernetesStore

# Settings are read once per process
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_store() -> KubernetesStore:
    """Get a store backed by the Kubernetes API.

    Returns:
        KubernetesStore instance
    """
    load_kube_config()
    return KubernetesStore()
