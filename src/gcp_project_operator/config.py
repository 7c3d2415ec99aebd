"""Operator configuration: process settings and the shared ConfigMap."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from .constants import OPERATOR_CONFIGMAP_NAME, OPERATOR_NAMESPACE
from .utils.errors import ConfigError


@dataclass(frozen=True)
class Settings:
    """Process-wide settings read from the environment at startup."""

    operator_namespace: str = OPERATOR_NAMESPACE
    metrics_port: int = 8080
    reconcile_interval: float = 30.0
    requeue_after_write: float = 1.0
    error_retry_delay: float = 10.0

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            operator_namespace=os.getenv("OPERATOR_NAMESPACE", OPERATOR_NAMESPACE),
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
            reconcile_interval=float(os.getenv("RECONCILE_INTERVAL_SECONDS", "30")),
            requeue_after_write=float(os.getenv("REQUEUE_AFTER_WRITE_SECONDS", "1")),
            error_retry_delay=float(os.getenv("ERROR_RETRY_DELAY_SECONDS", "10")),
        )


@dataclass
class OperatorConfig:
    """Settings shared by all projects, stored in the operator ConfigMap."""

    billing_account: str
    parent_folder_id: str
    ccs_console_access: list[str] = field(default_factory=list)
    ccs_read_only_console_access: list[str] = field(default_factory=list)
    disabled_regions: list[str] = field(default_factory=list)

    @classmethod
    def from_config_map_data(cls, data: dict[str, str]) -> OperatorConfig:
        return cls(
            billing_account=(data.get("billingAccount") or "").strip(),
            parent_folder_id=(data.get("parentFolderID") or "").strip(),
            ccs_console_access=_parse_list(data.get("ccsConsoleAccess")),
            ccs_read_only_console_access=_parse_list(data.get("ccsReadOnlyConsoleAccess")),
            disabled_regions=_parse_list(data.get("disabledRegions")),
        )

    def validate(self) -> None:
        """Check that the required keys are set.

        Raises:
            ConfigError: If a required key is empty
        """
        if not self.billing_account:
            raise ConfigError("missing configmap key: billingAccount")
        if not self.parent_folder_id:
            raise ConfigError("missing configmap key: parentFolderID")

    def is_region_supported(self, region: str) -> bool:
        return region not in self.disabled_regions


def _parse_list(raw: str | None) -> list[str]:
    """Parse a ConfigMap value holding a YAML list or comma-separated items."""
    if not raw:
        return []

    value: Any = yaml.safe_load(raw)
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


def load_operator_config(store: Any, namespace: str = OPERATOR_NAMESPACE) -> OperatorConfig:
    """Read and validate the operator ConfigMap.

    Args:
        store: Store used to read the ConfigMap
        namespace: Namespace holding the ConfigMap

    Returns:
        Validated operator configuration

    Raises:
        ConfigError: If the ConfigMap is missing or incomplete
    """
    config_map = store.get_config_map(namespace, OPERATOR_CONFIGMAP_NAME)
    if config_map is None:
        raise ConfigError(f"configmap {namespace}/{OPERATOR_CONFIGMAP_NAME} not found")

    config = OperatorConfig.from_config_map_data(config_map.get("data") or {})
    config.validate()
    return config
