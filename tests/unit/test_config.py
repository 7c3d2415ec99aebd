"""Tests for operator configuration."""

from __future__ import annotations

import pytest
from gcp_mock import FakeStore, make_config_map

from gcp_project_operator.config import OperatorConfig, Settings, load_operator_config
from gcp_project_operator.utils.errors import ConfigError


class TestOperatorConfig:
    """Test parsing the operator ConfigMap."""

    def test_required_keys(self):
        config = OperatorConfig.from_config_map_data({"billingAccount": " 0123 ", "parentFolderID": "42"})

        assert config.billing_account == "0123"
        assert config.parent_folder_id == "42"
        assert config.disabled_regions == []
        config.validate()

    @pytest.mark.parametrize("missing", ["billingAccount", "parentFolderID"])
    def test_missing_required_key(self, missing):
        data = {"billingAccount": "0123", "parentFolderID": "42"}
        del data[missing]

        with pytest.raises(ConfigError, match=missing):
            OperatorConfig.from_config_map_data(data).validate()

    def test_yaml_list(self):
        config = OperatorConfig.from_config_map_data({
            "billingAccount": "b",
            "parentFolderID": "p",
            "disabledRegions": "- europe-west3\n- asia-east2\n",
            "ccsConsoleAccess": '["admins@example.com"]',
        })

        assert config.disabled_regions == ["europe-west3", "asia-east2"]
        assert config.ccs_console_access == ["admins@example.com"]

    def test_comma_separated_list(self):
        config = OperatorConfig.from_config_map_data({
            "billingAccount": "b",
            "parentFolderID": "p",
            "ccsReadOnlyConsoleAccess": "viewers@example.com, auditors@example.com",
        })

        assert config.ccs_read_only_console_access == ["viewers@example.com", "auditors@example.com"]

    def test_region_support(self):
        config = OperatorConfig(billing_account="b", parent_folder_id="p", disabled_regions=["europe-west3"])

        assert config.is_region_supported("us-east1")
        assert not config.is_region_supported("europe-west3")


class TestLoadOperatorConfig:
    """Test loading the ConfigMap through the store."""

    def test_load(self):
        store = FakeStore()
        store.add("ConfigMap", make_config_map(disabledRegions="europe-west3"))

        config = load_operator_config(store, "gcp-project-operator")

        assert config.disabled_regions == ["europe-west3"]

    def test_missing_config_map(self):
        with pytest.raises(ConfigError, match="not found"):
            load_operator_config(FakeStore(), "gcp-project-operator")

    def test_invalid_config_map(self):
        store = FakeStore()
        store.add("ConfigMap", make_config_map(billing_account=""))

        with pytest.raises(ConfigError, match="billingAccount"):
            load_operator_config(store, "gcp-project-operator")


class TestSettings:
    """Test environment settings."""

    def test_defaults(self, monkeypatch):
        for var in ("OPERATOR_NAMESPACE", "METRICS_PORT", "RECONCILE_INTERVAL_SECONDS", "REQUEUE_AFTER_WRITE_SECONDS",
                    "ERROR_RETRY_DELAY_SECONDS"):
            monkeypatch.delenv(var, raising=False)

        settings = Settings.from_env()

        assert settings.operator_namespace == "gcp-project-operator"
        assert settings.metrics_port == 8080
        assert settings.reconcile_interval == 30.0
        assert settings.error_retry_delay == 10.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OPERATOR_NAMESPACE", "custom")
        monkeypatch.setenv("METRICS_PORT", "9090")
        monkeypatch.setenv("ERROR_RETRY_DELAY_SECONDS", "15")

        settings = Settings.from_env()

        assert settings.operator_namespace == "custom"
        assert settings.metrics_port == 9090
        assert settings.error_retry_delay == 15.0
