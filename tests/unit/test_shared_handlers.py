"""Tests for shared handler utilities."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from kubernetes import config

from gcp_project_operator.handlers import shared
from gcp_project_operator.store import KubernetesStore


@pytest.fixture(autouse=True)
def reset_settings():
    shared._settings = None
    yield
    shared._settings = None


class TestGetSettings:
    """Test cases for get_settings function."""

    def test_reads_environment_once(self, monkeypatch):
        monkeypatch.setenv("OPERATOR_NAMESPACE", "custom-ns")

        first = shared.get_settings()
        monkeypatch.setenv("OPERATOR_NAMESPACE", "other-ns")

        assert first.operator_namespace == "custom-ns"
        assert shared.get_settings() is first


class TestLoadKubeConfig:
    """Test cases for load_kube_config function."""

    @patch("gcp_project_operator.handlers.shared.config.load_kube_config")
    @patch("gcp_project_operator.handlers.shared.config.load_incluster_config")
    def test_in_cluster(self, mock_incluster, mock_kubeconfig):
        shared.load_kube_config()

        mock_incluster.assert_called_once()
        mock_kubeconfig.assert_not_called()

    @patch("gcp_project_operator.handlers.shared.config.load_kube_config")
    @patch("gcp_project_operator.handlers.shared.config.load_incluster_config")
    def test_falls_back_to_kubeconfig(self, mock_incluster, mock_kubeconfig):
        mock_incluster.side_effect = config.ConfigException("not in cluster")

        shared.load_kube_config()

        mock_kubeconfig.assert_called_once()


class TestGetStore:
    """Test cases for get_store function."""

    @patch("gcp_project_operator.handlers.shared.KubernetesStore")
    @patch("gcp_project_operator.handlers.shared.load_kube_config")
    def test_loads_config_first(self, mock_load, mock_store):
        assert shared.get_store() is mock_store.return_value
        mock_load.assert_called_once()
        mock_store.assert_called_once_with()
