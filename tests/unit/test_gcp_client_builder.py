"""Tests for building Google Cloud clients."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from gcp_mock import KIND_SECRET, FakeStore, make_org_secret

from gcp_project_operator.builders.gcp_client import (
    create_gcp_client_for_reference,
    credentials_secret_for_reference,
)


def _reference(**spec) -> dict:
    return {"metadata": {"name": "ns-c", "namespace": "gcp-project-operator"}, "spec": {"gcpProjectID": "o-1234abcd", **spec}}


class TestCredentialsSecret:
    """Test which secret a reference authenticates with."""

    def test_org_credentials(self):
        assert credentials_secret_for_reference(_reference()) == (
            "gcp-project-operator",
            "gcp-project-operator-credentials",
        )

    def test_ccs_credentials(self):
        reference = _reference(ccs=True, ccsSecretRef={"name": "byoc", "namespace": "uhc-production"})
        assert credentials_secret_for_reference(reference) == ("uhc-production", "byoc")


class TestCreateClient:
    """Test client creation from secrets."""

    @patch("gcp_project_operator.builders.gcp_client.GoogleCloudClient")
    def test_creates_client_for_project(self, mock_client):
        store = FakeStore()
        store.add(KIND_SECRET, make_org_secret())

        client = create_gcp_client_for_reference(store, _reference())

        assert client is mock_client.return_value
        project_id, credentials = mock_client.call_args[0]
        assert project_id == "o-1234abcd"
        assert "org@example.iam.gserviceaccount.com" in credentials

    def test_missing_secret(self):
        with pytest.raises(ValueError, match="not found"):
            create_gcp_client_for_reference(FakeStore(), _reference())
