"""Tests for the discovery-based Google Cloud client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from gcp_mock import http_error
from googleapiclient.errors import HttpError

from gcp_project_operator.services.gcp.client import GoogleCloudClient, project_display_name

CREDENTIALS = json.dumps({"type": "service_account", "client_email": "org@example.iam.gserviceaccount.com"})


@pytest.fixture
def services():
    built: dict[str, MagicMock] = {}

    def build(service, version, credentials=None, cache_discovery=True):
        return built.setdefault(service, MagicMock(name=service))

    with patch("gcp_project_operator.services.gcp.client.discovery.build", side_effect=build), patch(
        "gcp_project_operator.services.gcp.client.service_account.Credentials.from_service_account_info"
    ):
        yield built


@pytest.fixture
def client(services) -> GoogleCloudClient:
    return GoogleCloudClient("o-1234abcd", CREDENTIALS, sleep=MagicMock())


class TestGoogleCloudClient:
    """Test cases for GoogleCloudClient."""

    def test_builds_services(self, client, services):
        assert set(services) == {"cloudresourcemanager", "iam", "serviceusage", "cloudbilling", "compute"}

    def test_list_projects(self, client, services):
        projects = services["cloudresourcemanager"].projects.return_value
        projects.list.return_value.execute.return_value = {
            "projects": [{"projectId": "o-1234abcd", "lifecycleState": "ACTIVE"}],
        }
        projects.list_next.return_value = None

        assert client.list_projects() == [{"projectId": "o-1234abcd", "lifecycleState": "ACTIVE"}]

    def test_create_project_body(self, client, services):
        projects = services["cloudresourcemanager"].projects.return_value

        client.create_project("1234567890", "a-cluster-name-longer-than-thirty-characters")

        body = projects.create.call_args.kwargs["body"]
        assert body["projectId"] == "o-1234abcd"
        assert body["parent"] == {"type": "folder", "id": "1234567890"}
        assert len(body["name"]) == 30

    @pytest.mark.parametrize("hint", ["abc", "", "..."])
    def test_create_project_short_name_uses_project_id(self, client, services, hint):
        projects = services["cloudresourcemanager"].projects.return_value

        client.create_project("1234567890", hint)

        assert projects.create.call_args.kwargs["body"]["name"] == "o-1234abcd"

    def test_create_project_drops_disallowed_characters(self, client, services):
        projects = services["cloudresourcemanager"].projects.return_value

        client.create_project("1234567890", "my.cluster")

        assert projects.create.call_args.kwargs["body"]["name"] == "mycluster"

    def test_display_name_keeps_allowed_characters(self):
        assert project_display_name("It's \"ok\"! my-cluster", "o-1234abcd") == "It's \"ok\"! my-cluster"
        assert project_display_name("a_b.c_d", "o-1234abcd") == "abcd"
        assert project_display_name("x" * 40, "o-1234abcd") == "x" * 30

    def test_create_existing_project_is_not_an_error(self, client, services):
        projects = services["cloudresourcemanager"].projects.return_value
        projects.create.return_value.execute.side_effect = http_error(409, "already exists")

        assert client.create_project("1234567890", "my-cluster") == {}

    def test_get_service_account_name(self, client, services):
        accounts = services["iam"].projects.return_value.serviceAccounts.return_value

        client.get_service_account("osd-managed-admin")

        accounts.get.assert_called_once_with(
            name="projects/o-1234abcd/serviceAccounts/osd-managed-admin@o-1234abcd.iam.gserviceaccount.com"
        )

    def test_enable_api_retries_denied(self, client, services):
        enable = services["serviceusage"].services.return_value.enable
        enable.return_value.execute.side_effect = [http_error(403, "denied"), http_error(403, "denied"), {}]

        client.enable_api("o-1234abcd", "compute.googleapis.com")

        assert enable.return_value.execute.call_count == 3
        assert client._sleep.call_count == 2

    def test_enable_api_gives_up(self, client, services):
        enable = services["serviceusage"].services.return_value.enable
        enable.return_value.execute.side_effect = http_error(403, "denied")

        with pytest.raises(HttpError):
            client.enable_api("o-1234abcd", "compute.googleapis.com")

        assert enable.return_value.execute.call_count == 4

    def test_enable_api_other_errors_not_retried(self, client, services):
        enable = services["serviceusage"].services.return_value.enable
        enable.return_value.execute.side_effect = http_error(500, "backend")

        with pytest.raises(HttpError):
            client.enable_api("o-1234abcd", "compute.googleapis.com")

        client._sleep.assert_not_called()

    def test_list_apis(self, client, services):
        api = services["serviceusage"].services.return_value
        api.list.return_value.execute.return_value = {
            "services": [{"config": {"name": "compute.googleapis.com"}}, {"config": {}}],
        }
        api.list_next.return_value = None

        assert client.list_apis("o-1234abcd") == ["compute.googleapis.com"]
        assert api.list.call_args.kwargs["filter"] == "state:ENABLED"

    def test_billing_already_linked(self, client, services):
        projects = services["cloudbilling"].projects.return_value
        projects.getBillingInfo.return_value.execute.return_value = {
            "billingAccountName": "billingAccounts/0123-4567-89AB",
            "billingEnabled": True,
        }

        client.create_cloud_billing_account("o-1234abcd", "0123-4567-89AB")

        projects.updateBillingInfo.assert_not_called()

    def test_billing_relinked(self, client, services):
        projects = services["cloudbilling"].projects.return_value
        projects.getBillingInfo.return_value.execute.return_value = {
            "billingAccountName": "billingAccounts/OTHER",
            "billingEnabled": True,
        }

        client.create_cloud_billing_account("o-1234abcd", "0123-4567-89AB")

        bodies = [call.kwargs["body"] for call in projects.updateBillingInfo.call_args_list]
        assert bodies == [
            {"billingAccountName": ""},
            {"billingAccountName": "billingAccounts/0123-4567-89AB"},
        ]

    def test_billing_linked_first_time(self, client, services):
        projects = services["cloudbilling"].projects.return_value
        projects.getBillingInfo.return_value.execute.return_value = {"billingEnabled": False}

        client.create_cloud_billing_account("o-1234abcd", "0123-4567-89AB")

        assert projects.updateBillingInfo.call_count == 1

    def test_list_availability_zones(self, client, services):
        zones = services["compute"].zones.return_value
        zones.list.return_value.execute.return_value = {
            "items": [
                {"name": "us-east1-c", "status": "UP", "region": "https://compute/regions/us-east1"},
                {"name": "us-east1-b", "status": "UP", "region": "https://compute/regions/us-east1"},
                {"name": "us-east1-d", "status": "DOWN", "region": "https://compute/regions/us-east1"},
                {"name": "us-west1-a", "status": "UP", "region": "https://compute/regions/us-west1"},
            ],
        }
        zones.list_next.return_value = None

        assert client.list_availability_zones("o-1234abcd", "us-east1") == ["us-east1-b", "us-east1-c"]
