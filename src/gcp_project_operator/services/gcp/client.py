"""Google Cloud client implementation built on the discovery API clients."""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable

from google.oauth2 import service_account
from googleapiclient import discovery
from googleapiclient.errors import HttpError

from ... import metrics
from ...constants import ENABLE_API_MAX_RETRIES, ENABLE_API_RETRY_DELAY

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
PROJECT_NAME_MAX_LENGTH = 30
PROJECT_NAME_MIN_LENGTH = 4
PROJECT_NAME_DISALLOWED = re.compile("[^A-Za-z0-9 '\"!-]")


def project_display_name(name_hint: str, project_id: str) -> str:
    """Display name accepted by Cloud Resource Manager, falling back to the project ID."""
    name = PROJECT_NAME_DISALLOWED.sub("", name_hint or "")[:PROJECT_NAME_MAX_LENGTH].strip()
    if len(name) < PROJECT_NAME_MIN_LENGTH:
        return project_id
    return name


class GoogleCloudClient:
    """Google Cloud client bound to a single project ID."""

    def __init__(
        self,
        project_id: str,
        credentials_json: str,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the Google Cloud client.

        Args:
            project_id: Project the client acts on
            credentials_json: Service account key JSON
            sleep: Pause used between API enablement retries
        """
        self.project_id = project_id
        self._sleep = sleep

        credentials = service_account.Credentials.from_service_account_info(
            json.loads(credentials_json),
            scopes=[CLOUD_PLATFORM_SCOPE],
        )

        def build(service: str, version: str) -> Any:
            return discovery.build(service, version, credentials=credentials, cache_discovery=False)

        self.crm = build("cloudresourcemanager", "v1")
        self.iam = build("iam", "v1")
        self.service_usage = build("serviceusage", "v1")
        self.billing = build("cloudbilling", "v1")
        self.compute = build("compute", "v1")

    def _execute(self, operation: str, request: Any) -> Any:
        """Execute a request, recording call metrics."""
        start_time = time.time()
        try:
            response = request.execute()
            metrics.gcp_api_call_total.labels(operation=operation, result="success").inc()
            return response
        except HttpError:
            metrics.gcp_api_call_total.labels(operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.gcp_api_call_duration_seconds.labels(operation=operation).observe(duration)

    def _service_account_resource(self, email: str) -> str:
        return f"projects/{self.project_id}/serviceAccounts/{email}"

    def list_projects(self) -> list[dict[str, Any]]:
        """List all projects visible to the credentials."""
        projects: list[dict[str, Any]] = []
        request = self.crm.projects().list()
        while request is not None:
            response = self._execute("list_projects", request)
            projects.extend(response.get("projects", []))
            request = self.crm.projects().list_next(previous_request=request, previous_response=response)
        return projects

    def create_project(self, parent_folder_id: str, name_hint: str) -> dict[str, Any]:
        """Create the bound project under a folder.

        An already existing project is not an error; the creation operation is
        not awaited, later calls on the project retry until it is usable.
        """
        body = {
            "projectId": self.project_id,
            "name": project_display_name(name_hint, self.project_id),
            "parent": {"type": "folder", "id": parent_folder_id},
        }
        try:
            return self._execute("create_project", self.crm.projects().create(body=body))
        except HttpError as e:
            if e.resp.status == 409:
                logger.info(f"Project {self.project_id} already exists")
                return {}
            raise

    def delete_project(self, project_id: str) -> None:
        self._execute("delete_project", self.crm.projects().delete(projectId=project_id))

    def get_service_account(self, account_name: str) -> dict[str, Any]:
        email = f"{account_name}@{self.project_id}.iam.gserviceaccount.com"
        request = self.iam.projects().serviceAccounts().get(name=self._service_account_resource(email))
        return self._execute("get_service_account", request)

    def create_service_account(self, account_name: str, display_name: str) -> dict[str, Any]:
        request = self.iam.projects().serviceAccounts().create(
            name=f"projects/{self.project_id}",
            body={
                "accountId": account_name,
                "serviceAccount": {"displayName": display_name},
            },
        )
        return self._execute("create_service_account", request)

    def delete_service_account(self, email: str) -> None:
        request = self.iam.projects().serviceAccounts().delete(name=self._service_account_resource(email))
        self._execute("delete_service_account", request)

    def create_service_account_key(self, email: str) -> dict[str, Any]:
        request = self.iam.projects().serviceAccounts().keys().create(
            name=self._service_account_resource(email),
            body={},
        )
        return self._execute("create_service_account_key", request)

    def get_iam_policy(self, project_id: str) -> dict[str, Any]:
        request = self.crm.projects().getIamPolicy(resource=project_id, body={})
        return self._execute("get_iam_policy", request)

    def set_iam_policy(self, project_id: str, policy: dict[str, Any]) -> dict[str, Any]:
        request = self.crm.projects().setIamPolicy(resource=project_id, body={"policy": policy})
        return self._execute("set_iam_policy", request)

    def list_apis(self, project_id: str) -> list[str]:
        """List the services enabled on a project."""
        enabled: list[str] = []
        services = self.service_usage.services()
        request = services.list(parent=f"projects/{project_id}", filter="state:ENABLED")
        while request is not None:
            response = self._execute("list_apis", request)
            for service in response.get("services", []):
                api_name = service.get("config", {}).get("name", "")
                if api_name:
                    enabled.append(api_name)
            request = services.list_next(previous_request=request, previous_response=response)
        return enabled

    def enable_api(self, project_id: str, api: str) -> None:
        """Enable a service on a project.

        Freshly created projects answer 403 until permissions propagate, so
        those are retried a few times before giving up.
        """
        retries = 0
        while True:
            request = self.service_usage.services().enable(
                name=f"projects/{project_id}/services/{api}",
                body={},
            )
            try:
                self._execute("enable_api", request)
                return
            except HttpError as e:
                if e.resp.status != 403 or retries >= ENABLE_API_MAX_RETRIES:
                    raise
                retries += 1
                logger.info(f"Enabling {api} on {project_id} was denied, retrying ({retries}/{ENABLE_API_MAX_RETRIES})")
                self._sleep(ENABLE_API_RETRY_DELAY)

    def create_cloud_billing_account(self, project_id: str, billing_account: str) -> None:
        """Link a project to a billing account, relinking if it uses another one."""
        name = f"projects/{project_id}"
        account_name = f"billingAccounts/{billing_account}"

        info = self._execute("get_billing_info", self.billing.projects().getBillingInfo(name=name))
        if info.get("billingAccountName") == account_name:
            return

        if info.get("billingEnabled"):
            self._execute(
                "update_billing_info",
                self.billing.projects().updateBillingInfo(name=name, body={"billingAccountName": ""}),
            )

        self._execute(
            "update_billing_info",
            self.billing.projects().updateBillingInfo(name=name, body={"billingAccountName": account_name}),
        )

    def list_availability_zones(self, project_id: str, region: str) -> list[str]:
        """List the zones of a region that are up."""
        zones: list[str] = []
        request = self.compute.zones().list(project=project_id)
        while request is not None:
            response = self._execute("list_zones", request)
            for zone in response.get("items", []):
                if zone.get("status") != "UP":
                    continue
                if zone.get("region", "").rsplit("/", 1)[-1] == region:
                    zones.append(zone["name"])
            request = self.compute.zones().list_next(previous_request=request, previous_response=response)
        return sorted(zones)
