"""Google Cloud client interface used by the reconcilers."""

from __future__ import annotations

from typing import Any, Protocol


class GCPClient(Protocol):
    """Protocol defining the Google Cloud operations the operator needs.

    The client is bound to one project ID; project and service account calls
    act on that project. Errors are raised as ``googleapiclient.errors.HttpError``
    (or ``google.auth`` errors for credential problems).
    """

    def list_projects(self) -> list[dict[str, Any]]:
        """List projects visible to the credentials (``projectId``, ``lifecycleState``)."""
        ...

    def create_project(self, parent_folder_id: str, name_hint: str) -> dict[str, Any]:
        """Create the bound project under a folder."""
        ...

    def delete_project(self, project_id: str) -> None:
        """Request deletion of a project."""
        ...

    def get_service_account(self, account_name: str) -> dict[str, Any]:
        """Get a service account of the bound project by account ID."""
        ...

    def create_service_account(self, account_name: str, display_name: str) -> dict[str, Any]:
        """Create a service account in the bound project."""
        ...

    def delete_service_account(self, email: str) -> None:
        """Delete a service account of the bound project."""
        ...

    def create_service_account_key(self, email: str) -> dict[str, Any]:
        """Create a JSON key; ``privateKeyData`` holds it base64-encoded."""
        ...

    def get_iam_policy(self, project_id: str) -> dict[str, Any]:
        """Get the IAM policy of a project."""
        ...

    def set_iam_policy(self, project_id: str, policy: dict[str, Any]) -> dict[str, Any]:
        """Replace the IAM policy of a project."""
        ...

    def list_apis(self, project_id: str) -> list[str]:
        """List the service names enabled on a project."""
        ...

    def enable_api(self, project_id: str, api: str) -> None:
        """Enable a service on a project."""
        ...

    def create_cloud_billing_account(self, project_id: str, billing_account: str) -> None:
        """Link a project to a billing account."""
        ...

    def list_availability_zones(self, project_id: str, region: str) -> list[str]:
        """List the zone names of a region that are up."""
        ...
