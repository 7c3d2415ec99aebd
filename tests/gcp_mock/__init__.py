"""In-memory store and Google Cloud client used by the unit tests."""

from __future__ import annotations

import base64
import copy
import json
from datetime import datetime, timedelta, timezone
from typing import Any

import httplib2
from googleapiclient.errors import HttpError
from kubernetes.client.exceptions import ApiException

from gcp_project_operator.constants import (
    API_GROUP_VERSION,
    KIND_PROJECT_CLAIM,
    KIND_PROJECT_REFERENCE,
    LIFECYCLE_ACTIVE,
    OPERATOR_CONFIGMAP_NAME,
    OPERATOR_NAMESPACE,
    ORG_CREDENTIALS_SECRET_NAME,
)

KIND_SECRET = "Secret"
KIND_CONFIG_MAP = "ConfigMap"

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def http_error(status: int, message: str = "") -> HttpError:
    """Build an HttpError the way googleapiclient raises it."""
    resp = httplib2.Response({"status": status})
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(resp, content)


def api_error(status: int, reason: str = "") -> ApiException:
    return ApiException(status=status, reason=reason)


class FakeClock:
    """Settable clock returning timezone-aware datetimes."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeStore:
    """Dict-backed store mimicking the API server for the objects the operator uses.

    Writes check resourceVersion and answer 409 when stale. Spec updates keep
    the stored status and status updates keep the stored spec. Deleting an
    object with finalizers only sets its deletionTimestamp; it disappears once
    an update empties its finalizers.
    """

    def __init__(self, log: list[tuple[Any, ...]] | None = None):
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.log = log if log is not None else []
        self._version = 0

    # Helpers

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    @staticmethod
    def _key(kind: str, obj: dict[str, Any]) -> tuple[str, str, str]:
        meta = obj["metadata"]
        return kind, meta.get("namespace", ""), meta["name"]

    def add(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        """Seed an object without going through the write checks."""
        stored = copy.deepcopy(obj)
        stored["metadata"].setdefault("resourceVersion", self._next_version())
        stored["metadata"].setdefault("uid", f"uid-{stored['metadata']['name']}")
        self.objects[self._key(kind, stored)] = stored
        return copy.deepcopy(stored)

    def fetch(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        obj = self.objects.get((kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def _create(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        key = self._key(kind, obj)
        if key in self.objects:
            raise api_error(409, "AlreadyExists")
        self.log.append((f"create_{kind}", key[1], key[2]))
        return self.add(kind, obj)

    def _update(self, kind: str, obj: dict[str, Any], status_only: bool = False) -> dict[str, Any]:
        key = self._key(kind, obj)
        stored = self.objects.get(key)
        if stored is None:
            raise api_error(404, "Not Found")
        if obj["metadata"].get("resourceVersion") != stored["metadata"].get("resourceVersion"):
            raise api_error(409, "Conflict")

        self.log.append((f"update_{kind}{'_status' if status_only else ''}", key[1], key[2]))
        if status_only:
            updated = copy.deepcopy(stored)
            updated["status"] = copy.deepcopy(obj.get("status", {}))
        else:
            updated = copy.deepcopy(obj)
            if "status" in stored:
                updated["status"] = copy.deepcopy(stored["status"])
            else:
                updated.pop("status", None)
            # deletionTimestamp cannot be set or cleared through an update
            deletion = stored["metadata"].get("deletionTimestamp")
            updated["metadata"].pop("deletionTimestamp", None)
            if deletion:
                updated["metadata"]["deletionTimestamp"] = deletion

        updated["metadata"]["resourceVersion"] = self._next_version()
        if updated["metadata"].get("deletionTimestamp") and not updated["metadata"].get("finalizers"):
            del self.objects[key]
        else:
            self.objects[key] = updated
        return copy.deepcopy(updated)

    def delete(self, kind: str, namespace: str, name: str) -> None:
        key = (kind, namespace, name)
        stored = self.objects.get(key)
        if stored is None:
            raise api_error(404, "Not Found")
        self.log.append((f"delete_{kind}", namespace, name))
        if stored["metadata"].get("finalizers"):
            stored["metadata"].setdefault("deletionTimestamp", "2024-01-01T12:00:00Z")
            stored["metadata"]["resourceVersion"] = self._next_version()
        else:
            del self.objects[key]

    # Store interface

    def get_project_claim(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self.fetch(KIND_PROJECT_CLAIM, namespace, name)

    def update_project_claim(self, claim: dict[str, Any]) -> dict[str, Any]:
        return self._update(KIND_PROJECT_CLAIM, claim)

    def update_project_claim_status(self, claim: dict[str, Any]) -> dict[str, Any]:
        return self._update(KIND_PROJECT_CLAIM, claim, status_only=True)

    def get_project_reference(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self.fetch(KIND_PROJECT_REFERENCE, namespace, name)

    def create_project_reference(self, reference: dict[str, Any]) -> dict[str, Any]:
        return self._create(KIND_PROJECT_REFERENCE, reference)

    def update_project_reference(self, reference: dict[str, Any]) -> dict[str, Any]:
        return self._update(KIND_PROJECT_REFERENCE, reference)

    def update_project_reference_status(self, reference: dict[str, Any]) -> dict[str, Any]:
        return self._update(KIND_PROJECT_REFERENCE, reference, status_only=True)

    def delete_project_reference(self, namespace: str, name: str) -> None:
        self.delete(KIND_PROJECT_REFERENCE, namespace, name)

    def get_secret(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self.fetch(KIND_SECRET, namespace, name)

    def create_secret(self, secret: dict[str, Any]) -> dict[str, Any]:
        return self._create(KIND_SECRET, secret)

    def update_secret(self, secret: dict[str, Any]) -> dict[str, Any]:
        return self._update(KIND_SECRET, secret)

    def delete_secret(self, namespace: str, name: str) -> None:
        self.delete(KIND_SECRET, namespace, name)

    def get_config_map(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self.fetch(KIND_CONFIG_MAP, namespace, name)


class FakeGCPClient:
    """Google Cloud client double holding projects, accounts and policies in memory.

    Every call is appended to ``log``. Exceptions queued in ``failures`` under
    a method name are raised, in order, by the next calls of that method.
    """

    def __init__(self, project_id: str = "", log: list[tuple[Any, ...]] | None = None):
        self.project_id = project_id
        self.log = log if log is not None else []
        self.failures: dict[str, list[Exception]] = {}
        self.projects: dict[str, str] = {}
        self.service_accounts: dict[str, dict[str, Any]] = {}
        self.policies: dict[str, dict[str, Any]] = {}
        self.enabled_apis: dict[str, list[str]] = {}
        self.billing: dict[str, str] = {}
        self.zones: dict[str, list[str]] = {}

    def fail(self, method: str, *errors: Exception) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def calls(self, method: str) -> list[tuple[Any, ...]]:
        return [entry for entry in self.log if entry[0] == method]

    def _call(self, method: str, *args: Any) -> None:
        self.log.append((method, *args))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _email(self, account_name: str) -> str:
        return f"{account_name}@{self.project_id}.iam.gserviceaccount.com"

    def list_projects(self) -> list[dict[str, Any]]:
        self._call("list_projects")
        return [{"projectId": pid, "lifecycleState": state} for pid, state in self.projects.items()]

    def create_project(self, parent_folder_id: str, name_hint: str) -> dict[str, Any]:
        self._call("create_project", parent_folder_id, name_hint)
        self.projects[self.project_id] = LIFECYCLE_ACTIVE
        return {"name": f"operations/create-{self.project_id}"}

    def delete_project(self, project_id: str) -> None:
        self._call("delete_project", project_id)
        self.projects[project_id] = "DELETE_REQUESTED"

    def get_service_account(self, account_name: str) -> dict[str, Any]:
        self._call("get_service_account", account_name)
        account = self.service_accounts.get(account_name)
        if account is None:
            raise http_error(404, f"Service account {account_name} not found")
        return dict(account)

    def create_service_account(self, account_name: str, display_name: str) -> dict[str, Any]:
        self._call("create_service_account", account_name, display_name)
        if account_name in self.service_accounts:
            raise http_error(409, "Service account already exists")
        account = {"email": self._email(account_name), "displayName": display_name}
        self.service_accounts[account_name] = account
        return dict(account)

    def delete_service_account(self, email: str) -> None:
        self._call("delete_service_account", email)
        for name, account in list(self.service_accounts.items()):
            if account["email"] == email:
                del self.service_accounts[name]

    def create_service_account_key(self, email: str) -> dict[str, Any]:
        self._call("create_service_account_key", email)
        key = json.dumps({"type": "service_account", "client_email": email})
        return {"privateKeyData": base64.b64encode(key.encode("utf-8")).decode("utf-8")}

    def get_iam_policy(self, project_id: str) -> dict[str, Any]:
        self._call("get_iam_policy", project_id)
        return copy.deepcopy(self.policies.get(project_id, {"bindings": [], "etag": "BwE"}))

    def set_iam_policy(self, project_id: str, policy: dict[str, Any]) -> dict[str, Any]:
        self._call("set_iam_policy", project_id)
        self.policies[project_id] = copy.deepcopy(policy)
        return copy.deepcopy(policy)

    def list_apis(self, project_id: str) -> list[str]:
        self._call("list_apis", project_id)
        return list(self.enabled_apis.get(project_id, []))

    def enable_api(self, project_id: str, api: str) -> None:
        self._call("enable_api", project_id, api)
        self.enabled_apis.setdefault(project_id, []).append(api)

    def create_cloud_billing_account(self, project_id: str, billing_account: str) -> None:
        self._call("create_cloud_billing_account", project_id, billing_account)
        self.billing[project_id] = billing_account

    def list_availability_zones(self, project_id: str, region: str) -> list[str]:
        self._call("list_availability_zones", project_id, region)
        return list(self.zones.get(region, []))


def make_config_map(
    billing_account: str = "0123-4567-89AB",
    parent_folder_id: str = "1234567890",
    **extra: str,
) -> dict[str, Any]:
    data = {"billingAccount": billing_account, "parentFolderID": parent_folder_id}
    data.update(extra)
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": OPERATOR_CONFIGMAP_NAME, "namespace": OPERATOR_NAMESPACE},
        "data": data,
    }


def make_org_secret() -> dict[str, Any]:
    key = json.dumps({"type": "service_account", "client_email": "org@example.iam.gserviceaccount.com"})
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": ORG_CREDENTIALS_SECRET_NAME, "namespace": OPERATOR_NAMESPACE},
        "data": {"osServiceAccount.json": base64.b64encode(key.encode("utf-8")).decode("utf-8")},
    }


def make_claim(
    name: str = "my-cluster",
    namespace: str = "uhc-production",
    region: str = "us-east1",
    **spec: Any,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "legalEntity": {"name": "Acme", "id": "acme-1"},
        "gcpCredentialSecret": {"name": f"{name}-gcp-credentials", "namespace": namespace},
        "region": region,
    }
    body.update(spec)
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_PROJECT_CLAIM,
        "metadata": {"name": name, "namespace": namespace},
        "spec": body,
    }
