"""Access to the Kubernetes objects the operator reads and writes."""

from __future__ import annotations

import functools
from typing import Any, Callable, Protocol

from kubernetes import client

from .constants import (
    API_GROUP,
    API_VERSION,
    FIELD_MANAGER,
    PLURAL_PROJECT_CLAIMS,
    PLURAL_PROJECT_REFERENCES,
)


class Store(Protocol):
    """Record store used by the reconcilers.

    Getters return None when the object does not exist. Writers return the
    object as persisted so callers can keep working with the latest
    resourceVersion. Stale writes raise ``ApiException`` with status 409.
    """

    def get_project_claim(self, namespace: str, name: str) -> dict[str, Any] | None: ...

    def update_project_claim(self, claim: dict[str, Any]) -> dict[str, Any]: ...

    def update_project_claim_status(self, claim: dict[str, Any]) -> dict[str, Any]: ...

    def get_project_reference(self, namespace: str, name: str) -> dict[str, Any] | None: ...

    def create_project_reference(self, reference: dict[str, Any]) -> dict[str, Any]: ...

    def update_project_reference(self, reference: dict[str, Any]) -> dict[str, Any]: ...

    def update_project_reference_status(self, reference: dict[str, Any]) -> dict[str, Any]: ...

    def delete_project_reference(self, namespace: str, name: str) -> None: ...

    def get_secret(self, namespace: str, name: str) -> dict[str, Any] | None: ...

    def create_secret(self, secret: dict[str, Any]) -> dict[str, Any]: ...

    def update_secret(self, secret: dict[str, Any]) -> dict[str, Any]: ...

    def delete_secret(self, namespace: str, name: str) -> None: ...

    def get_config_map(self, namespace: str, name: str) -> dict[str, Any] | None: ...


# Store methods that change cluster state
MUTATING_METHODS = frozenset({
    "update_project_claim",
    "update_project_claim_status",
    "create_project_reference",
    "update_project_reference",
    "update_project_reference_status",
    "delete_project_reference",
    "create_secret",
    "update_secret",
    "delete_secret",
})


def _none_if_not_found(fn: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    return wrapper


class KubernetesStore:
    """Store backed by the Kubernetes API."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi | None = None,
        core_api: client.CoreV1Api | None = None,
    ):
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.core_api = core_api or client.CoreV1Api()

    def _get_custom(self, plural: str, namespace: str, name: str) -> dict[str, Any]:
        return self.custom_api.get_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=plural,
            name=name,
        )

    def _replace_custom(self, plural: str, body: dict[str, Any]) -> dict[str, Any]:
        meta = body["metadata"]
        return self.custom_api.replace_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=meta["namespace"],
            plural=plural,
            name=meta["name"],
            body=body,
            field_manager=FIELD_MANAGER,
        )

    def _replace_custom_status(self, plural: str, body: dict[str, Any]) -> dict[str, Any]:
        meta = body["metadata"]
        return self.custom_api.replace_namespaced_custom_object_status(
            group=API_GROUP,
            version=API_VERSION,
            namespace=meta["namespace"],
            plural=plural,
            name=meta["name"],
            body=body,
            field_manager=FIELD_MANAGER,
        )

    @_none_if_not_found
    def get_project_claim(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self._get_custom(PLURAL_PROJECT_CLAIMS, namespace, name)

    def update_project_claim(self, claim: dict[str, Any]) -> dict[str, Any]:
        return self._replace_custom(PLURAL_PROJECT_CLAIMS, claim)

    def update_project_claim_status(self, claim: dict[str, Any]) -> dict[str, Any]:
        return self._replace_custom_status(PLURAL_PROJECT_CLAIMS, claim)

    @_none_if_not_found
    def get_project_reference(self, namespace: str, name: str) -> dict[str, Any] | None:
        return self._get_custom(PLURAL_PROJECT_REFERENCES, namespace, name)

    def create_project_reference(self, reference: dict[str, Any]) -> dict[str, Any]:
        return self.custom_api.create_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=reference["metadata"]["namespace"],
            plural=PLURAL_PROJECT_REFERENCES,
            body=reference,
            field_manager=FIELD_MANAGER,
        )

    def update_project_reference(self, reference: dict[str, Any]) -> dict[str, Any]:
        return self._replace_custom(PLURAL_PROJECT_REFERENCES, reference)

    def update_project_reference_status(self, reference: dict[str, Any]) -> dict[str, Any]:
        return self._replace_custom_status(PLURAL_PROJECT_REFERENCES, reference)

    def delete_project_reference(self, namespace: str, name: str) -> None:
        self.custom_api.delete_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_PROJECT_REFERENCES,
            name=name,
        )

    @_none_if_not_found
    def get_secret(self, namespace: str, name: str) -> dict[str, Any] | None:
        secret = self.core_api.read_namespaced_secret(name=name, namespace=namespace)
        return self.core_api.api_client.sanitize_for_serialization(secret)

    def create_secret(self, secret: dict[str, Any]) -> dict[str, Any]:
        created = self.core_api.create_namespaced_secret(
            namespace=secret["metadata"]["namespace"],
            body=secret,
            field_manager=FIELD_MANAGER,
        )
        return self.core_api.api_client.sanitize_for_serialization(created)

    def update_secret(self, secret: dict[str, Any]) -> dict[str, Any]:
        meta = secret["metadata"]
        updated = self.core_api.replace_namespaced_secret(
            name=meta["name"],
            namespace=meta["namespace"],
            body=secret,
            field_manager=FIELD_MANAGER,
        )
        return self.core_api.api_client.sanitize_for_serialization(updated)

    def delete_secret(self, namespace: str, name: str) -> None:
        self.core_api.delete_namespaced_secret(name=name, namespace=namespace)

    @_none_if_not_found
    def get_config_map(self, namespace: str, name: str) -> dict[str, Any] | None:
        config_map = self.core_api.read_namespaced_config_map(name=name, namespace=namespace)
        return self.core_api.api_client.sanitize_for_serialization(config_map)


class PassStore:
    """Store view for one reconcile pass that counts the writes made through it.

    kopf does not re-run change handlers for status or finalizer writes, so
    the handler layer uses the count to decide whether to drive another pass.
    """

    def __init__(self, store: Store):
        self._store = store
        self.writes = 0

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._store, name)
        if name not in MUTATING_METHODS:
            return attr

        @functools.wraps(attr)
        def tracked(*args: Any, **kwargs: Any) -> Any:
            result = attr(*args, **kwargs)
            self.writes += 1
            return result

        return tracked
