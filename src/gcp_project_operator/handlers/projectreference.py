"""Handler for ProjectReference CRD."""

from __future__ import annotations

from typing import Any, Callable

import kopf

from ..adapters.projectreference import ReferenceAdapter, get_matching_claim
from ..builders.gcp_client import create_gcp_client_for_reference
from ..config import Settings, load_operator_config
from ..constants import API_GROUP_VERSION, COND_ERROR, KIND_PROJECT_REFERENCE, REASON_RECONCILE_ERROR
from ..services.gcp.base import GCPClient
from ..store import Store
from ..utils.errors import wrap
from ..utils.operation import ReconcileResult
from .base import BaseHandler
from .shared import get_settings

ClientFactory = Callable[[Store, dict[str, Any], str], GCPClient]


class ProjectReferenceHandler(BaseHandler):
    """Handler for ProjectReference resources."""

    def __init__(
        self,
        store: Store | None = None,
        settings: Settings | None = None,
        client_factory: ClientFactory = create_gcp_client_for_reference,
    ):
        """Initialize project reference handler.

        Args:
            store: Store to use; built from the cluster config when omitted
            settings: Process settings; read from the environment when omitted
            client_factory: Builds the cloud client for a reference
        """
        self.settings = settings or get_settings()
        super().__init__(
            KIND_PROJECT_REFERENCE,
            store=store,
            error_retry_delay=self.settings.error_retry_delay,
            requeue_after_write=self.settings.requeue_after_write,
        )
        self.client_factory = client_factory

    def exists(self, store: Store, namespace: str, name: str) -> bool:
        return store.get_project_reference(namespace, name) is not None

    def build_adapter(self, store: Store, reference: dict[str, Any]) -> ReferenceAdapter:
        """Load everything a pass needs and wrap it in an adapter.

        Raises:
            OperatorError: If the cloud client, the operator config or the
                linked claim cannot be loaded
        """
        namespace = self.settings.operator_namespace
        try:
            gcp_client = self.client_factory(store, reference, namespace)
        except Exception as e:
            raise wrap(e, "could not create cloud client") from e

        try:
            config = load_operator_config(store, namespace)
        except Exception as e:
            raise wrap(e, "could not load operator config") from e

        try:
            claim = get_matching_claim(store, reference)
        except Exception as e:
            raise wrap(e, "could not create ReferenceAdapter") from e

        return ReferenceAdapter(reference, claim, store, gcp_client, config, self.logger)

    def reconcile(self, store: Store, namespace: str, name: str) -> ReconcileResult:
        """Run one pass over a ProjectReference.

        A reference that no longer exists needs no further work. Failing to
        load its collaborators fails the pass before any operation runs.
        """
        reference = store.get_project_reference(namespace, name)
        if reference is None:
            self.logger.debug(f"ProjectReference {namespace}/{name} not found, nothing to do")
            return ReconcileResult()

        try:
            adapter = self.build_adapter(store, reference)
        except Exception as e:
            return ReconcileResult(requeue=True, error=e)

        result = self.run_pipeline(reference["metadata"], [
            adapter.ensure_project_reference_initialized,
            adapter.ensure_deletion_processed,
            adapter.ensure_project_claim_ready,
            adapter.verify_project_claim_pending,
            adapter.ensure_project_reference_status_creating,
            adapter.ensure_project_id,
            adapter.ensure_service_account_name,
            adapter.ensure_finalizer_added,
            adapter.ensure_project_created,
            adapter.ensure_project_configured,
            adapter.ensure_state_ready,
        ])

        self.record_reconcile_error(
            reference["metadata"],
            lambda error: adapter.set_project_reference_condition(COND_ERROR, REASON_RECONCILE_ERROR, error),
            result.error,
        )
        return result


# Global handler instance
_handler = ProjectReferenceHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROJECT_REFERENCE)
@kopf.on.update(API_GROUP_VERSION, KIND_PROJECT_REFERENCE)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROJECT_REFERENCE)
@kopf.timer(API_GROUP_VERSION, KIND_PROJECT_REFERENCE, interval=get_settings().reconcile_interval)
def handle_project_reference(
    body: dict[str, Any],
    meta: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Handle ProjectReference resource reconciliation."""
    _handler.handle(body, meta)


@kopf.on.delete(API_GROUP_VERSION, KIND_PROJECT_REFERENCE)
def handle_project_reference_delete(
    body: dict[str, Any],
    meta: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Handle ProjectReference resource deletion."""
    _handler.handle(body, meta)
