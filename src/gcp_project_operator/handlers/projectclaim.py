"""Handler for ProjectClaim CRD."""

from __future__ import annotations

from typing import Any

import kopf

from ..adapters.projectclaim import ProjectClaimAdapter
from ..config import Settings
from ..constants import API_GROUP_VERSION, COND_ERROR, KIND_PROJECT_CLAIM, REASON_RECONCILE_ERROR
from ..store import Store
from ..utils.operation import ReconcileResult
from .base import BaseHandler
from .shared import get_settings


class ProjectClaimHandler(BaseHandler):
    """Handler for ProjectClaim resources."""

    def __init__(self, store: Store | None = None, settings: Settings | None = None):
        """Initialize project claim handler."""
        self.settings = settings or get_settings()
        super().__init__(
            KIND_PROJECT_CLAIM,
            store=store,
            error_retry_delay=self.settings.error_retry_delay,
            requeue_after_write=self.settings.requeue_after_write,
        )

    def exists(self, store: Store, namespace: str, name: str) -> bool:
        return store.get_project_claim(namespace, name) is not None

    def reconcile(self, store: Store, namespace: str, name: str) -> ReconcileResult:
        """Run one pass over a ProjectClaim.

        A claim that no longer exists needs no further work.
        """
        claim = store.get_project_claim(namespace, name)
        if claim is None:
            self.logger.debug(f"ProjectClaim {namespace}/{name} not found, nothing to do")
            return ReconcileResult()

        adapter = ProjectClaimAdapter(
            claim,
            store,
            self.logger,
            operator_namespace=self.settings.operator_namespace,
        )
        result = self.run_pipeline(claim["metadata"], [
            adapter.ensure_project_claim_fake_processed,
            adapter.ensure_project_claim_deletion_processed,
            adapter.ensure_project_claim_initialized,
            adapter.ensure_region_supported,
            adapter.ensure_project_reference_exists,
            adapter.ensure_project_reference_link,
            adapter.ensure_finalizer,
            adapter.ensure_ccs_secret_finalizer,
            adapter.ensure_project_claim_pending,
            adapter.ensure_project_claim_pending_project,
        ])

        self.record_reconcile_error(
            claim["metadata"],
            lambda error: adapter.set_project_claim_condition(COND_ERROR, REASON_RECONCILE_ERROR, error),
            result.error,
        )
        return result


# Global handler instance
_handler = ProjectClaimHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROJECT_CLAIM)
@kopf.on.update(API_GROUP_VERSION, KIND_PROJECT_CLAIM)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROJECT_CLAIM)
@kopf.timer(API_GROUP_VERSION, KIND_PROJECT_CLAIM, interval=get_settings().reconcile_interval)
def handle_project_claim(
    body: dict[str, Any],
    meta: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Handle ProjectClaim resource reconciliation."""
    _handler.handle(body, meta)


@kopf.on.delete(API_GROUP_VERSION, KIND_PROJECT_CLAIM)
def handle_project_claim_delete(
    body: dict[str, Any],
    meta: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Handle ProjectClaim resource deletion."""
    _handler.handle(body, meta)
