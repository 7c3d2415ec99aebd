"""Ensure operations for a single ProjectClaim."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from ..config import load_operator_config
from ..constants import (
    ANNOTATION_FAKE_PROJECT_CLAIM,
    API_GROUP_VERSION,
    CCS_SECRET_FINALIZER,
    CLAIM_STATUS_ERROR,
    CLAIM_STATUS_PENDING,
    CLAIM_STATUS_PENDING_PROJECT,
    CLAIM_STATUS_READY,
    COND_INVALID,
    DELETION_REQUEUE_DELAY,
    FAKE_AVAILABILITY_ZONES,
    FAKE_CREDENTIALS,
    FAKE_PROJECT_ID,
    FAKE_REGION,
    FINALIZER,
    KIND_PROJECT_REFERENCE,
    OPERATOR_NAMESPACE,
    PROJECT_REFERENCE_NAMESPACE,
    REASON_REGION_CHECK_FAILED,
)
from ..store import Store
from ..utils.conditions import find_condition, record_error_condition, records_error
from ..utils.errors import (
    OperatorError,
    RegionNotSupportedError,
    matches_already_exists_error,
    matches_not_found_error,
    wrap,
)
from ..utils.operation import (
    OperationResult,
    continue_processing,
    requeue_after,
    requeue_with_error,
    stop_processing,
)
from ..utils.secrets import new_gcp_secret


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def project_reference_identity(claim: dict[str, Any]) -> tuple[str, str]:
    """Return the (namespace, name) of the ProjectReference backing a claim."""
    meta = claim["metadata"]
    return PROJECT_REFERENCE_NAMESPACE, f"{meta['namespace']}-{meta['name']}"


def new_matching_project_reference(claim: dict[str, Any]) -> dict[str, Any]:
    """Build the ProjectReference that backs a claim.

    Args:
        claim: ProjectClaim object

    Returns:
        ProjectReference body ready to be created
    """
    meta = claim["metadata"]
    spec = claim.get("spec", {})
    namespace, name = project_reference_identity(claim)
    ccs = bool(spec.get("ccs"))

    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_PROJECT_REFERENCE,
        "metadata": {
            "name": name,
            "namespace": namespace,
        },
        "spec": {
            "gcpProjectID": spec.get("ccsProjectID", "") if ccs else "",
            "projectClaimCRLink": {
                "name": meta["name"],
                "namespace": meta["namespace"],
            },
            "legalEntity": copy.deepcopy(spec.get("legalEntity", {})),
            "ccs": ccs,
            "ccsSecretRef": copy.deepcopy(spec.get("ccsSecretRef", {})),
            "sharedVPCAccess": bool(spec.get("sharedVPCAccess")),
        },
    }


class ProjectClaimAdapter:
    """Wraps one ProjectClaim and exposes its idempotent ensure operations.

    Every write goes through the store and the adapter keeps the object the
    store returns, so later writes in the same pass carry the latest
    resourceVersion.
    """

    def __init__(
        self,
        claim: dict[str, Any],
        store: Store,
        logger: logging.Logger,
        operator_namespace: str = OPERATOR_NAMESPACE,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.claim = claim
        self.store = store
        self.logger = logger
        self.operator_namespace = operator_namespace
        self.now = now

    @property
    def meta(self) -> dict[str, Any]:
        return self.claim["metadata"]

    @property
    def spec(self) -> dict[str, Any]:
        return self.claim.setdefault("spec", {})

    @property
    def status(self) -> dict[str, Any]:
        return self.claim.setdefault("status", {})

    @property
    def state(self) -> str:
        return self.status.get("state") or ""

    def is_deleting(self) -> bool:
        return bool(self.meta.get("deletionTimestamp"))

    def is_fake(self) -> bool:
        annotations = self.meta.get("annotations") or {}
        return annotations.get(ANNOTATION_FAKE_PROJECT_CLAIM) == "true"

    def update(self) -> None:
        self.claim = self.store.update_project_claim(self.claim)

    def status_update(self) -> None:
        self.claim = self.store.update_project_claim_status(self.claim)

    def set_project_claim_condition(
        self,
        condition_type: str,
        reason: str,
        error: Exception | None,
    ) -> OperationResult:
        """Record an error (or its resolution) on a condition and persist it."""
        conditions = self.status.setdefault("conditions", [])
        if not record_error_condition(conditions, condition_type, reason, error, now=self.now()):
            return continue_processing()
        self.status_update()
        return stop_processing()

    # Fake claims

    def ensure_project_claim_fake_processed(self) -> OperationResult:
        """Drive fake claims to Ready with synthetic values and no cloud calls."""
        if not self.is_fake():
            return continue_processing()

        if self.is_deleting():
            self._delete_fake_secret()
            return self.ensure_project_claim_deletion_processed()

        self.ensure_finalizer()
        if self._update_fake_project_claim_spec():
            return stop_processing()
        self._create_fake_secret()
        self._update_fake_project_claim_state()
        return stop_processing()

    def _credential_secret_identity(self) -> tuple[str, str]:
        link = self.spec.get("gcpCredentialSecret") or {}
        return link.get("namespace", ""), link.get("name", "")

    def _update_fake_project_claim_spec(self) -> bool:
        meta = self.meta
        fake_secret = {"name": meta["name"], "namespace": meta["namespace"]}
        desired = {
            "gcpProjectID": FAKE_PROJECT_ID,
            "gcpCredentialSecret": fake_secret,
            "region": FAKE_REGION,
            "availabilityZones": list(FAKE_AVAILABILITY_ZONES),
        }
        if all(self.spec.get(key) == value for key, value in desired.items()):
            return False

        self.spec.update(desired)
        self.update()
        self.logger.info(f"Populated fake ProjectClaim {meta['namespace']}/{meta['name']}")
        return True

    def _create_fake_secret(self) -> None:
        namespace, name = self._credential_secret_identity()
        if self.store.get_secret(namespace, name) is not None:
            return
        try:
            self.store.create_secret(new_gcp_secret(name, namespace, FAKE_CREDENTIALS))
        except Exception as e:
            if not matches_already_exists_error(e):
                raise

    def _delete_fake_secret(self) -> None:
        namespace, name = self._credential_secret_identity()
        if not name:
            return
        try:
            self.store.delete_secret(namespace, name)
        except Exception as e:
            if not matches_not_found_error(e):
                raise

    def _update_fake_project_claim_state(self) -> None:
        if self.state == CLAIM_STATUS_READY and self.status.get("conditions") == []:
            return
        self.status["state"] = CLAIM_STATUS_READY
        self.status["conditions"] = []
        self.status_update()

    # Deletion

    def ensure_project_claim_deletion_processed(self) -> OperationResult:
        """Finalize a claim that is being deleted.

        The claim keeps its finalizer until its ProjectReference is gone, so a
        provisioned project is never orphaned.
        """
        if not self.is_deleting():
            return continue_processing()

        try:
            finalized = self.finalize_project_claim()
        except Exception as e:
            return requeue_after(DELETION_REQUEUE_DELAY, wrap(e, "could not finalize ProjectClaim"))

        if not finalized:
            return requeue_after(DELETION_REQUEUE_DELAY)
        return stop_processing()

    def finalize_project_claim(self) -> bool:
        """Delete the backing reference, then drop finalizers once it is gone.

        Returns:
            True once the claim's finalizers were released
        """
        namespace, name = project_reference_identity(self.claim)
        reference = self.store.get_project_reference(namespace, name)

        if reference is None:
            self.ensure_ccs_secret_finalizer_deleted()
            self.ensure_project_claim_finalizer_deleted()
            return True

        if not reference["metadata"].get("deletionTimestamp"):
            self.logger.info(f"Deleting ProjectReference {namespace}/{name}")
            try:
                self.store.delete_project_reference(namespace, name)
            except Exception as e:
                if not matches_not_found_error(e):
                    raise
        return False

    def ensure_ccs_secret_finalizer_deleted(self) -> None:
        if not self.spec.get("ccs"):
            return
        secret_ref = self.spec.get("ccsSecretRef") or {}
        secret = self.store.get_secret(secret_ref.get("namespace", ""), secret_ref.get("name", ""))
        if secret is None:
            return
        finalizers = secret["metadata"].get("finalizers") or []
        if CCS_SECRET_FINALIZER not in finalizers:
            return
        secret["metadata"]["finalizers"] = [f for f in finalizers if f != CCS_SECRET_FINALIZER]
        self.store.update_secret(secret)

    def ensure_project_claim_finalizer_deleted(self) -> None:
        finalizers = self.meta.get("finalizers") or []
        if FINALIZER not in finalizers:
            return
        self.meta["finalizers"] = [f for f in finalizers if f != FINALIZER]
        self.update()

    # Provisioning

    def ensure_project_claim_initialized(self) -> OperationResult:
        if self.status.get("conditions") is not None:
            return continue_processing()
        self.status["conditions"] = []
        self.status_update()
        return stop_processing()

    def ensure_region_supported(self) -> OperationResult:
        """Reject claims for disabled regions; CCS claims are always accepted."""
        error: Exception | None = None
        previous_state = self.state

        if not self.spec.get("ccs"):
            config = load_operator_config(self.store, self.operator_namespace)
            region = self.spec.get("region", "")
            if not config.is_region_supported(region):
                error = RegionNotSupportedError(f"region {region} is not supported")
                self.status["state"] = CLAIM_STATUS_ERROR
            elif self.state == CLAIM_STATUS_ERROR:
                self.status["state"] = CLAIM_STATUS_PENDING

        conditions = self.status.setdefault("conditions", [])
        # A claim parked on an unsupported region is not rewritten on every pass.
        invalid = find_condition(conditions, COND_INVALID)
        if error is not None and records_error(invalid, REASON_REGION_CHECK_FAILED, error):
            changed = False
        else:
            changed = record_error_condition(conditions, COND_INVALID, REASON_REGION_CHECK_FAILED, error, now=self.now())
        if changed or self.state != previous_state:
            self.status_update()
            return stop_processing()
        if error is not None:
            return stop_processing()
        return continue_processing()

    def project_reference_exists(self) -> bool:
        namespace, name = project_reference_identity(self.claim)
        return self.store.get_project_reference(namespace, name) is not None

    def ensure_project_reference_exists(self) -> OperationResult:
        if self.project_reference_exists():
            return continue_processing()

        reference = new_matching_project_reference(self.claim)
        try:
            self.store.create_project_reference(reference)
        except Exception as e:
            if not matches_already_exists_error(e):
                raise
        self.logger.info(
            f"Created ProjectReference {reference['metadata']['namespace']}/{reference['metadata']['name']}"
        )
        return continue_processing()

    def ensure_project_reference_link(self) -> OperationResult:
        namespace, name = project_reference_identity(self.claim)
        link = self.spec.get("projectReferenceCRLink") or {}
        if link.get("name") == name and link.get("namespace") == namespace:
            return continue_processing()

        self.spec["projectReferenceCRLink"] = {"name": name, "namespace": namespace}
        self.update()
        return stop_processing()

    def ensure_finalizer(self) -> OperationResult:
        finalizers = self.meta.get("finalizers") or []
        if FINALIZER in finalizers:
            return continue_processing()

        self.meta["finalizers"] = finalizers + [FINALIZER]
        self.update()
        return stop_processing()

    def ensure_ccs_secret_finalizer(self) -> OperationResult:
        """Protect the customer-supplied credentials secret while the claim exists."""
        if not self.spec.get("ccs"):
            return continue_processing()

        secret_ref = self.spec.get("ccsSecretRef") or {}
        namespace, name = secret_ref.get("namespace", ""), secret_ref.get("name", "")
        secret = self.store.get_secret(namespace, name)
        if secret is None:
            return requeue_with_error(OperatorError(f"CCS secret {namespace}/{name} not found"))

        finalizers = secret["metadata"].get("finalizers") or []
        if CCS_SECRET_FINALIZER in finalizers:
            return continue_processing()

        secret["metadata"]["finalizers"] = finalizers + [CCS_SECRET_FINALIZER]
        self.store.update_secret(secret)
        return continue_processing()

    def ensure_project_claim_state(self, state: str) -> OperationResult:
        """Move the claim forward to a state, never backward.

        Pending is only entered from an unset state or Error; PendingProject
        only from Pending.
        """
        current = self.state
        if current == state:
            return continue_processing()
        if state == CLAIM_STATUS_PENDING and current not in ("", CLAIM_STATUS_ERROR):
            return continue_processing()
        if state == CLAIM_STATUS_PENDING_PROJECT and current != CLAIM_STATUS_PENDING:
            return continue_processing()

        self.status["state"] = state
        self.status_update()
        self.logger.info(f"ProjectClaim {self.meta['namespace']}/{self.meta['name']} is now {state}")
        return stop_processing()

    def ensure_project_claim_pending(self) -> OperationResult:
        return self.ensure_project_claim_state(CLAIM_STATUS_PENDING)

    def ensure_project_claim_pending_project(self) -> OperationResult:
        return self.ensure_project_claim_state(CLAIM_STATUS_PENDING_PROJECT)
