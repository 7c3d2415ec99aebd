"""Ensure operations for a single ProjectReference and its linked ProjectClaim."""

from __future__ import annotations

import hashlib
import logging
import random
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from ..config import OperatorConfig
from ..constants import (
    BILLING_API,
    CCS_CONSOLE_ACCESS_ROLES,
    CCS_READ_ONLY_CONSOLE_ACCESS_ROLES,
    CLAIM_PENDING_REQUEUE_DELAY,
    CLAIM_STATUS_PENDING_PROJECT,
    CLAIM_STATUS_READY,
    COMPUTE_API_GRACE_PERIOD,
    COMPUTE_API_INIT_DELAY,
    COND_COMPUTE_API_READY,
    COND_INVALID,
    DELETION_REQUEUE_DELAY,
    FINALIZER,
    LIFECYCLE_ACTIVE,
    LIFECYCLE_DELETE_REQUESTED,
    PROJECT_ID_HASH_LENGTH,
    PROJECT_ID_PREFIX,
    REASON_PROJECT_INACTIVE,
    REASON_QUERY_ZONES_FAILED,
    REASON_QUERY_ZONES_SUCCEEDED,
    REFERENCE_STATUS_CREATING,
    REFERENCE_STATUS_ERROR,
    REFERENCE_STATUS_READY,
    REQUIRED_APIS,
    REQUIRED_SA_ROLES,
    SERVICE_ACCOUNT_INIT_DELAY,
    SERVICE_ACCOUNT_NAME,
    SERVICE_ACCOUNT_SUFFIX_ALPHABET,
    SERVICE_ACCOUNT_SUFFIX_LENGTH,
    SHARED_VPC_ROLES,
)
from ..services.gcp.base import GCPClient
from ..store import Store
from ..utils import bindings
from ..utils.bindings import IamMemberType
from ..utils.conditions import (
    CONDITION_FALSE,
    CONDITION_TRUE,
    find_condition,
    record_error_condition,
    set_condition,
    transitioned_before,
)
from ..utils.errors import (
    InactiveProjectError,
    OperatorError,
    UnexpectedLifecycleStateError,
    error_reason,
    matches_already_exists_error,
    matches_compute_api_not_ready_error,
    matches_not_found_error,
    wrap,
)
from ..utils.operation import (
    OperationResult,
    continue_processing,
    requeue,
    requeue_after,
    requeue_with_error,
    stop_processing,
)
from ..utils.secrets import decode_service_account_key, new_gcp_secret


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_project_id() -> str:
    """Generate a project ID such as ``o-1a2b3c4d``.

    The ID is short, lowercase, starts with a letter and fits the 6 to 30
    character bounds Google Cloud enforces.
    """
    digest = hashlib.sha256(uuid.uuid4().bytes).hexdigest()
    return PROJECT_ID_PREFIX + digest[:PROJECT_ID_HASH_LENGTH]


def generate_service_account_name() -> str:
    suffix = "".join(random.choices(SERVICE_ACCOUNT_SUFFIX_ALPHABET, k=SERVICE_ACCOUNT_SUFFIX_LENGTH))
    return f"{SERVICE_ACCOUNT_NAME}-{suffix}"


def is_managed_service_account_name(name: str) -> bool:
    prefix = SERVICE_ACCOUNT_NAME + "-"
    return name == SERVICE_ACCOUNT_NAME or (name.startswith(prefix) and len(name) > len(prefix))


def get_matching_claim(store: Store, reference: dict[str, Any]) -> dict[str, Any]:
    """Load the ProjectClaim a reference links to.

    Raises:
        OperatorError: If the link is empty or the claim does not exist
    """
    link = reference.get("spec", {}).get("projectClaimCRLink") or {}
    namespace, name = link.get("namespace", ""), link.get("name", "")
    if not name:
        raise OperatorError(f"ProjectReference {reference['metadata']['name']} has no ProjectClaim link")

    claim = store.get_project_claim(namespace, name)
    if claim is None:
        raise OperatorError(f"ProjectClaim {namespace}/{name} not found")
    return claim


class ReferenceAdapter:
    """Wraps one ProjectReference and its ProjectClaim for a single pass.

    The adapter owns its copy of the claim for the pass; both objects are
    replaced with what the store returns after every write.
    """

    def __init__(
        self,
        reference: dict[str, Any],
        claim: dict[str, Any],
        store: Store,
        gcp_client: GCPClient,
        config: OperatorConfig,
        logger: logging.Logger,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.reference = reference
        self.claim = claim
        self.store = store
        self.gcp_client = gcp_client
        self.config = config
        self.logger = logger
        self.now = now
        self.sleep = sleep

    @property
    def meta(self) -> dict[str, Any]:
        return self.reference["metadata"]

    @property
    def spec(self) -> dict[str, Any]:
        return self.reference.setdefault("spec", {})

    @property
    def status(self) -> dict[str, Any]:
        return self.reference.setdefault("status", {})

    @property
    def state(self) -> str:
        return self.status.get("state") or ""

    @property
    def project_id(self) -> str:
        return self.spec.get("gcpProjectID") or ""

    @property
    def claim_spec(self) -> dict[str, Any]:
        return self.claim.setdefault("spec", {})

    @property
    def claim_status(self) -> dict[str, Any]:
        return self.claim.setdefault("status", {})

    def is_ccs(self) -> bool:
        return bool(self.spec.get("ccs"))

    def is_deleting(self) -> bool:
        return bool(self.meta.get("deletionTimestamp"))

    def update(self) -> None:
        self.reference = self.store.update_project_reference(self.reference)

    def status_update(self) -> None:
        self.reference = self.store.update_project_reference_status(self.reference)

    def update_claim(self) -> None:
        self.claim = self.store.update_project_claim(self.claim)

    def update_claim_status(self) -> None:
        self.claim = self.store.update_project_claim_status(self.claim)

    def set_project_reference_condition(
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

    # Initialization and deletion

    def ensure_project_reference_initialized(self) -> OperationResult:
        if self.status.get("conditions") is not None:
            return continue_processing()
        self.status["conditions"] = []
        self.status_update()
        return stop_processing()

    def ensure_deletion_processed(self) -> OperationResult:
        if not self.is_deleting():
            return continue_processing()

        try:
            self.ensure_project_cleaned_up()
        except Exception as e:
            return requeue_after(DELETION_REQUEUE_DELAY, e)
        return stop_processing()

    def ensure_project_cleaned_up(self) -> None:
        """Tear down cloud resources in dependency order, then release the reference."""
        self.delete_service_account()
        if self.is_ccs():
            self.remove_ccs_console_access()
        else:
            self.delete_project()
        self.delete_credentials()
        self.ensure_finalizer_deleted()

    def delete_service_account(self) -> None:
        account_name = self.spec.get("serviceAccountName")
        if not account_name or not self.project_id:
            return

        try:
            account = self.gcp_client.get_service_account(account_name)
        except Exception as e:
            if matches_not_found_error(e):
                return
            raise wrap(e, "could not get service account") from e

        email = account["email"]
        try:
            self.delete_iam_policy(email, IamMemberType.SERVICE_ACCOUNT)
        except Exception as e:
            raise wrap(e, "could not delete IAM policy for service account") from e

        try:
            self.gcp_client.delete_service_account(email)
        except Exception as e:
            if not matches_not_found_error(e):
                raise wrap(e, "could not delete service account") from e
        self.logger.info(f"Deleted service account {email}")

    def delete_project(self) -> None:
        if not self.project_id:
            return

        project = self._find_project(self.project_id)
        if project is None:
            return

        lifecycle = project.get("lifecycleState")
        if lifecycle == LIFECYCLE_ACTIVE:
            try:
                self.gcp_client.delete_project(self.project_id)
            except Exception as e:
                raise wrap(e, f"could not delete project {self.project_id}") from e
            self.logger.info(f"Requested deletion of project {self.project_id}")
        elif lifecycle == LIFECYCLE_DELETE_REQUESTED:
            self.logger.info(f"Project {self.project_id} is already pending deletion")
        else:
            raise UnexpectedLifecycleStateError(
                f"project {self.project_id} has unexpected lifecycle state {lifecycle}"
            )

    def remove_ccs_console_access(self) -> None:
        if not self.project_id:
            return
        for email in self.config.ccs_console_access + self.config.ccs_read_only_console_access:
            try:
                self.delete_iam_policy(email, IamMemberType.GOOGLE_GROUP)
            except Exception as e:
                raise wrap(e, f"could not remove console access for {email}") from e

    def delete_credentials(self) -> None:
        link = self.claim_spec.get("gcpCredentialSecret") or {}
        name = link.get("name")
        if not name:
            return
        try:
            self.store.delete_secret(link.get("namespace", ""), name)
        except Exception as e:
            if not matches_not_found_error(e):
                raise

    def ensure_finalizer_deleted(self) -> None:
        finalizers = self.meta.get("finalizers") or []
        if FINALIZER not in finalizers:
            return
        self.meta["finalizers"] = [f for f in finalizers if f != FINALIZER]
        self.update()

    # Claim promotion

    def ensure_project_claim_ready(self) -> OperationResult:
        """Promote the claim to Ready once the project is usable."""
        if self.state != REFERENCE_STATUS_READY:
            return continue_processing()
        if self.claim_status.get("state") == CLAIM_STATUS_READY:
            return stop_processing()

        result = self.ensure_claim_availability_zones_set()
        if result.halts:
            return result

        if self.ensure_claim_project_id_set():
            self.update_claim()

        self.claim_status["state"] = CLAIM_STATUS_READY
        self.update_claim_status()
        self.logger.info(
            f"ProjectClaim {self.claim['metadata']['namespace']}/{self.claim['metadata']['name']} is Ready"
        )
        return stop_processing()

    def ensure_claim_availability_zones_set(self) -> OperationResult:
        """Copy the region's zones into the claim.

        The Compute Engine API takes a while to come up on a new project. Until
        it does, the ComputeApiReady condition is held False and the pass is
        requeued; once it has been failing for longer than the grace period the
        error is surfaced.
        """
        if self.claim_spec.get("availabilityZones"):
            return continue_processing()

        region = self.claim_spec.get("region", "")
        conditions = self.status.setdefault("conditions", [])
        now = self.now()

        try:
            zones = self.gcp_client.list_availability_zones(self.project_id, region)
        except Exception as e:
            if not matches_compute_api_not_ready_error(e):
                return requeue_with_error(wrap(e, "could not list availability zones"))

            prior = find_condition(conditions, COND_COMPUTE_API_READY)
            cutoff = now - timedelta(seconds=COMPUTE_API_GRACE_PERIOD)
            expired = prior is not None and transitioned_before(prior, cutoff)

            set_condition(
                conditions, COND_COMPUTE_API_READY, CONDITION_FALSE, REASON_QUERY_ZONES_FAILED, error_reason(e), now=now
            )
            self.status_update()

            if expired:
                return requeue_with_error(wrap(e, "Compute Engine API is still not ready"))
            self.logger.info(f"Compute Engine API not ready on project {self.project_id}, waiting")
            return requeue_after(COMPUTE_API_INIT_DELAY)

        set_condition(
            conditions,
            COND_COMPUTE_API_READY,
            CONDITION_TRUE,
            REASON_QUERY_ZONES_SUCCEEDED,
            f"found {len(zones)} availability zones in {region}",
            now=now,
        )
        self.status_update()

        self.claim_spec["availabilityZones"] = zones
        self.update_claim()
        return requeue()

    def ensure_claim_project_id_set(self) -> bool:
        """Copy the project ID into the claim; returns True if the claim changed."""
        if self.claim_spec.get("gcpProjectID"):
            return False
        self.claim_spec["gcpProjectID"] = self.project_id
        return True

    def verify_project_claim_pending(self) -> OperationResult:
        if self.claim_status.get("state") != CLAIM_STATUS_PENDING_PROJECT:
            return requeue_after(CLAIM_PENDING_REQUEUE_DELAY)
        return continue_processing()

    # Provisioning

    def ensure_project_reference_status_creating(self) -> OperationResult:
        """Enter Creating; a reference in Error stays parked here."""
        if self.state == REFERENCE_STATUS_ERROR:
            self.logger.warning(
                f"ProjectReference {self.meta['namespace']}/{self.meta['name']} is in state Error, skipping"
            )
            return stop_processing()
        if self.state:
            return continue_processing()

        self.status["state"] = REFERENCE_STATUS_CREATING
        self.status_update()
        return stop_processing()

    def ensure_project_id(self) -> OperationResult:
        if self.project_id:
            return continue_processing()

        self.spec["gcpProjectID"] = generate_project_id()
        self.update()
        self.logger.info(f"Generated project ID {self.spec['gcpProjectID']}")
        return stop_processing()

    def ensure_service_account_name(self) -> OperationResult:
        # Legacy references carry exactly SERVICE_ACCOUNT_NAME, which is kept.
        if is_managed_service_account_name(self.spec.get("serviceAccountName") or ""):
            return continue_processing()

        self.spec["serviceAccountName"] = generate_service_account_name()
        self.update()
        return stop_processing()

    def ensure_finalizer_added(self) -> OperationResult:
        finalizers = self.meta.get("finalizers") or []
        if FINALIZER in finalizers:
            return continue_processing()

        self.meta["finalizers"] = finalizers + [FINALIZER]
        self.update()
        return stop_processing()

    def ensure_project_created(self) -> OperationResult:
        """Create the cloud project and link billing; CCS projects already exist."""
        if self.is_ccs():
            return continue_processing()

        try:
            self.create_project()
        except InactiveProjectError as e:
            self.logger.error(f"ProjectReference {self.meta['name']}: {e}")
            self.status["state"] = REFERENCE_STATUS_ERROR
            record_error_condition(
                self.status.setdefault("conditions", []), COND_INVALID, REASON_PROJECT_INACTIVE, e, now=self.now()
            )
            self.status_update()
            return stop_processing()
        except Exception as e:
            return requeue_with_error(e)

        try:
            self.configure_billing_api()
        except Exception as e:
            return requeue_with_error(wrap(e, "error configuring Billing API"))
        return continue_processing()

    def _find_project(self, project_id: str) -> dict[str, Any] | None:
        try:
            projects = self.gcp_client.list_projects()
        except Exception as e:
            raise wrap(e, "could not list projects") from e
        for project in projects:
            if project.get("projectId") == project_id:
                return project
        return None

    def create_project(self) -> None:
        """Create the project unless it already exists.

        A failed creation clears the stored project ID so the next pass picks
        a fresh one instead of retrying a rejected ID forever.

        Raises:
            InactiveProjectError: If the project is pending deletion
            UnexpectedLifecycleStateError: If the project is in any other non-active state
        """
        project_id = self.project_id
        project = self._find_project(project_id)
        if project is not None:
            lifecycle = project.get("lifecycleState")
            if lifecycle == LIFECYCLE_ACTIVE:
                return
            if lifecycle == LIFECYCLE_DELETE_REQUESTED:
                raise InactiveProjectError(f"project {project_id} is pending deletion and cannot be used")
            raise UnexpectedLifecycleStateError(f"project {project_id} has unexpected lifecycle state {lifecycle}")

        parent = self.config.parent_folder_id
        try:
            self.gcp_client.create_project(parent, self.claim["metadata"]["name"])
        except Exception as e:
            self.logger.error(f"Could not create project {project_id}, clearing project ID")
            self.spec["gcpProjectID"] = ""
            try:
                self.update()
            except Exception as clear_error:
                raise wrap(clear_error, f"could not clear project ID after failed creation ({e})") from e
            raise wrap(
                e, f"could not create project. Parent Folder ID: {parent}, Requested Project ID: {project_id}"
            ) from e
        self.logger.info(f"Created project {project_id} in folder {parent}")

    def configure_billing_api(self) -> None:
        enabled = self.gcp_client.list_apis(self.project_id)
        if BILLING_API not in enabled:
            self.gcp_client.enable_api(self.project_id, BILLING_API)
        self.gcp_client.create_cloud_billing_account(self.project_id, self.config.billing_account)

    def ensure_project_configured(self) -> OperationResult:
        """Enable APIs, set up the service account and its key, and grant console access."""
        try:
            self.configure_apis()
        except Exception as e:
            return requeue_with_error(wrap(e, "error configuring APIs"))

        roles = list(REQUIRED_SA_ROLES)
        if self.spec.get("sharedVPCAccess"):
            roles += SHARED_VPC_ROLES

        result = self.configure_service_account(roles)
        if result.halts:
            return result

        result = self.create_credentials()
        if result.halts:
            return result

        if self.is_ccs():
            try:
                self.grant_ccs_console_access()
            except Exception as e:
                return requeue_with_error(wrap(e, "error configuring CCS console access"))

        return continue_processing()

    def configure_apis(self) -> None:
        enabled = set(self.gcp_client.list_apis(self.project_id))
        for api in REQUIRED_APIS:
            if api in enabled:
                continue
            self.gcp_client.enable_api(self.project_id, api)
            self.logger.info(f"Enabled {api} on project {self.project_id}")

    def configure_service_account(self, roles: list[str]) -> OperationResult:
        account_name = self.spec.get("serviceAccountName", "")
        try:
            account = self.gcp_client.get_service_account(account_name)
        except Exception as e:
            if not matches_not_found_error(e):
                return requeue_with_error(wrap(e, "could not get service account"))
            try:
                account = self.gcp_client.create_service_account(account_name, account_name)
            except Exception as create_error:
                if matches_already_exists_error(create_error):
                    self.logger.info(f"Service account {account_name} is still initializing")
                    return requeue_after(SERVICE_ACCOUNT_INIT_DELAY)
                return requeue_with_error(wrap(create_error, "could not create service account"))

        try:
            self.set_iam_policy(account["email"], roles, IamMemberType.SERVICE_ACCOUNT)
        except Exception as e:
            return requeue_with_error(wrap(e, "could not update IAM policy for service account"))
        return continue_processing()

    def create_credentials(self) -> OperationResult:
        """Store a service account key in the claim's credentials secret, once."""
        link = self.claim_spec.get("gcpCredentialSecret") or {}
        namespace, name = link.get("namespace", ""), link.get("name", "")
        if self.store.get_secret(namespace, name) is not None:
            return continue_processing()

        account_name = self.spec.get("serviceAccountName", "")
        try:
            account = self.gcp_client.get_service_account(account_name)
        except Exception as e:
            if matches_not_found_error(e):
                return requeue_after(SERVICE_ACCOUNT_INIT_DELAY)
            return requeue_with_error(wrap(e, "could not get service account"))

        try:
            key = self.gcp_client.create_service_account_key(account["email"])
        except Exception as e:
            return requeue_with_error(wrap(e, "could not create service account key"))

        credentials = decode_service_account_key(key["privateKeyData"])
        try:
            self.store.create_secret(new_gcp_secret(name, namespace, credentials))
        except Exception as e:
            if not matches_already_exists_error(e):
                return requeue_with_error(wrap(e, "could not create credentials secret"))
        self.logger.info(f"Stored credentials for {account['email']} in secret {namespace}/{name}")
        return continue_processing()

    def grant_ccs_console_access(self) -> None:
        for email in self.config.ccs_console_access:
            self.set_iam_policy(email, CCS_CONSOLE_ACCESS_ROLES, IamMemberType.GOOGLE_GROUP)
        for email in self.config.ccs_read_only_console_access:
            self.set_iam_policy(email, CCS_READ_ONLY_CONSOLE_ACCESS_ROLES, IamMemberType.GOOGLE_GROUP)

    def ensure_state_ready(self) -> OperationResult:
        if self.state == REFERENCE_STATUS_READY:
            return continue_processing()

        self.status["state"] = REFERENCE_STATUS_READY
        self.status_update()
        self.logger.info(f"ProjectReference {self.meta['namespace']}/{self.meta['name']} is Ready")
        return stop_processing()

    # IAM

    def set_iam_policy(self, principal: str, roles: list[str], member_type: IamMemberType) -> bool:
        return bindings.set_iam_policy(
            self.gcp_client, self.project_id, principal, roles, member_type, sleep=self.sleep
        )

    def delete_iam_policy(self, principal: str, member_type: IamMemberType) -> bool:
        return bindings.delete_iam_policy(
            self.gcp_client, self.project_id, principal, member_type, sleep=self.sleep
        )
