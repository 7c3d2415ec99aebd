"""Constants for the GCP Project Operator."""

# API Group
API_GROUP = "gcp.managed.openshift.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_PROJECT_CLAIM = "ProjectClaim"
KIND_PROJECT_REFERENCE = "ProjectReference"

# Resource Plurals
PLURAL_PROJECT_CLAIMS = "projectclaims"
PLURAL_PROJECT_REFERENCES = "projectreferences"

# Namespaces and well-known objects
OPERATOR_NAMESPACE = "gcp-project-operator"
PROJECT_REFERENCE_NAMESPACE = OPERATOR_NAMESPACE
ORG_CREDENTIALS_SECRET_NAME = "gcp-project-operator-credentials"
OPERATOR_CONFIGMAP_NAME = "gcp-project-operator"

# Annotations
ANNOTATION_FAKE_PROJECT_CLAIM = "managed.openshift.com/fake"

# Finalizers
FINALIZER = f"finalizer.{API_GROUP}"
CCS_SECRET_FINALIZER = f"{FINALIZER}/ccs"

# Field Manager
FIELD_MANAGER = "gcp-project-operator"
CONTROLLER_NAME = "gcp-project-operator"

# ProjectClaim states
CLAIM_STATUS_PENDING = "Pending"
CLAIM_STATUS_PENDING_PROJECT = "PendingProject"
CLAIM_STATUS_READY = "Ready"
CLAIM_STATUS_ERROR = "Error"

# ProjectReference states
REFERENCE_STATUS_CREATING = "Creating"
REFERENCE_STATUS_READY = "Ready"
REFERENCE_STATUS_ERROR = "Error"

# Condition Types
COND_ERROR = "Error"
COND_INVALID = "Invalid"
COND_COMPUTE_API_READY = "ComputeApiReady"

# Condition Reasons
REASON_RECONCILE_ERROR = "ReconcileError"
REASON_REGION_CHECK_FAILED = "RegionCheckFailed"
REASON_QUERY_ZONES_SUCCEEDED = "QueryAvailabilityZonesSucceeded"
REASON_QUERY_ZONES_FAILED = "QueryAvailabilityZonesFailed"
REASON_PROJECT_INACTIVE = "ProjectInactive"
RESOLVED_SUFFIX = "Resolved"

# Event Reasons
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"

# Secrets
CREDENTIALS_SECRET_KEY = "osServiceAccount.json"
CREDENTIALS_SECRET_FALLBACK_KEY = "key.json"

# Generated names
PROJECT_ID_PREFIX = "o-"
PROJECT_ID_HASH_LENGTH = 8
SERVICE_ACCOUNT_NAME = "osd-managed-admin"
SERVICE_ACCOUNT_SUFFIX_LENGTH = 8
# Same alphabet as k8s.io/apimachinery utilrand: no vowels, no confusable digits.
SERVICE_ACCOUNT_SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"

# Fake claims
FAKE_PROJECT_ID = "fakeProjectClaim"
FAKE_REGION = "fakeRegion"
FAKE_AVAILABILITY_ZONES = ["fake-az-a", "fake-az-b", "fake-az-c"]
FAKE_CREDENTIALS = "I-am-fake-pass"

# Timing (seconds)
DELETION_REQUEUE_DELAY = 5.0
CLAIM_PENDING_REQUEUE_DELAY = 5.0
SERVICE_ACCOUNT_INIT_DELAY = 30.0
COMPUTE_API_INIT_DELAY = 30.0
COMPUTE_API_GRACE_PERIOD = 600.0
IAM_POLICY_MAX_RETRIES = 3
IAM_POLICY_RETRY_DELAY = 1.0
ENABLE_API_MAX_RETRIES = 3
ENABLE_API_RETRY_DELAY = 1.0

# Cloud project lifecycle states
LIFECYCLE_ACTIVE = "ACTIVE"
LIFECYCLE_DELETE_REQUESTED = "DELETE_REQUESTED"
LIFECYCLE_UNSPECIFIED = "LIFECYCLE_STATE_UNSPECIFIED"

# Provider error shapes
ACCOUNT_NOT_FOUND_MESSAGE = "Invalid grant: account not found"
COMPUTE_API_NOT_READY_PREFIXES = (
    "Compute Engine API has not been used in project",
    "Access Not Configured. Compute Engine API has not been used in project",
)

# Cloud APIs enabled on every provisioned project, in order
BILLING_API = "cloudbilling.googleapis.com"
REQUIRED_APIS = [
    "serviceusage.googleapis.com",
    "cloudresourcemanager.googleapis.com",
    "storage-component.googleapis.com",
    "storage-api.googleapis.com",
    "dns.googleapis.com",
    "iam.googleapis.com",
    "compute.googleapis.com",
    "cloudapis.googleapis.com",
    "iamcredentials.googleapis.com",
    "servicemanagement.googleapis.com",
    "networksecurity.googleapis.com",
]

# IAM roles granted to the managed service account
REQUIRED_SA_ROLES = [
    "roles/compute.admin",
    "roles/dns.admin",
    "roles/iam.roleAdmin",
    "roles/iam.securityAdmin",
    "roles/iam.serviceAccountAdmin",
    "roles/iam.serviceAccountKeyAdmin",
    "roles/iam.serviceAccountUser",
    "roles/storage.admin",
]

# Extra roles granted when shared VPC access is requested
SHARED_VPC_ROLES = [
    "roles/iam.securityReviewer",
    "roles/compute.loadBalancerAdmin",
    "roles/resourcemanager.tagUser",
    "roles/compute.networkAdmin",
]

# Roles granted to CCS console access groups
CCS_CONSOLE_ACCESS_ROLES = [
    "roles/compute.admin",
    "roles/editor",
    "roles/resourcemanager.projectIamAdmin",
    "roles/servicemanagement.quotaAdmin",
    "roles/iam.serviceAccountAdmin",
    "roles/serviceusage.serviceUsageAdmin",
    "roles/iam.roleAdmin",
    "roles/cloudsupport.techSupportEditor",
]

CCS_READ_ONLY_CONSOLE_ACCESS_ROLES = [
    "roles/viewer",
]
