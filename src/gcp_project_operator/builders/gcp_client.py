"""Builder for Google Cloud clients."""

from __future__ import annotations

from typing import Any

from ..constants import OPERATOR_NAMESPACE, ORG_CREDENTIALS_SECRET_NAME
from ..services.gcp.client import GoogleCloudClient
from ..utils.secrets import get_gcp_credentials_from_secret


def credentials_secret_for_reference(
    reference: dict[str, Any],
    operator_namespace: str = OPERATOR_NAMESPACE,
) -> tuple[str, str]:
    """Return the (namespace, name) of the secret holding cloud credentials.

    CCS references use the customer-supplied secret; everything else uses the
    operator's organization credentials.
    """
    spec = reference.get("spec", {})
    if spec.get("ccs"):
        secret_ref = spec.get("ccsSecretRef") or {}
        return secret_ref.get("namespace", ""), secret_ref.get("name", "")
    return operator_namespace, ORG_CREDENTIALS_SECRET_NAME


def create_gcp_client_for_reference(
    store: Any,
    reference: dict[str, Any],
    operator_namespace: str = OPERATOR_NAMESPACE,
) -> GoogleCloudClient:
    """Create a Google Cloud client bound to the reference's project.

    Args:
        store: Store used to read the credentials secret
        reference: ProjectReference object
        operator_namespace: Namespace holding the organization credentials

    Returns:
        Client for the reference's project

    Raises:
        ValueError: If the credentials secret is missing or incomplete
    """
    namespace, name = credentials_secret_for_reference(reference, operator_namespace)
    secret = store.get_secret(namespace, name)
    if secret is None:
        raise ValueError(f"credentials secret {namespace}/{name} not found")

    project_id = reference.get("spec", {}).get("gcpProjectID", "")
    return GoogleCloudClient(project_id, get_gcp_credentials_from_secret(secret))
