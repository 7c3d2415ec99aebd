"""Utilities for building and reading credential secrets."""

from __future__ import annotations

import base64
from typing import Any

from ..constants import CREDENTIALS_SECRET_FALLBACK_KEY, CREDENTIALS_SECRET_KEY


def new_gcp_secret(
    name: str,
    namespace: str,
    credentials: str,
) -> dict[str, Any]:
    """Build an Opaque secret holding service account key JSON.

    Args:
        name: Name of the secret
        namespace: Namespace for the secret
        credentials: Decoded service account key JSON

    Returns:
        Secret body ready to be created
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": name,
            "namespace": namespace,
        },
        "type": "Opaque",
        "data": {
            CREDENTIALS_SECRET_KEY: base64.b64encode(credentials.encode("utf-8")).decode("utf-8"),
        },
    }


def decode_secret_value(value: str | bytes) -> str:
    """Decode a base64 value from a secret's data map."""
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return base64.b64decode(value).decode("utf-8")


def get_gcp_credentials_from_secret(secret: dict[str, Any]) -> str:
    """Read the service account key JSON from a credentials secret.

    Args:
        secret: Secret object as returned by the store

    Returns:
        Service account key JSON

    Raises:
        ValueError: If the secret carries no credentials key
    """
    data = secret.get("data") or {}
    for key in (CREDENTIALS_SECRET_KEY, CREDENTIALS_SECRET_FALLBACK_KEY):
        if data.get(key):
            return decode_secret_value(data[key])

    meta = secret.get("metadata", {})
    raise ValueError(
        f"secret {meta.get('namespace')}/{meta.get('name')} does not contain key "
        f"{CREDENTIALS_SECRET_KEY} or {CREDENTIALS_SECRET_FALLBACK_KEY}"
    )


def decode_service_account_key(private_key_data: str) -> str:
    """Decode the ``privateKeyData`` of a created service account key."""
    return decode_secret_value(private_key_data)
