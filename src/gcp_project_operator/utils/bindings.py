"""IAM policy binding reconciliation."""

from __future__ import annotations

import copy
import time
from enum import Enum
from typing import Any, Callable

from ..constants import IAM_POLICY_MAX_RETRIES, IAM_POLICY_RETRY_DELAY
from .errors import matches_already_exists_error

Bindings = list[dict[str, Any]]


class IamMemberType(str, Enum):
    """Kind of principal a binding member refers to."""

    SERVICE_ACCOUNT = "serviceAccount"
    GOOGLE_GROUP = "group"


def member_name(principal: str, member_type: IamMemberType) -> str:
    """Return the IAM member string, e.g. ``group:admins@example.com``."""
    return f"{member_type.value}:{principal}"


def add_or_update_bindings(
    existing: Bindings,
    roles: list[str],
    principal: str,
    member_type: IamMemberType,
) -> tuple[Bindings, bool]:
    """Merge the principal into the bindings for every required role.

    Existing bindings are never mutated; the returned list holds copies.

    Args:
        existing: Bindings of the current policy
        roles: Roles the principal must hold
        principal: Service account email or group address
        member_type: Kind of principal

    Returns:
        Tuple of the merged bindings and whether anything changed
    """
    member = member_name(principal, member_type)
    required = {role: {"role": role, "members": [member]} for role in roles}

    merged: Bindings = []
    modified = False
    for binding in existing:
        binding = copy.deepcopy(binding)
        role = binding.get("role")
        if role in required:
            members = binding.setdefault("members", [])
            if member not in members:
                members.append(member)
                modified = True
            del required[role]
        merged.append(binding)

    # Roles with no binding yet, in the order they were requested
    for role in roles:
        if role in required:
            merged.append(required.pop(role))
            modified = True

    return merged, modified


def remove_or_update_bindings(
    existing: Bindings,
    principal: str,
    member_type: IamMemberType,
) -> tuple[Bindings, bool]:
    """Remove the principal from every binding that lists it.

    Bindings left without members are dropped since the IAM API rejects them.

    Args:
        existing: Bindings of the current policy
        principal: Service account email or group address
        member_type: Kind of principal

    Returns:
        Tuple of the remaining bindings and whether anything changed
    """
    member = member_name(principal, member_type)

    result: Bindings = []
    modified = False
    for binding in existing:
        binding = copy.deepcopy(binding)
        members = binding.get("members", [])
        if member in members:
            binding["members"] = [m for m in members if m != member]
            modified = True
            if not binding["members"]:
                continue
        result.append(binding)

    return result, modified


def set_iam_policy(
    client: Any,
    project_id: str,
    principal: str,
    roles: list[str],
    member_type: IamMemberType,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Grant roles to a principal on a project.

    Returns:
        True if the policy was written
    """
    return _update_iam_policy(
        client,
        project_id,
        lambda bindings: add_or_update_bindings(bindings, roles, principal, member_type),
        sleep,
    )


def delete_iam_policy(
    client: Any,
    project_id: str,
    principal: str,
    member_type: IamMemberType,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Revoke every role a principal holds on a project.

    Returns:
        True if the policy was written
    """
    return _update_iam_policy(
        client,
        project_id,
        lambda bindings: remove_or_update_bindings(bindings, principal, member_type),
        sleep,
    )


def _update_iam_policy(
    client: Any,
    project_id: str,
    merge: Callable[[Bindings], tuple[Bindings, bool]],
    sleep: Callable[[float], None],
) -> bool:
    """Read-modify-write the project policy, retrying on concurrent edits.

    A 409 from set means the policy etag is stale; the policy is read again
    and the merge redone, at most IAM_POLICY_MAX_RETRIES times.
    """
    retries = 0
    while True:
        policy = client.get_iam_policy(project_id)
        bindings, modified = merge(policy.get("bindings", []))
        if not modified:
            return False

        policy = dict(policy)
        policy["bindings"] = bindings
        try:
            client.set_iam_policy(project_id, policy)
            return True
        except Exception as e:
            if not matches_already_exists_error(e) or retries >= IAM_POLICY_MAX_RETRIES:
                raise
            retries += 1
            sleep(IAM_POLICY_RETRY_DELAY)
