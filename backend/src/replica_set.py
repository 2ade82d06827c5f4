"""
ReplicaSet evaluation: the per-generation verdicts a Deployment rollout builds on.
"""
from typing import Any, Dict, Optional

from kube_errors import MalformedSnapshot
from kube_types import REVISION_ANNOTATION, ReplicaSetSnapshot, as_int, as_mapping, parse_timestamp


def _failure_condition(status: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for condition in status.get("conditions") or []:
        if (
            isinstance(condition, dict)
            and condition.get("type") == "ReplicaFailure"
            and str(condition.get("status")) == "True"
        ):
            return condition
    return None


def timeout_message(name: str, timeout_seconds: float) -> str:
    return (
        f"ReplicaSet {name} did not become available within {int(timeout_seconds)} seconds. "
        "Kubernetes will keep trying to roll it out, but at this point it is unlikely to succeed."
    )


def replica_set_from_json(
    data: Dict[str, Any],
    elapsed_seconds: float = 0.0,
    timeout_seconds: float = 300.0,
) -> ReplicaSetSnapshot:
    """
    Build a ReplicaSetSnapshot, evaluating the ReplicaSet's own rollout.

    The ReplicaSet succeeded once every desired replica is both ready and
    available. It failed when the controller reports a ReplicaFailure
    condition (quota exceeded, admission rejected...). It timed out when it
    has not succeeded after ``timeout_seconds`` of watching.

    Args:
        data: ReplicaSet as returned by the API (camelCase keys)
        elapsed_seconds: Time spent watching the rollout so far
        timeout_seconds: Watch time after which the ReplicaSet is timed out

    Returns:
        ReplicaSetSnapshot
    """
    if not isinstance(data, dict) or not isinstance(data.get("metadata"), dict):
        raise MalformedSnapshot("ReplicaSet document has no 'metadata' section")

    metadata = data["metadata"]
    spec = as_mapping(data.get("spec"))
    status = as_mapping(data.get("status"))
    name = metadata.get("name") or ""

    desired = as_int(spec.get("replicas"))
    succeeded = (
        desired == as_int(status.get("availableReplicas"))
        and desired == as_int(status.get("readyReplicas"))
    )

    failure = _failure_condition(status)
    failure_message = None
    if failure is not None:
        reason = failure.get("reason") or "ReplicaFailure"
        failure_message = f"{reason}: {failure.get('message')}" if failure.get("message") else reason

    owners = metadata.get("ownerReferences") or []
    annotations = as_mapping(metadata.get("annotations"))

    return ReplicaSetSnapshot(
        name=name,
        owner_uids=tuple(ref.get("uid") for ref in owners if isinstance(ref, dict) and ref.get("uid")),
        revision_marker=str(annotations.get(REVISION_ANNOTATION) or ""),
        desired_replicas=desired,
        observed_replicas=as_int(status.get("replicas")),
        creation_timestamp=parse_timestamp(metadata.get("creationTimestamp")),
        succeeded=succeeded,
        failed=failure is not None,
        timed_out=not succeeded and elapsed_seconds > timeout_seconds,
        failure_message=failure_message,
        timeout_message=timeout_message(name, timeout_seconds),
    )
