"""
Rollout evaluation for Deployments.

evaluate() turns one Deployment snapshot and its ReplicaSets into a Verdict.
It performs no I/O and keeps no state, so the same inputs always give the
same verdict.
"""
from typing import Optional, Sequence

from generation import resolve_active_replica_set, running_replica_sets
from kube_types import (
    COUNT_LABELS,
    ReplicaCounts,
    ReplicaSetSnapshot,
    RolloutTolerance,
    Verdict,
    VerdictState,
    WorkloadSnapshot,
    as_int,
)

# Old and new generation may both have pods during a partial rollout
MAX_RUNNING_REPLICA_SETS = 2


def _label(label: str, count: int) -> str:
    return label[:-1] if count == 1 else label


def status_line(counts: ReplicaCounts) -> str:
    """Human readable replica counts, e.g. "3 replicas, 1 updatedReplica"."""
    values = counts.by_label()
    parts = []
    for label in COUNT_LABELS:
        if label == "replicas" or label in counts.reported:
            parts.append(f"{values[label]} {_label(label, values[label])}")
    return ", ".join(parts)


def minimum_replicas_needed(workload: WorkloadSnapshot, tolerance: RolloutTolerance) -> int:
    """
    Number of replicas a partial rollout has to exceed.

    Args:
        workload: Deployment snapshot
        tolerance: fixed or dynamic tolerance

    Returns:
        The threshold; updated and available replicas must be strictly greater
    """
    if tolerance.mode != RolloutTolerance.DYNAMIC:
        return tolerance.replicas or 0

    desired = workload.desired_replicas
    max_unavailable = workload.max_unavailable
    if isinstance(max_unavailable, str) and "%" in max_unavailable:
        percent = as_int(max_unavailable.split("%", 1)[0].strip())
        return int(desired * (100 - percent) / 100)
    return desired - as_int(max_unavailable)


def _strict_success(workload: WorkloadSnapshot, active: ReplicaSetSnapshot) -> bool:
    counts = workload.replica_counts
    return (
        active.succeeded
        and active.desired_replicas == workload.desired_replicas
        and counts.updated_replicas == workload.desired_replicas
        and counts.updated_replicas == counts.available_replicas
    )


def _partial_success(
    workload: WorkloadSnapshot,
    replica_sets: Sequence[ReplicaSetSnapshot],
    tolerance: RolloutTolerance,
) -> bool:
    minimum_needed = minimum_replicas_needed(workload, tolerance)
    counts = workload.replica_counts
    return (
        len(running_replica_sets(replica_sets)) <= MAX_RUNNING_REPLICA_SETS
        and counts.updated_replicas > minimum_needed
        and counts.available_replicas > minimum_needed
    )


def _timed_out(workload: WorkloadSnapshot, active: ReplicaSetSnapshot) -> bool:
    if workload.progress_condition is not None:
        return workload.progress_condition.status == "False"
    return active.timed_out


def _timeout_message(workload: WorkloadSnapshot, active: ReplicaSetSnapshot) -> Optional[str]:
    deadline = workload.progress_deadline_seconds
    if workload.progress_condition is None or deadline is None:
        return active.timeout_message

    message = (
        f"Deploy timed out due to progressDeadlineSeconds of {deadline} seconds, "
        f"reason: {workload.progress_condition.reason}"
    )
    if active.timeout_message:
        message += f"\n{active.timeout_message}"
    return message


def evaluate(
    workload: WorkloadSnapshot,
    replica_sets: Sequence[ReplicaSetSnapshot],
    tolerance: Optional[RolloutTolerance] = None,
) -> Verdict:
    """
    Classify a rollout from one polling tick.

    Args:
        workload: Deployment snapshot
        replica_sets: ReplicaSets matching the Deployment's selector
        tolerance: Partial rollout tolerance, None for a full rollout

    Returns:
        Verdict for this tick
    """
    if not workload.found:
        return Verdict(state=VerdictState.NOT_FOUND)

    status = status_line(workload.replica_counts)
    active = resolve_active_replica_set(workload, replica_sets)
    if active is None:
        return Verdict(state=VerdictState.IN_PROGRESS, status=status)

    if active.failed:
        return Verdict(
            state=VerdictState.FAILED,
            status=status,
            failure_message=active.failure_message,
        )

    if tolerance is None:
        succeeded = _strict_success(workload, active)
    else:
        succeeded = _partial_success(workload, replica_sets, tolerance)
    if succeeded:
        return Verdict(state=VerdictState.SUCCEEDED, status=status)

    if _timed_out(workload, active):
        return Verdict(
            state=VerdictState.TIMED_OUT,
            status=status,
            timeout_message=_timeout_message(workload, active),
        )

    return Verdict(state=VerdictState.IN_PROGRESS, status=status)
