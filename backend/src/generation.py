"""
Resolve which ReplicaSet belongs to a Deployment's current rollout generation.
"""
import logging
from datetime import timezone
from typing import List, Optional, Sequence

from kube_types import ReplicaSetSnapshot, WorkloadSnapshot

logger = logging.getLogger(__name__)


def _newest_first(rs: ReplicaSetSnapshot):
    # Newest first, then name ascending; missing timestamps sort last
    created = rs.creation_timestamp
    if created is None:
        return (1, 0.0, rs.name)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (0, -created.timestamp(), rs.name)


def resolve_active_replica_set(
    workload: WorkloadSnapshot,
    replica_sets: Sequence[ReplicaSetSnapshot],
) -> Optional[ReplicaSetSnapshot]:
    """
    Find the ReplicaSet owned by the workload at its current revision.

    Args:
        workload: Deployment snapshot
        replica_sets: ReplicaSets matching the Deployment's selector

    Returns:
        The active ReplicaSet, or None when the generation has not materialized
    """
    if not workload.found:
        return None

    candidates = [
        rs for rs in replica_sets
        if rs.owned_by(workload.owner_uid) and rs.revision_marker == workload.revision_marker
    ]
    if not candidates:
        return None
    if len(candidates) > 1:
        candidates.sort(key=_newest_first)
        logger.warning(
            f"⚠️ {len(candidates)} ReplicaSets match {workload.name} revision "
            f"{workload.revision_marker}; using {candidates[0].name}"
        )
    return candidates[0]


def running_replica_sets(replica_sets: Sequence[ReplicaSetSnapshot]) -> List[ReplicaSetSnapshot]:
    """ReplicaSets that still have pods."""
    return [rs for rs in replica_sets if rs.observed_replicas > 0]
