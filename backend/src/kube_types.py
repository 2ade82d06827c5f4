"""
Type definitions for Kubernetes objects seen by the rollout watcher.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

from kube_errors import MalformedSnapshot

REVISION_ANNOTATION = "deployment.kubernetes.io/revision"

# Order used for the status line; "replicas" is always displayed.
COUNT_LABELS = ("replicas", "updatedReplicas", "availableReplicas", "unavailableReplicas")


def as_int(value: Any) -> int:
    """Lenient integer conversion: missing or garbage values count as 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def as_mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class ReplicaCounts:
    """Replica counts from a Deployment status."""
    replicas: int = 0
    updated_replicas: int = 0
    available_replicas: int = 0
    unavailable_replicas: int = 0
    reported: FrozenSet[str] = frozenset()

    @classmethod
    def from_status(cls, status: Dict[str, Any]) -> "ReplicaCounts":
        return cls(
            replicas=as_int(status.get("replicas")),
            updated_replicas=as_int(status.get("updatedReplicas")),
            available_replicas=as_int(status.get("availableReplicas")),
            unavailable_replicas=as_int(status.get("unavailableReplicas")),
            reported=frozenset(label for label in COUNT_LABELS if status.get(label) is not None),
        )

    def by_label(self) -> Dict[str, int]:
        return {
            "replicas": self.replicas,
            "updatedReplicas": self.updated_replicas,
            "availableReplicas": self.available_replicas,
            "unavailableReplicas": self.unavailable_replicas,
        }


@dataclass(frozen=True)
class ProgressCondition:
    """The Deployment "Progressing" condition."""
    type: str
    status: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class WorkloadSnapshot:
    """Declared and observed state of a Deployment at one polling instant."""
    found: bool
    name: str = ""
    desired_replicas: int = 0
    progress_deadline_seconds: Optional[int] = None
    replica_counts: ReplicaCounts = field(default_factory=ReplicaCounts)
    progress_condition: Optional[ProgressCondition] = None
    revision_marker: str = ""
    owner_uid: str = ""
    selector_labels: Dict[str, str] = field(default_factory=dict)
    max_unavailable: Union[int, str, None] = None

    @classmethod
    def not_found(cls, name: str = "") -> "WorkloadSnapshot":
        return cls(found=False, name=name)


@dataclass(frozen=True)
class ReplicaSetSnapshot:
    """One ReplicaSet child together with its own rollout sub-verdict."""
    name: str
    owner_uids: Tuple[str, ...] = ()
    revision_marker: str = ""
    desired_replicas: int = 0
    observed_replicas: int = 0
    creation_timestamp: Optional[datetime] = None
    succeeded: bool = False
    failed: bool = False
    timed_out: bool = False
    failure_message: Optional[str] = None
    timeout_message: Optional[str] = None

    def owned_by(self, uid: str) -> bool:
        return bool(uid) and uid in self.owner_uids


@dataclass(frozen=True)
class RolloutTolerance:
    """Partial rollout success policy.

    ``fixed`` needs more than ``replicas`` updated and available replicas,
    ``dynamic`` derives that number from the Deployment's maxUnavailable.
    """
    mode: str
    replicas: Optional[int] = None

    FIXED = "fixed"
    DYNAMIC = "dynamic"

    @classmethod
    def fixed(cls, replicas: int) -> "RolloutTolerance":
        if replicas < 0:
            raise ValueError(f"tolerance replicas must be >= 0, got {replicas}")
        return cls(mode=cls.FIXED, replicas=replicas)

    @classmethod
    def dynamic(cls) -> "RolloutTolerance":
        return cls(mode=cls.DYNAMIC)

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["RolloutTolerance"]:
        """Parse "dynamic" or a replica count. Empty, "none" and "full" mean strict mode."""
        if text is None:
            return None
        value = text.strip().lower()
        if value in ("", "none", "full"):
            return None
        if value == cls.DYNAMIC:
            return cls.dynamic()
        if not value.isdigit():
            raise ValueError(f"invalid rollout tolerance: {text!r}")
        return cls.fixed(int(value))

    def __str__(self) -> str:
        return self.mode if self.mode == self.DYNAMIC else f"{self.mode}({self.replicas})"


class VerdictState(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating one polling tick."""
    state: VerdictState
    status: Optional[str] = None
    failure_message: Optional[str] = None
    timeout_message: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state != VerdictState.IN_PROGRESS


def workload_from_json(data: Dict[str, Any]) -> WorkloadSnapshot:
    """
    Build a WorkloadSnapshot from a Deployment JSON document.

    Args:
        data: Deployment as returned by the API (camelCase keys)

    Returns:
        WorkloadSnapshot with found=True

    Raises:
        MalformedSnapshot: if metadata, spec or status is missing
    """
    if not isinstance(data, dict):
        raise MalformedSnapshot(f"Deployment document must be an object, got {type(data).__name__}")
    for section in ("metadata", "spec", "status"):
        if not isinstance(data.get(section), dict):
            raise MalformedSnapshot(f"Deployment document has no {section!r} section")

    metadata = data["metadata"]
    spec = data["spec"]
    status = data["status"]

    progress = None
    for condition in status.get("conditions") or []:
        if isinstance(condition, dict) and condition.get("type") == "Progressing":
            progress = ProgressCondition(
                type="Progressing",
                status=str(condition.get("status")),
                reason=condition.get("reason"),
            )
            break

    deadline = spec.get("progressDeadlineSeconds")
    rolling_update = as_mapping(as_mapping(spec.get("strategy")).get("rollingUpdate"))
    selector = as_mapping(as_mapping(spec.get("selector")).get("matchLabels"))

    return WorkloadSnapshot(
        found=True,
        name=metadata.get("name") or "",
        desired_replicas=as_int(spec.get("replicas")),
        progress_deadline_seconds=as_int(deadline) if deadline is not None else None,
        replica_counts=ReplicaCounts.from_status(status),
        progress_condition=progress,
        revision_marker=str(as_mapping(metadata.get("annotations")).get(REVISION_ANNOTATION) or ""),
        owner_uid=metadata.get("uid") or "",
        selector_labels={str(k): str(v) for k, v in selector.items()},
        max_unavailable=rolling_update.get("maxUnavailable"),
    )
