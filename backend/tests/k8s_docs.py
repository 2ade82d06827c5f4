"""Builders for Deployment / ReplicaSet JSON documents used across tests."""
from typing import Any, Dict, List, Optional

from kube_errors import ResourceNotFound

DEPLOYMENT_UID = "5c1d-deployment-uid"


def deployment_doc(
    *,
    name: str = "web",
    replicas: int = 3,
    updated: Optional[int] = 3,
    available: Optional[int] = 3,
    unavailable: Optional[int] = None,
    total: Optional[int] = None,
    revision: str = "2",
    uid: str = DEPLOYMENT_UID,
    progressing: Optional[Dict[str, Any]] = None,
    deadline: Optional[int] = None,
    max_unavailable: Any = None,
) -> Dict[str, Any]:
    status: Dict[str, Any] = {"replicas": replicas if total is None else total}
    if updated is not None:
        status["updatedReplicas"] = updated
    if available is not None:
        status["availableReplicas"] = available
    if unavailable is not None:
        status["unavailableReplicas"] = unavailable
    if progressing is not None:
        status["conditions"] = [
            {"type": "Available", "status": "True", "reason": "MinimumReplicasAvailable"},
            dict(progressing, type="Progressing"),
        ]

    spec: Dict[str, Any] = {
        "replicas": replicas,
        "selector": {"matchLabels": {"app": name}},
        "strategy": {"type": "RollingUpdate", "rollingUpdate": {}},
    }
    if deadline is not None:
        spec["progressDeadlineSeconds"] = deadline
    if max_unavailable is not None:
        spec["strategy"]["rollingUpdate"]["maxUnavailable"] = max_unavailable

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": "default",
            "uid": uid,
            "annotations": {"deployment.kubernetes.io/revision": revision},
        },
        "spec": spec,
        "status": status,
    }


def replica_set_doc(
    *,
    name: str = "web-7d9f8b6c5",
    revision: str = "2",
    owner_uid: str = DEPLOYMENT_UID,
    desired: int = 3,
    ready: Optional[int] = 3,
    available: Optional[int] = 3,
    observed: Optional[int] = None,
    failure: Optional[Dict[str, Any]] = None,
    created: str = "2024-05-01T10:00:00Z",
) -> Dict[str, Any]:
    status: Dict[str, Any] = {"replicas": desired if observed is None else observed}
    if ready is not None:
        status["readyReplicas"] = ready
    if available is not None:
        status["availableReplicas"] = available
    if failure is not None:
        status["conditions"] = [dict(failure, type="ReplicaFailure", status="True")]

    return {
        "apiVersion": "apps/v1",
        "kind": "ReplicaSet",
        "metadata": {
            "name": name,
            "namespace": "default",
            "creationTimestamp": created,
            "annotations": {"deployment.kubernetes.io/revision": revision},
            "ownerReferences": [
                {"apiVersion": "apps/v1", "kind": "Deployment", "name": "web", "uid": owner_uid, "controller": True}
            ],
        },
        "spec": {"replicas": desired},
        "status": status,
    }


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeKubeClient:
    """Serves scripted fetch results; an Exception entry is raised instead of returned."""

    def __init__(self, workloads: List[Any], replica_sets: Optional[List[Dict[str, Any]]] = None):
        self.workloads = list(workloads)
        self.replica_sets = replica_sets or []
        self.selectors: List[Dict[str, str]] = []

    def fetch_workload(self, name: str) -> Dict[str, Any]:
        item = self.workloads.pop(0) if len(self.workloads) > 1 else self.workloads[0]
        if item is None:
            raise ResourceNotFound(f"Deployment {name} not found")
        if isinstance(item, Exception):
            raise item
        return item

    def fetch_replica_sets(self, selector_labels: Dict[str, str]) -> List[Dict[str, Any]]:
        self.selectors.append(selector_labels)
        return self.replica_sets
