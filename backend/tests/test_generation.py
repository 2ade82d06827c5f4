from kube_types import ReplicaSetSnapshot, WorkloadSnapshot, workload_from_json
from generation import resolve_active_replica_set, running_replica_sets
from replica_set import replica_set_from_json

from k8s_docs import deployment_doc, replica_set_doc


def _workload(**kwargs):
    return workload_from_json(deployment_doc(**kwargs))


def _rs(**kwargs):
    return replica_set_from_json(replica_set_doc(**kwargs))


class TestResolveActiveReplicaSet:
    def test_owner_and_revision_must_both_match(self):
        current = _rs(name="web-new", revision="2")
        previous = _rs(name="web-old", revision="1")
        foreign = _rs(name="other-new", revision="2", owner_uid="someone-else")

        active = resolve_active_replica_set(_workload(revision="2"), [previous, foreign, current])
        assert active is current

    def test_no_match_is_none(self):
        assert resolve_active_replica_set(_workload(revision="3"), [_rs(revision="2")]) is None
        assert resolve_active_replica_set(_workload(), []) is None

    def test_unannotated_revisions_match(self):
        """A Deployment and ReplicaSet both lacking the revision annotation compare equal."""
        doc = deployment_doc()
        del doc["metadata"]["annotations"]
        rs_doc = replica_set_doc()
        del rs_doc["metadata"]["annotations"]
        rs = replica_set_from_json(rs_doc)

        assert resolve_active_replica_set(workload_from_json(doc), [rs]) is rs
        assert resolve_active_replica_set(workload_from_json(doc), [_rs()]) is None

    def test_not_found_workload_has_no_active_replica_set(self):
        assert resolve_active_replica_set(WorkloadSnapshot.not_found("web"), [_rs()]) is None

    def test_multiple_matches_pick_newest_then_name(self):
        older = _rs(name="web-a", created="2024-05-01T10:00:00Z")
        newer_b = _rs(name="web-c", created="2024-05-01T11:00:00Z")
        newer_a = _rs(name="web-b", created="2024-05-01T11:00:00Z")
        undated = ReplicaSetSnapshot(name="web-0", owner_uids=older.owner_uids, revision_marker="2")

        for order in ([older, newer_b, newer_a, undated], [undated, newer_a, older, newer_b]):
            assert resolve_active_replica_set(_workload(), order).name == "web-b"

    def test_match_without_timestamps_uses_name(self):
        uids = _rs().owner_uids
        second = ReplicaSetSnapshot(name="web-2", owner_uids=uids, revision_marker="2")
        first = ReplicaSetSnapshot(name="web-1", owner_uids=uids, revision_marker="2")
        assert resolve_active_replica_set(_workload(), [second, first]).name == "web-1"


def test_running_replica_sets():
    live = _rs(name="web-new", observed=3)
    draining = _rs(name="web-old", revision="1", observed=1)
    idle = _rs(name="web-older", revision="0", desired=0, observed=0)
    assert running_replica_sets([live, idle, draining]) == [live, draining]
