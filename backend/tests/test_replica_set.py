from datetime import datetime, timezone

import pytest

from kube_errors import MalformedSnapshot
from replica_set import replica_set_from_json

from k8s_docs import DEPLOYMENT_UID, replica_set_doc


class TestReplicaSetFromJson:
    def test_ready_replica_set_succeeded(self):
        rs = replica_set_from_json(replica_set_doc())

        assert rs.name == "web-7d9f8b6c5"
        assert rs.owner_uids == (DEPLOYMENT_UID,)
        assert rs.owned_by(DEPLOYMENT_UID)
        assert rs.revision_marker == "2"
        assert rs.desired_replicas == 3
        assert rs.observed_replicas == 3
        assert rs.creation_timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert rs.succeeded
        assert not rs.failed
        assert not rs.timed_out

    def test_needs_ready_and_available(self):
        assert not replica_set_from_json(replica_set_doc(ready=2)).succeeded
        assert not replica_set_from_json(replica_set_doc(available=None)).succeeded

    def test_replica_failure_condition(self):
        rs = replica_set_from_json(
            replica_set_doc(failure={"reason": "FailedCreate", "message": "pods \"web\" is forbidden"}, ready=0)
        )
        assert rs.failed
        assert rs.failure_message == 'FailedCreate: pods "web" is forbidden'

    def test_resolved_failure_condition_is_ignored(self):
        doc = replica_set_doc()
        doc["status"]["conditions"] = [{"type": "ReplicaFailure", "status": "False", "reason": "FailedCreate"}]
        assert not replica_set_from_json(doc).failed

    def test_times_out_after_watch_budget(self):
        doc = replica_set_doc(ready=1, available=1)
        assert not replica_set_from_json(doc, elapsed_seconds=300.0, timeout_seconds=300.0).timed_out

        rs = replica_set_from_json(doc, elapsed_seconds=301.0, timeout_seconds=300.0)
        assert rs.timed_out
        assert "web-7d9f8b6c5" in rs.timeout_message
        assert "300 seconds" in rs.timeout_message

    def test_succeeded_never_times_out(self):
        assert not replica_set_from_json(replica_set_doc(), elapsed_seconds=10_000.0).timed_out

    def test_missing_spec_and_status(self):
        rs = replica_set_from_json({"metadata": {"name": "orphan"}})
        assert rs.owner_uids == ()
        assert rs.observed_replicas == 0
        assert rs.creation_timestamp is None
        assert not rs.owned_by("")

    def test_non_object_sections_read_as_empty(self):
        doc = replica_set_doc()
        doc["metadata"]["annotations"] = ["deployment.kubernetes.io/revision=2"]
        doc["spec"] = "replicas: 3"
        doc["status"] = None

        rs = replica_set_from_json(doc)

        assert rs.revision_marker == ""
        assert rs.desired_replicas == 0
        assert rs.observed_replicas == 0

    def test_missing_metadata_is_malformed(self):
        with pytest.raises(MalformedSnapshot):
            replica_set_from_json({"spec": {"replicas": 1}})
