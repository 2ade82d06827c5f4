"""
Polling loop: fetch, resolve and evaluate a Deployment rollout tick by tick.
"""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import Settings, settings as default_settings
from kube_client import KubeClient
from kube_errors import MalformedSnapshot, ResourceNotFound, TransportError
from kube_types import RolloutTolerance, Verdict, VerdictState, WorkloadSnapshot, workload_from_json
from replica_set import replica_set_from_json
from rollout import evaluate

logger = logging.getLogger(__name__)


class RolloutWatcher:
    """Tracks the rollouts of one Deployment.

    Between ticks it keeps the last verdict, the desired replica count from
    the last successful fetch and the revision whose rollout is being timed.
    A new revision, or the Deployment coming back after being deleted,
    starts a new rollout with a fresh ReplicaSet timeout.
    """

    def __init__(
        self,
        kube_client: KubeClient,
        name: str,
        tolerance: Optional[RolloutTolerance] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
        settings: Settings = default_settings,
    ):
        self.kube_client = kube_client
        self.name = name
        self.tolerance = tolerance
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self.settings = settings

        self.started_at = clock()
        self.tracked_revision: Optional[str] = None
        self.next_tolerance: Optional[RolloutTolerance] = None
        self.last_desired_replicas: Optional[int] = None
        self.last_verdict: Optional[Verdict] = None

    @property
    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def request_tolerance(self, tolerance: RolloutTolerance) -> None:
        """Use ``tolerance`` from the next rollout on; the current one keeps its own."""
        if tolerance == self.tolerance:
            self.next_tolerance = None
            return
        self.next_tolerance = tolerance
        self.logger.warning(
            f"⚠️ Tolerance {tolerance} for {self.name} applies from its next rollout; "
            f"current rollout is tracked with {self.tolerance or 'full'}"
        )

    def _start_rollout(self, revision: str) -> None:
        self.started_at = self.clock()
        if self.next_tolerance is not None:
            self.tolerance = self.next_tolerance
            self.next_tolerance = None
        self.logger.info(
            f"Tracking new rollout of {self.name} at revision {revision or '-'} "
            f"(tolerance: {self.tolerance or 'full'})"
        )

    def tick(self) -> Verdict:
        """
        Fetch the current state once and evaluate it.

        Returns:
            Verdict for this tick

        Raises:
            TransportError: if the cluster could not be queried
            MalformedSnapshot: if a document lacks required sections
        """
        try:
            raw = self.kube_client.fetch_workload(self.name)
        except ResourceNotFound:
            if self.last_desired_replicas is not None:
                self.logger.warning(f"⚠️ Deployment {self.name} was deleted while its rollout was being watched")
            self.last_desired_replicas = None
            self.tracked_revision = None
            return self._record(evaluate(WorkloadSnapshot.not_found(self.name), []))

        workload = workload_from_json(raw)
        if self.last_verdict is not None and workload.revision_marker != self.tracked_revision:
            self._start_rollout(workload.revision_marker)
        self.tracked_revision = workload.revision_marker
        self.last_desired_replicas = workload.desired_replicas

        elapsed = self.elapsed
        replica_sets = [
            replica_set_from_json(item, elapsed, self.settings.REPLICA_SET_TIMEOUT_SECS)
            for item in self.kube_client.fetch_replica_sets(workload.selector_labels)
        ]
        return self._record(evaluate(workload, replica_sets, self.tolerance))

    def _record(self, verdict: Verdict) -> Verdict:
        previous = self.last_verdict
        self.last_verdict = verdict
        if previous == verdict:
            return verdict

        if verdict.state == VerdictState.SUCCEEDED:
            self.logger.info(f"✅ Deployment {self.name} rolled out: {verdict.status}")
        elif verdict.state == VerdictState.FAILED:
            self.logger.error(f"❌ Deployment {self.name} failed: {verdict.failure_message}")
        elif verdict.state == VerdictState.TIMED_OUT:
            self.logger.error(f"❌ Deployment {self.name} timed out: {verdict.timeout_message}")
        elif verdict.state == VerdictState.NOT_FOUND:
            self.logger.warning(f"⚠️ Deployment {self.name} not found")
        else:
            self.logger.info(f"Deployment {self.name}: {verdict.status}")
        return verdict

    def _tick_with_retry(self) -> Verdict:
        # Waits POLL_INTERVAL_SECS * 2**(n-1) after the n-th consecutive transport error
        retrying = Retrying(
            retry=retry_if_exception_type(TransportError),
            wait=wait_exponential(
                multiplier=self.settings.POLL_INTERVAL_SECS,
                max=self.settings.MAX_BACKOFF_SECS,
            ),
            stop=stop_after_attempt(self.settings.MAX_TRANSPORT_RETRIES + 1),
            sleep=self.sleep,
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self.tick)

    def watch(self) -> Verdict:
        """
        Poll until the rollout reaches a terminal verdict or MAX_WATCH_SECS elapses.

        Transport errors are retried with exponential backoff; after
        MAX_TRANSPORT_RETRIES consecutive retries the last error is raised.

        Returns:
            The last verdict observed
        """
        self.logger.info(
            f"Watching rollout of {self.name} (tolerance: {self.tolerance or 'full'})"
        )
        while True:
            try:
                verdict = self._tick_with_retry()
            except TransportError as e:
                self.logger.error(f"❌ Giving up on {self.name} after repeated transport errors: {e}")
                raise
            except MalformedSnapshot as e:
                self.logger.error(f"❌ Cannot evaluate rollout of {self.name}: {e}")
                raise

            if verdict.terminal:
                return verdict
            if self.elapsed >= self.settings.MAX_WATCH_SECS:
                self.logger.warning(
                    f"⚠️ Stopped watching {self.name} after {int(self.elapsed)}s; rollout still in progress"
                )
                return verdict
            self.sleep(self.settings.POLL_INTERVAL_SECS)


class WatcherRegistry:
    """Independent RolloutWatchers per (namespace, deployment) with an in-progress rollout.

    A watcher is dropped as soon as it reports a terminal verdict, and a
    namespace's client once no watcher uses it.
    """

    def __init__(
        self,
        client_factory: Callable[[str], KubeClient],
        settings: Settings = default_settings,
    ):
        self.client_factory = client_factory
        self.settings = settings
        self._clients: Dict[str, KubeClient] = {}
        self._watchers: Dict[Tuple[str, str], RolloutWatcher] = {}

    def _client(self, namespace: str) -> KubeClient:
        if namespace not in self._clients:
            self._clients[namespace] = self.client_factory(namespace)
        return self._clients[namespace]

    def get_or_create(
        self,
        namespace: str,
        name: str,
        tolerance: Optional[RolloutTolerance] = None,
    ) -> RolloutWatcher:
        """Return the watcher for a deployment, creating it on first use.

        A tolerance given for an existing watcher applies from its next rollout.
        """
        key = (namespace, name)
        watcher = self._watchers.get(key)
        if watcher is None:
            watcher = RolloutWatcher(
                self._client(namespace),
                name,
                tolerance=tolerance,
                settings=self.settings,
            )
            self._watchers[key] = watcher
        elif tolerance is not None:
            watcher.request_tolerance(tolerance)
        return watcher

    def tick(
        self,
        namespace: str,
        name: str,
        tolerance: Optional[RolloutTolerance] = None,
    ) -> Tuple[RolloutWatcher, Verdict]:
        """Evaluate one tick of a deployment's rollout, forgetting it once it is terminal."""
        watcher = self.get_or_create(namespace, name, tolerance)
        verdict = watcher.tick()
        if verdict.terminal:
            self.discard(namespace, name)
        return watcher, verdict

    def discard(self, namespace: str, name: str) -> bool:
        if self._watchers.pop((namespace, name), None) is None:
            return False
        if not any(ns == namespace for ns, _ in self._watchers):
            self._clients.pop(namespace, None)
        return True

    def __len__(self) -> int:
        return len(self._watchers)
