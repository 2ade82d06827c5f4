"""
Kubernetes client fetching Deployment and ReplicaSet state for rollout watching.
"""
import logging
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from kube_errors import ResourceNotFound, TransportError

logger = logging.getLogger(__name__)


def label_selector(labels: Dict[str, str]) -> str:
    """Render matchLabels as a "k=v,k=v" selector."""
    return ",".join(f"{key}={value}" for key, value in labels.items())


class KubeClient:
    """Read-only Kubernetes client for rollout snapshots."""

    def __init__(
        self,
        namespace: str,
        in_cluster: bool = True,
        context: Optional[str] = None,
        request_timeout: Optional[float] = None,
    ):
        """
        Initialize Kubernetes client.

        Args:
            namespace: Target Kubernetes namespace
            in_cluster: Whether running inside cluster (default: True)
            context: Kubernetes context name (optional)
            request_timeout: Per request timeout in seconds (optional)

        Raises:
            TransportError: if the kubernetes configuration cannot be loaded
        """
        self.namespace = namespace
        self.in_cluster = in_cluster
        self.request_timeout = request_timeout

        try:
            if in_cluster:
                config.load_incluster_config()
            else:
                if context:
                    config.load_kube_config(context=context)
                else:
                    config.load_kube_config()

            self.apps_v1 = client.AppsV1Api()
            logger.info(f"✅ Kubernetes client initialized for namespace: {namespace}")

        except Exception as e:
            # Missing kubeconfig, bad context, in-cluster auth: cluster unreachable
            logger.error(f"❌ Failed to initialize Kubernetes client: {e}")
            raise TransportError(f"Failed to initialize Kubernetes client: {e}") from e

    def _to_json(self, obj: Any) -> Any:
        # Model objects to the camelCase JSON the API served
        return self.apps_v1.api_client.sanitize_for_serialization(obj)

    def fetch_workload(self, name: str) -> Dict[str, Any]:
        """
        Get the current JSON document of a Deployment.

        Args:
            name: Deployment name

        Returns:
            Deployment as a camelCase dictionary

        Raises:
            ResourceNotFound: if the Deployment does not exist
            TransportError: if the API could not be reached or refused the request
        """
        try:
            deployment = self.apps_v1.read_namespaced_deployment(
                name=name,
                namespace=self.namespace,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                raise ResourceNotFound(f"Deployment {self.namespace}/{name} not found") from e
            logger.error(f"Failed to get deployment {name}: {e.status} {e.reason}")
            raise TransportError(f"Failed to get deployment {name}: {e.reason}", status=e.status) from e
        except HTTPError as e:
            logger.error(f"Failed to reach API server for deployment {name}: {e}")
            raise TransportError(f"Failed to get deployment {name}: {e}") from e

        return self._to_json(deployment)

    def fetch_replica_sets(self, selector_labels: Dict[str, str]) -> List[Dict[str, Any]]:
        """
        Get ReplicaSets matching a Deployment's selector.

        Args:
            selector_labels: Deployment spec.selector.matchLabels

        Returns:
            List of ReplicaSets as camelCase dictionaries
        """
        selector = label_selector(selector_labels)
        try:
            replica_sets = self.apps_v1.list_namespaced_replica_set(
                namespace=self.namespace,
                label_selector=selector,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                return []
            logger.error(f"Failed to list replica sets for {selector}: {e.status} {e.reason}")
            raise TransportError(f"Failed to list replica sets: {e.reason}", status=e.status) from e
        except HTTPError as e:
            logger.error(f"Failed to reach API server listing replica sets for {selector}: {e}")
            raise TransportError(f"Failed to list replica sets: {e}") from e

        items = replica_sets.items or []
        logger.debug(f"Retrieved {len(items)} replica sets for {selector} in namespace {self.namespace}")
        return [self._to_json(item) for item in items]
