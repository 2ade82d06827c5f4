# fastapi_app.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import settings
from kube_client import KubeClient
from kube_errors import MalformedSnapshot, TransportError
from kube_types import RolloutTolerance, VerdictState
from watcher import WatcherRegistry

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def _kube_client(namespace: str) -> KubeClient:
    return KubeClient(
        namespace=namespace,
        in_cluster=settings.K8S_IN_CLUSTER,
        context=settings.K8S_CONTEXT,
        request_timeout=settings.REQUEST_TIMEOUT_SECS,
    )


# Watchers are created lazily so the app starts without cluster access
registry = WatcherRegistry(_kube_client, settings=settings)

# -----------------------------------------------------------------------------
# FastAPI app + CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="Rollout Watcher Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------------
class RolloutStatusResponse(BaseModel):
    deployment: str
    namespace: str
    state: VerdictState
    terminal: bool
    status: Optional[str] = Field(default=None, description="Replica counts, e.g. '3 replicas, 3 updatedReplicas'")
    failure_message: Optional[str] = None
    timeout_message: Optional[str] = None
    tolerance: Optional[str] = Field(default=None, description="Partial rollout tolerance, None for a full rollout")

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy"}

@app.get("/api/health")
async def api_health():
    return {"status": "healthy", "tracked_rollouts": len(registry)}

@app.get("/api/rollout/{namespace}/{name}", response_model=RolloutStatusResponse)
def get_rollout_status(
    namespace: str,
    name: str,
    tolerance: Optional[str] = Query(default=None, description="dynamic or a replica count"),
):
    """Evaluate one polling tick of a deployment rollout."""
    try:
        parsed = RolloutTolerance.parse(tolerance if tolerance is not None else settings.ROLLOUT_TOLERANCE)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        watcher, verdict = registry.tick(namespace, name, parsed)
    except TransportError as e:
        logger.error(f"❌ Cluster unreachable while checking {namespace}/{name}: {e}")
        raise HTTPException(status_code=503, detail=f"Cluster query failed: {e}")
    except MalformedSnapshot as e:
        logger.error(f"❌ Unexpected document for {namespace}/{name}: {e}")
        raise HTTPException(status_code=422, detail=f"Malformed resource: {e}")

    return RolloutStatusResponse(
        deployment=name,
        namespace=namespace,
        state=verdict.state,
        terminal=verdict.terminal,
        status=verdict.status,
        failure_message=verdict.failure_message,
        timeout_message=verdict.timeout_message,
        tolerance=str(watcher.tolerance) if watcher.tolerance else None,
    )

@app.delete("/api/rollout/{namespace}/{name}")
def stop_tracking(namespace: str, name: str):
    """Forget a tracked rollout."""
    if not registry.discard(namespace, name):
        raise HTTPException(status_code=404, detail=f"Rollout {namespace}/{name} is not tracked")
    logger.info(f"Stopped tracking rollout {namespace}/{name}")
    return {"deployment": name, "namespace": namespace, "tracked": False}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.HTTP_PORT)
