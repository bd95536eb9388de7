"""FastAPI application."""

import logging
from collections import Counter

from fastapi import Depends, FastAPI, status
from fastapi.responses import JSONResponse

from minion import __version__
from minion.api.tasks import get_orchestrator
from minion.api.tasks import router as tasks_router
from minion.core.auth import verify_api_key
from minion.core.errors import SandboxError
from minion.services import HostOrchestrator

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Minions API",
    description="Dispatches coding tasks to sandboxed agents and harvests their patches",
    version=__version__,
)

app.include_router(tasks_router, prefix="/v1", tags=["tasks"])


@app.get("/health")
def health_check(
    api_key: str = Depends(verify_api_key),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
):
    """Report whether sandboxes can be started, with task counts by status."""
    tasks = dict(Counter(task.status for task in orchestrator.store.list()))
    try:
        orchestrator.sandbox.ping()
    except SandboxError as e:
        logger.warning(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "sandbox": str(e), "tasks": tasks},
        )
    return {"status": "healthy", "sandbox": "ok", "tasks": tasks}
