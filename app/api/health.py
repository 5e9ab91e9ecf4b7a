"""
Health and operational API endpoints
"""

import time
from datetime import datetime

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.config import config
from app.core.logger import logger
from app.dependencies.imports import ImportSessionStore, get_session_store

router = APIRouter()

# Track service start time
start_time = time.time()


@router.get("/health")
def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "timestamp": datetime.now().isoformat(),
        "version": config.api_version,
    }


@router.get("/health/live")
def liveness_check():
    """Liveness probe - the process is up and serving requests"""
    return {
        "status": "alive",
        "service": config.service_name,
        "uptime_seconds": round(time.time() - start_time, 1),
    }


@router.get("/health/ready")
async def readiness_check(store: ImportSessionStore = Depends(get_session_store)):
    """Readiness probe - the Dapr sidecar in front of the write service answers"""
    dapr_url = f"http://localhost:{config.dapr_http_port}/v1.0/healthz"
    check = {"name": "dapr_sidecar", "status": "healthy"}

    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            response = await client.get(dapr_url)
        if response.status_code >= 300:
            check.update(status="unhealthy", error=f"status {response.status_code}")
    except httpx.HTTPError as e:
        check.update(status="unhealthy", error=str(e) or type(e).__name__)

    body = {
        "service": config.service_name,
        "timestamp": datetime.now().isoformat(),
        "active_sessions": len(store),
        "checks": [check],
    }

    if check["status"] != "healthy":
        logger.warning(
            "Readiness check failed - dapr sidecar unavailable",
            metadata={"event": "readiness_check_failed", "error": check.get("error")}
        )
        return JSONResponse(status_code=503, content={"status": "not ready", **body})

    return {"status": "ready", **body}
