from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.services.health_check import HealthChecker
from src.services.scheduler import Scheduler


def create_health_router(health_checker: HealthChecker, scheduler: Optional[Scheduler] = None) -> APIRouter:
    """
    Build the health routes around a checker instance.

    All routes are public and read-only.
    """
    router = APIRouter(tags=["health"])

    @router.get("/health")
    def health():
        """Full status; 503 when unhealthy so orchestrators restart the process."""
        status = health_checker.get_status()
        http_status = 503 if status["status"] == "unhealthy" else 200
        return JSONResponse(content=status, status_code=http_status)

    @router.get("/ready")
    def ready():
        if health_checker.get_status()["status"] == "unhealthy":
            return JSONResponse(content={"ready": False}, status_code=503)
        return {"ready": True}

    @router.get("/metrics")
    def metrics() -> dict:
        data = health_checker.get_metrics()
        data["tasks"] = scheduler.get_status() if scheduler is not None else {}
        return data

    return router
