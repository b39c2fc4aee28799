"""Liveness/readiness probes."""
from fastapi import APIRouter, Request
from pydantic import BaseModel

from holdthread import __version__

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = __version__


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok")


@router.get("/ready", response_model=HealthStatus)
def readiness_check(request: Request):
    runtime = getattr(request.app.state, "runtime", None)
    return HealthStatus(status="ok" if runtime is not None else "starting")
