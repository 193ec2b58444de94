"""API key health routes."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from reviewdigest.api.deps import KeyHealthDep
from reviewdigest.models import KeyHealth

router = APIRouter()


class KeyTestRequest(BaseModel):
    api_key: str | None = None


class KeyTestResponse(BaseModel):
    ok: bool
    message: str
    health: KeyHealth | None = None


@router.get("")
def get_key_health(monitor: KeyHealthDep) -> dict[str, Any]:
    health = monitor.get()
    return {"ok": True, "health": health.model_dump(mode="json") if health else None}


@router.post("/check")
def force_key_check(monitor: KeyHealthDep) -> dict[str, Any]:
    """Re-validate the configured key now."""
    health = monitor.check("manual")
    return {"ok": True, "health": health.model_dump(mode="json")}


@router.post("/test", response_model=KeyTestResponse)
def test_key(request: KeyTestRequest, monitor: KeyHealthDep) -> KeyTestResponse:
    ok, health, message = monitor.test_key(request.api_key)
    return KeyTestResponse(ok=ok, message=message, health=health)


@router.get("/rate-limit")
def rate_limit_status(monitor: KeyHealthDep) -> dict[str, Any]:
    return monitor.rate_limit_status()
