from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class DeployRequest(BaseModel):
    force: bool = Field(False, description="Redeploy even when infrastructure is healthy")


class DestroyRequest(BaseModel):
    remove_network: bool = Field(False, description="Also remove the shared docker network")


class StatusResponse(BaseModel):
    state: str = Field(..., description="not_running|partial|running_but_unhealthy|healthy|error")
    missing: list[str] = Field(default_factory=list)
    unhealthy: list[str] = Field(default_factory=list)
    reason: Optional[str] = None
    required: list[str] = Field(default_factory=list)
    should_deploy: bool


class ActionResponse(BaseModel):
    action: str
    ok: bool
    deployed: bool = False
    message: str
    status: Optional[StatusResponse] = None
