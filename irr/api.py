from __future__ import annotations

import secrets
from functools import lru_cache
from threading import Lock

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from . import db
from .api_models import ActionResponse, DeployRequest, DestroyRequest, StatusResponse
from .docker_ops import DriverError
from .health import survey, survey_checks
from .reconciler import DeployError, DeployTimeout, Reconciler, build_reconciler, should_deploy
from .settings import settings
from .status import InfrastructureStatus, status_to_dict

app = FastAPI(title="Infrastructure Readiness Reconciler")
security = HTTPBasic()

# Deploy and destroy own the compose project exclusively.
_ops_lock = Lock()


@lru_cache(maxsize=1)
def get_reconciler() -> Reconciler:
    try:
        return build_reconciler(settings)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Invalid configuration: {e}"
        ) from e


def require_operator(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    if not settings.api_password:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="API credentials are not configured")
    user_ok = secrets.compare_digest(credentials.username.encode(), settings.api_user.encode())
    pass_ok = secrets.compare_digest(credentials.password.encode(), settings.api_password.encode())
    if not (user_ok and pass_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def _status_response(st: InfrastructureStatus, r: Reconciler) -> StatusResponse:
    return StatusResponse(**status_to_dict(st), required=sorted(r.required), should_deploy=should_deploy(st))


@app.get("/status", response_model=StatusResponse)
def get_status(r: Reconciler = Depends(get_reconciler)) -> StatusResponse:
    return _status_response(r.compute_status(), r)


@app.post("/deploy", response_model=ActionResponse)
def deploy(
    req: DeployRequest,
    user: str = Depends(require_operator),
    r: Reconciler = Depends(get_reconciler),
) -> ActionResponse:
    if not _ops_lock.acquire(blocking=False):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Another deploy/destroy is in progress")
    try:
        db.log_event("INFO", f"Deploy requested by {user} (force={req.force})")
        try:
            outcome = r.reconcile(force=req.force)
        except DeployTimeout as e:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e))
        except DriverError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        except DeployError as e:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    finally:
        _ops_lock.release()

    msg = "Deploy completed" if outcome.deployed else "Infrastructure healthy, deploy skipped"
    return ActionResponse(
        action="deploy",
        ok=True,
        deployed=outcome.deployed,
        message=msg,
        status=_status_response(outcome.final, r),
    )


@app.post("/destroy", response_model=ActionResponse)
def destroy(
    req: DestroyRequest,
    user: str = Depends(require_operator),
    r: Reconciler = Depends(get_reconciler),
) -> ActionResponse:
    if not _ops_lock.acquire(blocking=False):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Another deploy/destroy is in progress")
    try:
        db.log_event("INFO", f"Destroy requested by {user}")
        try:
            r.destroy(remove_network=req.remove_network)
        except DriverError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    finally:
        _ops_lock.release()
    return ActionResponse(action="destroy", ok=True, message="Infrastructure destroyed")


@app.get("/report")
def report(r: Reconciler = Depends(get_reconciler)) -> dict:
    checks = survey_checks(settings, sorted(r.required), r.health)
    return survey(checks).to_dict()


@app.get("/events")
def events(limit: int = Query(50, ge=1, le=1000)) -> list[dict]:
    return db.latest_events(limit)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}
