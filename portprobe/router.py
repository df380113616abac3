# portprobe/router.py
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from .config import SCOPES
from .models import ConfigurationError, FleetScanRequest, ScanResult, ScanStatus
from .scan_core import prepare_scan, run_fleet_scan
from .store import get_results, get_status, new_scan, request_cancel, store

router = APIRouter(prefix="/scan", tags=["scan"])


@router.post("/fleet", response_model=ScanStatus)
async def fleet_scan(body: FleetScanRequest, background_tasks: BackgroundTasks, request: Request):
    # settings and connector (None -> asyncio.open_connection) live on app.state
    state = request.app.state
    try:
        targets, config = prepare_scan(body, state.settings)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    scan_id = str(uuid4())
    new_scan(scan_id)
    background_tasks.add_task(
        run_fleet_scan, scan_id, targets, config, store, body.include_empty, state.connector
    )
    return {"scan_id": scan_id, "status": "in_progress"}


@router.get("/scopes")
async def list_scopes():
    return {"scopes": {name: [r.low, r.high] for name, r in SCOPES.items()}}


@router.get("/{scan_id}/status", response_model=ScanStatus)
async def check_status(scan_id: str):
    return get_status(scan_id)


@router.get("/{scan_id}/results", response_model=ScanResult)
async def check_results(scan_id: str):
    return get_results(scan_id)


@router.post("/{scan_id}/cancel", response_model=ScanStatus)
async def cancel_scan(scan_id: str):
    return request_cancel(scan_id)
