"""Scan trigger, status and history endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from stalerepos.api.deps import get_current_account, get_scan_job, get_task_registry
from stalerepos.config.database import get_db
from stalerepos.exceptions import ScanNotFoundError
from stalerepos.jobs.registry import ScanTaskRegistry
from stalerepos.jobs.scan_job import ScanJob
from stalerepos.models.account import Account
from stalerepos.services.scan.scan_service import get_scan_history, get_scan_status, start_scan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scan", tags=["scan"])


@router.post("")
async def trigger_scan(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    registry: ScanTaskRegistry = Depends(get_task_registry),
    job: ScanJob = Depends(get_scan_job),
):
    """Start a background scan; 409 when one is already running."""

    result = start_scan(db, account.id, registry=registry, job=job)
    if result.conflict:
        return JSONResponse(status_code=409, content={"error": "Scan already in progress", "scanId": result.scan_id})

    logger.info("Scan triggered", extra={"scan_id": result.scan_id, "username": account.username})
    return {"success": True, "scanId": result.scan_id, "message": "Scan started successfully"}


@router.get("")
async def scan_status_by_query(
    scanId: str | None = None,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    registry: ScanTaskRegistry = Depends(get_task_registry),
):
    if not scanId:
        raise HTTPException(status_code=400, detail="Scan ID is required")
    return _scan_status(db, scanId, account, registry)


@router.get("/history")
async def scan_history(
    limit: int | None = None,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return {"scans": get_scan_history(db, account.id, limit)}


@router.get("/{scan_id}")
async def scan_status(
    scan_id: str,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    registry: ScanTaskRegistry = Depends(get_task_registry),
):
    return _scan_status(db, scan_id, account, registry)


def _scan_status(db: Session, scan_id: str, account: Account, registry: ScanTaskRegistry) -> dict:
    try:
        return get_scan_status(db, scan_id, account.id, registry=registry)
    except ScanNotFoundError:
        raise HTTPException(status_code=404, detail="Scan not found")
