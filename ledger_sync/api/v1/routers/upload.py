from fastapi import APIRouter, Depends, File, Form, UploadFile

from ledger_sync.services.services import get_service
from ledger_sync.services.upload_service import UploadService
from ledger_sync.utils.enums.ledger import LedgerType

router = APIRouter(prefix="/api/v1/upload", tags=["Upload"])


@router.post("/pending")
async def upload_pending(
    file: UploadFile = File(...),
    background: bool = Form(False),
    service: UploadService = Depends(get_service(UploadService)),
):
    """Upsert an outstanding-orders export into the pending ledger."""
    return await service.upload_orders(file, LedgerType.PENDING, background)


@router.post("/dispatched")
async def upload_dispatched(
    file: UploadFile = File(...),
    background: bool = Form(False),
    service: UploadService = Depends(get_service(UploadService)),
):
    """
    Upsert a dispatch export into the history ledger and draw down the
    matching pending lines.

    Returns rows written and pending lines fully reconciled. A response with
    status 500 may still carry counts: batches committed before the failure
    are not rolled back.
    """
    return await service.upload_orders(file, LedgerType.DISPATCHED, background)


@router.get("/runs/{run_id}")
async def get_ingestion_run(
    run_id: int,
    service: UploadService = Depends(get_service(UploadService)),
):
    """
    Get the recorded outcome of an ingestion run.

    status: 0=pending, 1=processing, 2=completed, 3=failed, 4=cancelled
    """
    return await service.get_run(run_id)
