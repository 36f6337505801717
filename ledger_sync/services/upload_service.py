import logging
import os
import tempfile
from typing import Any, Dict

from fastapi import HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_sync.config import settings
from ledger_sync.db.repositories.ingestion_run import IngestionRunRepository
from ledger_sync.errors import FileDecodeError, UnsupportedFileError
from ledger_sync.services.ingest_service import ingest
from ledger_sync.utils.enums.ledger import LedgerType
from ledger_sync.utils.parser import ALLOWED_EXTENSIONS

logger = logging.getLogger(__name__)

COPY_CHUNK_BYTES = 1024 * 1024


class UploadService:

    def __init__(self, db: AsyncSession):
        self.db = db

    def is_allowed_file(self, filename: str) -> bool:
        ext = os.path.splitext(filename)[1].lower()
        return ext in ALLOWED_EXTENSIONS

    async def save_upload(self, file: UploadFile) -> str:
        """Stream the upload to a temp file without holding it in memory."""
        os.makedirs(settings.UPLOAD_TMP_DIR, exist_ok=True)
        ext = os.path.splitext(file.filename)[1].lower()
        fd, path = tempfile.mkstemp(suffix=ext, dir=settings.UPLOAD_TMP_DIR)
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = await file.read(COPY_CHUNK_BYTES)
                    if not chunk:
                        break
                    out.write(chunk)
        except BaseException:
            os.unlink(path)
            raise
        return path

    async def upload_orders(
        self, file: UploadFile, ledger: LedgerType, background: bool = False
    ) -> Dict[str, Any]:
        if not file.filename:
            raise HTTPException(status_code=400, detail="No file selected")

        if not self.is_allowed_file(file.filename):
            raise HTTPException(
                status_code=400,
                detail="Only CSV, XLS, and XLSX files are allowed"
            )

        path = await self.save_upload(file)
        source = f"upload:{file.filename}"

        if background:
            # Imported here so the API does not need a broker connection at import time
            from ledger_sync.workers.tasks import ingest_order_file

            task = ingest_order_file.delay(
                file_path=path,
                ledger=ledger.value,
                source=source,
                file_name=file.filename,
            )
            return {
                "status": "success",
                "errors": False,
                "message": f"File accepted for processing. Track progress using task_id: {task.id}",
                "data": {"task_id": task.id, "ledger": ledger.value, "file_name": file.filename},
            }

        try:
            summary = await ingest(
                self.db, path, ledger, source=source, file_name=file.filename
            )
        except (UnsupportedFileError, FileDecodeError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        finally:
            os.unlink(path)

        if not summary.completed:
            # Earlier batches stay applied, so report what was written
            raise HTTPException(
                status_code=500,
                detail={
                    "status": "partial",
                    "errors": True,
                    "message": f"Upload stopped after {summary.batches} batches: {summary.error}",
                    "data": summary.to_dict(),
                },
            )

        return {
            "status": "success",
            "errors": False,
            "message": f"{file.filename} processed successfully",
            "data": summary.to_dict(),
        }

    async def get_run(self, run_id: int) -> Dict[str, Any]:
        run = await IngestionRunRepository.get_run(self.db, run_id)
        if run is None:
            raise HTTPException(status_code=404, detail="Ingestion run not found")
        return {"status": "success", "data": run}
