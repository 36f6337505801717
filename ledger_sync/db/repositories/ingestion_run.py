import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_sync.db.models.ingestion_run import IngestionRun
from ledger_sync.utils.enums.ledger import IngestionStatus

logger = logging.getLogger(__name__)


class IngestionRunRepository:
    """Bookkeeping for ingestion runs.

    Tracking is best effort: a failure to record progress is logged and
    never aborts the ingestion it describes.
    """

    @staticmethod
    async def create_run(
        db: AsyncSession,
        file_name: Optional[str],
        ledger: str,
        source: Optional[str],
        batch_size: int,
    ) -> Optional[int]:
        try:
            run = IngestionRun(
                file_name=file_name,
                ledger=ledger,
                source=source,
                batch_size=batch_size,
                status=IngestionStatus.PROCESSING,
                started_at=datetime.utcnow(),
            )
            db.add(run)
            await db.commit()
            await db.refresh(run)
            return run.id
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Could not record ingestion run", extra={"file_name": file_name})
            return None

    @staticmethod
    async def update_progress(
        db: AsyncSession, run_id: Optional[int], counts: Dict[str, int]
    ) -> None:
        """Record counts after each committed batch."""
        if run_id is None:
            return
        try:
            await db.execute(
                update(IngestionRun).where(IngestionRun.id == run_id).values(**counts)
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Could not update ingestion progress", extra={"run_id": run_id})

    @staticmethod
    async def finish_run(
        db: AsyncSession,
        run_id: Optional[int],
        status: IngestionStatus,
        counts: Dict[str, int],
        error_message: Optional[str] = None,
    ) -> None:
        if run_id is None:
            return
        try:
            run = await db.get(IngestionRun, run_id, populate_existing=True)
            if run is None:
                return
            run.status = status
            for column, value in counts.items():
                setattr(run, column, value)
            run.completed_at = datetime.utcnow()
            if run.started_at:
                run.processing_time_seconds = int(
                    (run.completed_at - run.started_at).total_seconds()
                )
            if error_message:
                run.error_message = error_message
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Could not finalise ingestion run", extra={"run_id": run_id})

    @staticmethod
    async def get_run(db: AsyncSession, run_id: int) -> Optional[Dict[str, Any]]:
        result = await db.execute(select(IngestionRun).where(IngestionRun.id == run_id))
        run = result.scalar_one_or_none()
        if run is None:
            return None
        return {
            "id": run.id,
            "file_name": run.file_name,
            "ledger": run.ledger,
            "source": run.source,
            "status": run.status,
            "batch_size": run.batch_size,
            "batches": run.batches,
            "rows_written": run.rows_written,
            "reconciled": run.reconciled,
            "decremented": run.decremented,
            "unmatched": run.unmatched,
            "reconcile_failed": run.reconcile_failed,
            "started_at": run.started_at.isoformat() if run.started_at else None,
            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
            "processing_time_seconds": run.processing_time_seconds,
            "error_message": run.error_message,
        }
