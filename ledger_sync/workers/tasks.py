import asyncio
import logging
import os

from ledger_sync.celery_app import celery_app
from ledger_sync.db.session import AsyncSessionLocal
from ledger_sync.errors import FileDecodeError, UnsupportedFileError
from ledger_sync.services.ingest_service import ingest

logger = logging.getLogger(__name__)

# Global event loop for this worker process
_worker_loop = None


def get_or_create_event_loop():
    """Get or create a persistent event loop for this worker process"""
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_worker_loop)
    return _worker_loop


async def _ingest_with_session(file_path: str, ledger: str, source: str, file_name: str) -> dict:
    async with AsyncSessionLocal() as db:
        summary = await ingest(db, file_path, ledger, source=source, file_name=file_name)
    return summary.to_dict()


# No automatic retries: replaying a dispatch file would reconcile it twice.
@celery_app.task(bind=True, name="ledger_sync.workers.tasks.ingest_order_file")
def ingest_order_file(self, file_path: str, ledger: str, source: str = None, file_name: str = None):
    """
    Ingest an uploaded order file in the background and remove it afterwards.

    Returns the ingestion summary; ``completed`` is False when the run
    stopped early.
    """
    logger.info("Background ingestion started", extra={"task_id": self.request.id, "file_name": file_name, "ledger": ledger})
    try:
        loop = get_or_create_event_loop()
        return loop.run_until_complete(
            _ingest_with_session(file_path, ledger, source, file_name)
        )
    except (UnsupportedFileError, FileDecodeError) as e:
        logger.error("Background ingestion rejected file", extra={"file_name": file_name, "error": str(e)})
        return {"ledger": ledger, "completed": False, "error": str(e), "rows_written": 0, "reconciled": 0}
    finally:
        if os.path.exists(file_path):
            os.unlink(file_path)
