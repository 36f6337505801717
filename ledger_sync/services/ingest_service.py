"""Streaming ingestion of order files into the pending and history ledgers.

The pipeline for one file is linear and single-task:

    decode batch -> normalize -> canonicalize -> bulk upsert -> reconcile

Decoding is pull-driven. The next batch is decoded only after the current
one has been written (and, for dispatch files, reconciled), which keeps
at most one batch of rows in memory. Batches are processed strictly in
file order.

A failed batch ends the run but batches committed before it stay
committed; the returned summary carries their counts and the error.
"""
import asyncio
import logging
import os
from dataclasses import asdict, dataclass, replace
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_sync.config import settings
from ledger_sync.db.repositories.ingestion_run import IngestionRunRepository
from ledger_sync.db.repositories.order_ledger import OrderLedgerRepository
from ledger_sync.errors import LedgerSyncError
from ledger_sync.schemas.order_schemas import OrderRecord
from ledger_sync.services.field_normalizer import normalize
from ledger_sync.services.reconciler import Reconciler
from ledger_sync.services.record_canonicalizer import canonicalize
from ledger_sync.services.time_decorator import timing_decorator_async
from ledger_sync.utils.enums.ledger import IngestionStatus, LedgerType
from ledger_sync.utils.parser import (
    CsvBatchReader,
    RawRow,
    file_kind,
    iter_row_batches,
    read_excel_rows,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    written: int
    reconciled: int = 0
    decremented: int = 0
    unmatched: int = 0
    reconcile_failed: int = 0


@dataclass(frozen=True)
class IngestSummary:
    ledger: LedgerType
    rows_written: int = 0
    reconciled: int = 0
    decremented: int = 0
    unmatched: int = 0
    reconcile_failed: int = 0
    batches: int = 0
    completed: bool = False
    error: Optional[str] = None
    run_id: Optional[int] = None

    def add(self, batch: BatchResult) -> "IngestSummary":
        return replace(
            self,
            rows_written=self.rows_written + batch.written,
            reconciled=self.reconciled + batch.reconciled,
            decremented=self.decremented + batch.decremented,
            unmatched=self.unmatched + batch.unmatched,
            reconcile_failed=self.reconcile_failed + batch.reconcile_failed,
            batches=self.batches + 1,
        )

    def counts(self) -> Dict[str, int]:
        return {
            "batches": self.batches,
            "rows_written": self.rows_written,
            "reconciled": self.reconciled,
            "decremented": self.decremented,
            "unmatched": self.unmatched,
            "reconcile_failed": self.reconcile_failed,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["ledger"] = self.ledger.value
        return data


class BatchIngestor:
    """Writes decoded batches to one ledger and reconciles dispatches."""

    def __init__(self, db: AsyncSession, ledger: LedgerType, source: Optional[str] = None):
        self.db = db
        self.ledger = LedgerType(ledger)
        self.source = source
        self.reconciler = Reconciler(db) if self.ledger is LedgerType.DISPATCHED else None

    async def process_batch(self, rows: List[RawRow]) -> BatchResult:
        records = [normalize(row) for row in rows]
        canonical = [canonicalize(record, self.ledger, self.source) for record in records]

        result = await OrderLedgerRepository.bulk_upsert(
            self.db, self.ledger, [(c.key, c.fields) for c in canonical]
        )
        if self.reconciler is None:
            return BatchResult(written=result["written"])

        # History write is committed; match on the values as stored
        reconciled = await self.reconciler.reconcile_batch(
            [OrderRecord.model_construct(**c.fields) for c in canonical]
        )
        return BatchResult(
            written=result["written"],
            reconciled=reconciled.reconciled,
            decremented=reconciled.decremented,
            unmatched=reconciled.unmatched,
            reconcile_failed=reconciled.failed,
        )

    async def run(
        self, batches: Iterator[List[RawRow]], summary: IngestSummary
    ) -> AsyncIterator[IngestSummary]:
        """Drain ``batches`` in order, yielding the running summary per batch.

        Decoding of the next batch runs in a worker thread and only starts
        once the previous batch is fully processed. The last summary yielded
        is final: ``completed`` is set, or ``error`` describes the failure.
        """
        while True:
            try:
                rows = await asyncio.to_thread(next, batches, None)
                if rows is None:
                    break
                if not rows:
                    continue
                batch = await self.process_batch(rows)
            except (LedgerSyncError, SQLAlchemyError) as e:
                logger.error(
                    "Ingestion aborted",
                    extra={"ledger": self.ledger.value, "batches_committed": summary.batches, "error": str(e)},
                )
                yield replace(summary, completed=False, error=str(e))
                return

            summary = summary.add(batch)
            logger.info(
                "Batch committed",
                extra={"ledger": self.ledger.value, "batch": summary.batches, **asdict(batch)},
            )
            yield summary
        yield replace(summary, completed=True)


async def open_batches(file_path: str, kind: str, batch_size: int) -> Union[CsvBatchReader, Iterator[List[RawRow]]]:
    """Open ``file_path`` for batch decoding.

    Raises ``FileDecodeError`` for unreadable input before any batch is
    produced.
    """
    if kind == "csv":
        return await asyncio.to_thread(CsvBatchReader, file_path, batch_size)
    rows = await asyncio.to_thread(read_excel_rows, file_path)
    return iter_row_batches(rows, batch_size)


@timing_decorator_async
async def ingest(
    db: AsyncSession,
    file_path: str,
    ledger: Union[LedgerType, str],
    *,
    batch_size: Optional[int] = None,
    source: Optional[str] = None,
    file_name: Optional[str] = None,
) -> IngestSummary:
    """Ingest an order file into the pending or history ledger.

    Args:
        db: Session used for every write of this run.
        file_path: Path of the CSV or spreadsheet on disk.
        ledger: ``PENDING`` for outstanding-order exports, ``DISPATCHED``
            for dispatch exports (which also draw down pending lines).
        batch_size: Rows per bulk write, defaults to ``INGEST_BATCH_SIZE``.
        source: Channel tag stored on every record.
        file_name: Original upload name when ``file_path`` is a temp file.

    Returns:
        Summary with counts. ``completed`` is False when a batch failed;
        earlier batches remain applied.

    Raises:
        UnsupportedFileError: Unknown file extension.
        FileDecodeError: File could not be opened or parsed up front.
    """
    ledger = LedgerType(ledger)
    file_name = file_name or os.path.basename(file_path)
    kind = file_kind(file_name)
    batch_size = batch_size or settings.INGEST_BATCH_SIZE
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    source = source or f"{kind}-upload"

    batches = await open_batches(file_path, kind, batch_size)
    run_id = await IngestionRunRepository.create_run(
        db, file_name=file_name, ledger=ledger.value, source=source, batch_size=batch_size
    )
    logger.info(
        "Ingestion started",
        extra={"file_name": file_name, "ledger": ledger.value, "kind": kind, "batch_size": batch_size, "run_id": run_id},
    )

    summary = IngestSummary(ledger=ledger, run_id=run_id)
    try:
        async for summary in BatchIngestor(db, ledger, source).run(batches, summary):
            if not summary.completed and summary.error is None:
                await IngestionRunRepository.update_progress(db, run_id, summary.counts())
    except asyncio.CancelledError:
        logger.warning("Ingestion cancelled", extra={"file_name": file_name, "run_id": run_id})
        await db.rollback()
        await IngestionRunRepository.finish_run(
            db, run_id, IngestionStatus.CANCELLED, summary.counts(), "Cancelled by caller"
        )
        raise
    except BaseException as e:
        logger.exception("Ingestion crashed", extra={"file_name": file_name, "run_id": run_id})
        await db.rollback()
        await IngestionRunRepository.finish_run(
            db, run_id, IngestionStatus.FAILED, summary.counts(), repr(e)
        )
        raise
    finally:
        if isinstance(batches, CsvBatchReader):
            # Blocks until a chunk still being decoded in a worker thread is done
            await asyncio.to_thread(batches.close)

    status = IngestionStatus.COMPLETED if summary.completed else IngestionStatus.FAILED
    await IngestionRunRepository.finish_run(db, run_id, status, summary.counts(), summary.error)
    logger.info(
        "Ingestion finished",
        extra={"file_name": file_name, "run_id": run_id, **summary.to_dict()},
    )
    return summary
