import asyncio

import pandas as pd
import pytest

from ledger_sync.db.repositories.ingestion_run import IngestionRunRepository
from ledger_sync.db.repositories.order_ledger import OrderLedgerRepository
from ledger_sync.errors import BatchWriteError, UnsupportedFileError
from ledger_sync.services.ingest_service import BatchIngestor, IngestSummary, ingest
from ledger_sync.utils.enums.ledger import IngestionStatus, LedgerType

pytestmark = pytest.mark.anyio

PENDING_HEADER = ["Order No", "Item Code", "S/O No", "Size", "Order Qty", "O/S Ord.Qty"]
DISPATCH_HEADER = ["Order No", "Item Code", "S/O No", "Size", "Sale Qty", "Invoice No"]


@pytest.fixture
def bulk_write_calls(monkeypatch):
    calls = []
    real_bulk_upsert = OrderLedgerRepository.bulk_upsert

    async def spy(db, ledger, operations):
        calls.append(len(operations))
        return await real_bulk_upsert(db, ledger, operations)

    monkeypatch.setattr(OrderLedgerRepository, "bulk_upsert", staticmethod(spy))
    return calls


async def test_large_csv_is_written_in_batches(db, write_csv, bulk_write_calls):
    path = write_csv(
        "pending.csv",
        PENDING_HEADER,
        [(f"PO{i}", "C1", f"SO{i}", "M", 10, 10) for i in range(10_000)],
    )

    summary = await ingest(db, path, LedgerType.PENDING, batch_size=2000)

    assert summary.completed
    assert summary.error is None
    assert summary.rows_written == 10_000
    assert summary.batches == 5
    assert bulk_write_calls == [2000] * 5
    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 10_000


async def test_final_partial_batch_is_flushed(db, write_csv, bulk_write_calls):
    path = write_csv("pending.csv", PENDING_HEADER, [(f"PO{i}", "C1", "SO1", "M", 5, 5) for i in range(7)])

    summary = await ingest(db, path, LedgerType.PENDING, batch_size=3)

    assert bulk_write_calls == [3, 3, 1]
    assert summary.rows_written == 7


async def test_pending_then_dispatch_reconciles(db, write_csv):
    pending = write_csv(
        "pending.csv",
        PENDING_HEADER,
        [("PO1", "C1", "SO1", "M", 100, 100), ("PO2", "C2", "SO2", "L", 100, 100)],
    )
    dispatched = write_csv(
        "dispatch.csv",
        DISPATCH_HEADER,
        [("PO1", "C1", "SO1", "M", 40, "INV1"), ("PO2", "C2", "SO2", "L", 150, "INV2"), ("PO3", "C3", "SO3", "S", 5, "INV3")],
    )

    await ingest(db, pending, LedgerType.PENDING)
    summary = await ingest(db, dispatched, LedgerType.DISPATCHED)

    assert summary.completed
    assert summary.rows_written == 3
    assert summary.reconciled == 1
    assert summary.decremented == 1
    assert summary.unmatched == 1
    assert summary.reconcile_failed == 0
    po1 = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"})
    assert po1.pending_quantity == 60
    assert await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO2"}) is None
    assert await OrderLedgerRepository.count(db, LedgerType.DISPATCHED) == 3


async def test_reingesting_dispatch_keeps_history_count(db, write_csv):
    path = write_csv(
        "dispatch.csv",
        DISPATCH_HEADER,
        [("PO1", "C1", "SO1", "M", 10, "INV1"), ("PO1", "C1", "SO1", "M", 10, "INV2")],
    )

    await ingest(db, path, LedgerType.DISPATCHED)
    second = await ingest(db, path, LedgerType.DISPATCHED)

    assert second.completed
    assert await OrderLedgerRepository.count(db, LedgerType.DISPATCHED) == 2


async def test_write_failure_keeps_earlier_batches(db, write_csv, monkeypatch):
    path = write_csv("pending.csv", PENDING_HEADER, [(f"PO{i}", "C1", "SO1", "M", 5, 5) for i in range(10)])
    real_bulk_upsert = OrderLedgerRepository.bulk_upsert
    calls = []

    async def failing_third_batch(db, ledger, operations):
        calls.append(len(operations))
        if len(calls) == 3:
            raise BatchWriteError("storage unavailable", batch_size=len(operations))
        return await real_bulk_upsert(db, ledger, operations)

    monkeypatch.setattr(OrderLedgerRepository, "bulk_upsert", staticmethod(failing_third_batch))

    summary = await ingest(db, path, LedgerType.PENDING, batch_size=3)

    assert not summary.completed
    assert "storage unavailable" in summary.error
    assert summary.batches == 2
    assert summary.rows_written == 6
    assert len(calls) == 3
    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 6

    run = await IngestionRunRepository.get_run(db, summary.run_id)
    assert run["status"] == IngestionStatus.FAILED
    assert run["rows_written"] == 6
    assert run["error_message"] == summary.error


async def test_completed_run_is_recorded(db, write_csv):
    path = write_csv("pending.csv", PENDING_HEADER, [("PO1", "C1", "SO1", "M", 5, 5)])

    summary = await ingest(db, path, LedgerType.PENDING, source="nightly-export")

    run = await IngestionRunRepository.get_run(db, summary.run_id)
    assert run["status"] == IngestionStatus.COMPLETED
    assert run["file_name"] == "pending.csv"
    assert run["ledger"] == "PENDING"
    assert run["source"] == "nightly-export"
    assert run["batches"] == 1
    row = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"})
    assert row.source == "nightly-export"
    assert row.status == "Pending"


async def test_unsupported_file_is_rejected_before_processing(db, tmp_path, bulk_write_calls):
    path = tmp_path / "orders.pdf"
    path.write_bytes(b"%PDF-1.4")

    with pytest.raises(UnsupportedFileError):
        await ingest(db, str(path), LedgerType.PENDING)

    assert bulk_write_calls == []


async def test_excel_ingestion(db, tmp_path):
    path = tmp_path / "outstanding.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame({"Note": ["cover"]}).to_excel(writer, sheet_name="Cover", index=False)
        pd.DataFrame(
            {
                "Order No": ["PO1", "PO2", "PO3"],
                "Item Code": ["C1", "C2", "C3"],
                "Size": ["M", "L", None],
                "Order Qty": [100, 20, 30],
                "Sale Qty": [40, 0, 30],
            }
        ).to_excel(writer, sheet_name="Outstanding", index=False)

    summary = await ingest(db, str(path), LedgerType.PENDING, batch_size=2)

    assert summary.completed
    assert summary.batches == 2
    assert summary.rows_written == 3
    po1 = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"})
    assert po1.pending_quantity == 60
    po3 = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO3"})
    assert po3.size == ""
    assert po3.pending_quantity == 0


async def test_next_batch_is_decoded_only_after_previous_is_processed(db, monkeypatch):
    produced = []

    def batches():
        for i in range(4):
            produced.append(i)
            yield [{"Order No": f"PO{i}", "Item Code": "C1", "Size": "M", "Order Qty": "1"}]

    ingestor = BatchIngestor(db, LedgerType.PENDING)
    real_process_batch = ingestor.process_batch
    decoded_while_processing = []

    async def process_batch(rows):
        decoded_while_processing.append(len(produced))
        await asyncio.sleep(0)
        result = await real_process_batch(rows)
        decoded_while_processing.append(len(produced))
        return result

    monkeypatch.setattr(ingestor, "process_batch", process_batch)

    summaries = [s async for s in ingestor.run(batches(), IngestSummary(ledger=LedgerType.PENDING))]

    assert decoded_while_processing == [1, 1, 2, 2, 3, 3, 4, 4]
    assert [s.batches for s in summaries] == [1, 2, 3, 4, 4]
    assert summaries[-1].completed
    assert not any(s.completed for s in summaries[:-1])


async def test_cancellation_is_recorded_and_reraised(db, write_csv, monkeypatch):
    path = write_csv("pending.csv", PENDING_HEADER, [(f"PO{i}", "C1", "SO1", "M", 5, 5) for i in range(6)])
    real_process_batch = BatchIngestor.process_batch
    calls = []

    async def cancel_second_batch(self, rows):
        calls.append(len(rows))
        if len(calls) == 2:
            raise asyncio.CancelledError()
        return await real_process_batch(self, rows)

    monkeypatch.setattr(BatchIngestor, "process_batch", cancel_second_batch)

    with pytest.raises(asyncio.CancelledError):
        await ingest(db, path, LedgerType.PENDING, batch_size=3)

    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 3
    run = await IngestionRunRepository.get_run(db, 1)
    assert run["status"] == IngestionStatus.CANCELLED
    assert run["rows_written"] == 3


async def test_row_with_unquoted_comma_does_not_stop_the_run(db, write_csv):
    rows = [(f"PO{i}", "C1", "SO1", "M", 5, 5, "on time") for i in range(10)]
    rows[5] = ("PO5", "C1", "SO1", "M", 5, 5, "late, see mail")
    path = write_csv("pending.csv", PENDING_HEADER + ["Dept.Remark"], rows)

    summary = await ingest(db, path, LedgerType.PENDING, batch_size=3)

    assert summary.completed
    assert summary.rows_written == 10
    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 10
    po5 = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO5"})
    assert po5.department_remark == "late, see mail"


async def test_unexpected_error_marks_run_failed_and_propagates(db, write_csv, monkeypatch):
    path = write_csv("pending.csv", PENDING_HEADER, [(f"PO{i}", "C1", "SO1", "M", 5, 5) for i in range(6)])
    real_process_batch = BatchIngestor.process_batch
    calls = []

    async def crash_on_second_batch(self, rows):
        calls.append(len(rows))
        if len(calls) == 2:
            raise RuntimeError("worker out of memory")
        return await real_process_batch(self, rows)

    monkeypatch.setattr(BatchIngestor, "process_batch", crash_on_second_batch)

    with pytest.raises(RuntimeError):
        await ingest(db, path, LedgerType.PENDING, batch_size=3)

    run = await IngestionRunRepository.get_run(db, 1)
    assert run["status"] == IngestionStatus.FAILED
    assert run["rows_written"] == 3
    assert "worker out of memory" in run["error_message"]
    assert run["completed_at"] is not None
    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 3
