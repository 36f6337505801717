import pytest
from sqlalchemy.exc import OperationalError

from ledger_sync.db.repositories.order_ledger import OrderLedgerRepository
from ledger_sync.services.field_normalizer import normalize
from ledger_sync.services.reconciler import Reconciler
from ledger_sync.services.record_canonicalizer import canonicalize
from ledger_sync.utils.enums.ledger import LedgerType, ReconcileOutcome

pytestmark = pytest.mark.anyio


async def seed_pending(db, rows):
    canonical = [canonicalize(normalize(row), LedgerType.PENDING) for row in rows]
    await OrderLedgerRepository.bulk_upsert(db, LedgerType.PENDING, [(c.key, c.fields) for c in canonical])


def dispatch(po, product, size, shipped, **extra):
    return normalize({"Order No": po, "Item Code": product, "Size": size, "Sale Qty": str(shipped), **extra})


@pytest.fixture
async def pending_po1(db):
    await seed_pending(db, [{"Order No": "PO1", "Item Code": "C1", "Size": "M", "O/S Ord.Qty": "100"}])


async def test_partial_dispatch_decrements(db, pending_po1):
    result = await Reconciler(db).reconcile_batch([dispatch("PO1", "C1", "M", 40)])

    row = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"})
    assert row.pending_quantity == 60
    assert result.decremented == 1
    assert result.reconciled == 0


async def test_full_dispatch_deletes(db, pending_po1):
    result = await Reconciler(db).reconcile_batch([dispatch("PO1", "C1", "M", 150)])

    assert await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"}) is None
    assert result.reconciled == 1


async def test_exact_dispatch_deletes(db, pending_po1):
    outcome = await Reconciler(db).reconcile_record(dispatch("PO1", "C1", "M", 100))

    assert outcome is ReconcileOutcome.RECONCILED
    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 0


async def test_unmatched_dispatch_is_a_no_op(db, pending_po1):
    result = await Reconciler(db).reconcile_batch([dispatch("PO9", "C1", "M", 40)])

    row = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"})
    assert row.pending_quantity == 100
    assert result.unmatched == 1
    assert result.failed == 0


async def test_match_ignores_line_item_and_invoice(db, pending_po1):
    record = dispatch("PO1", "C1", "M", 10, **{"PO Srl": "7", "Invoice No": "INV1"})

    outcome = await Reconciler(db).reconcile_record(record)

    assert outcome is ReconcileOutcome.DECREMENTED


async def test_sequential_dispatches_accumulate(db, pending_po1):
    records = [dispatch("PO1", "C1", "M", 30), dispatch("PO1", "C1", "M", 30), dispatch("PO1", "C1", "M", 50)]

    result = await Reconciler(db).reconcile_batch(records)

    assert result.decremented == 2
    assert result.reconciled == 1
    assert await OrderLedgerRepository.count(db, LedgerType.PENDING) == 0


async def test_failed_record_does_not_stop_batch(db, monkeypatch):
    await seed_pending(
        db,
        [
            {"Order No": "PO1", "Item Code": "C1", "Size": "M", "O/S Ord.Qty": "100"},
            {"Order No": "PO2", "Item Code": "C2", "Size": "L", "O/S Ord.Qty": "100"},
        ],
    )
    real_update_one = OrderLedgerRepository.update_one

    async def flaky_update_one(db, ledger, filters, fields):
        row = await OrderLedgerRepository.find_one(db, ledger, filters)
        if row.po_number == "PO1":
            raise OperationalError("UPDATE tbl_pending_orders", {}, Exception("database is locked"))
        return await real_update_one(db, ledger, filters, fields)

    monkeypatch.setattr(OrderLedgerRepository, "update_one", staticmethod(flaky_update_one))

    result = await Reconciler(db).reconcile_batch([dispatch("PO1", "C1", "M", 10), dispatch("PO2", "C2", "L", 10)])

    assert result.failed == 1
    assert result.decremented == 1
    po1 = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO1"})
    po2 = await OrderLedgerRepository.find_one(db, LedgerType.PENDING, {"po_number": "PO2"})
    assert po1.pending_quantity == 100
    assert po2.pending_quantity == 90
