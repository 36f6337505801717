import logging
from dataclasses import dataclass, field
from typing import Dict, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_sync.db.repositories.order_ledger import OrderLedgerRepository
from ledger_sync.schemas.order_schemas import OrderRecord
from ledger_sync.services.record_canonicalizer import coerce_quantity, reconciliation_key
from ledger_sync.utils.enums.ledger import LedgerType, ReconcileOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    counts: Dict[ReconcileOutcome, int] = field(
        default_factory=lambda: {outcome: 0 for outcome in ReconcileOutcome}
    )

    @property
    def reconciled(self) -> int:
        return self.counts[ReconcileOutcome.RECONCILED]

    @property
    def decremented(self) -> int:
        return self.counts[ReconcileOutcome.DECREMENTED]

    @property
    def unmatched(self) -> int:
        return self.counts[ReconcileOutcome.UNMATCHED]

    @property
    def failed(self) -> int:
        return self.counts[ReconcileOutcome.FAILED]


class Reconciler:
    """Draws pending quantities down as dispatch records are recorded.

    Must only run after the dispatch batch has been committed to history.
    Each record is one transaction: the pending row is read under a row
    lock, decremented or deleted, and committed before the next record, so
    concurrent uploads touching the same pending line apply serially.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def reconcile_batch(self, records: Sequence[OrderRecord]) -> ReconcileResult:
        counts = {outcome: 0 for outcome in ReconcileOutcome}
        for record in records:
            outcome = await self.reconcile_record(record)
            counts[outcome] += 1
        return ReconcileResult(counts=counts)

    async def reconcile_record(self, record: OrderRecord) -> ReconcileOutcome:
        match = reconciliation_key(record)
        shipped = coerce_quantity(record.dispatch_quantity)
        try:
            pending = await OrderLedgerRepository.find_one(
                self.db, LedgerType.PENDING, match, for_update=True
            )
            if pending is None:
                # Dispatched line was never tracked as pending
                await self.db.rollback()
                return ReconcileOutcome.UNMATCHED

            remaining = (pending.pending_quantity or 0) - shipped
            if remaining <= 0:
                await OrderLedgerRepository.delete_one(self.db, LedgerType.PENDING, pending.id)
                outcome = ReconcileOutcome.RECONCILED
            else:
                await OrderLedgerRepository.update_one(
                    self.db,
                    LedgerType.PENDING,
                    {"id": pending.id},
                    {"pending_quantity": remaining},
                )
                outcome = ReconcileOutcome.DECREMENTED
            await self.db.commit()
            return outcome
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "Reconciliation failed for record",
                extra={"match": match, "dispatch_quantity": shipped, "error": str(e)},
            )
            return ReconcileOutcome.FAILED
