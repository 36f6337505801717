import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_sync.db.models.order import Order
from ledger_sync.db.models.order_fields import HISTORY_KEY_COLUMNS, PENDING_KEY_COLUMNS
from ledger_sync.db.models.pending_order import PendingOrder
from ledger_sync.errors import BatchWriteError
from ledger_sync.utils.enums.ledger import LedgerType

logger = logging.getLogger(__name__)

UpsertOperation = Tuple[Dict[str, str], Dict[str, Any]]

_LEDGER_MODELS: Dict[LedgerType, Type[Any]] = {
    LedgerType.PENDING: PendingOrder,
    LedgerType.DISPATCHED: Order,
}

_LEDGER_KEY_COLUMNS: Dict[LedgerType, Tuple[str, ...]] = {
    LedgerType.PENDING: PENDING_KEY_COLUMNS,
    LedgerType.DISPATCHED: HISTORY_KEY_COLUMNS,
}

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def ledger_model(ledger: LedgerType):
    return _LEDGER_MODELS[LedgerType(ledger)]


class OrderLedgerRepository:
    """Persistence operations over the pending and history ledgers.

    Only ``bulk_upsert`` commits. The single-row helpers run inside the
    caller's transaction so a read-modify-write can be committed or rolled
    back as one unit.
    """

    @staticmethod
    def _collapse(
        ledger: LedgerType, operations: Sequence[UpsertOperation]
    ) -> List[Dict[str, Any]]:
        # ON CONFLICT cannot touch the same row twice in one statement, so
        # repeated keys inside a batch collapse with the last row winning.
        key_columns = _LEDGER_KEY_COLUMNS[ledger]
        rows: Dict[Tuple[str, ...], Dict[str, Any]] = {}
        for key, fields in operations:
            row = {**fields, **key}
            for column in key_columns:
                row.setdefault(column, "")
            rows[tuple(row[column] for column in key_columns)] = row
        return list(rows.values())

    @staticmethod
    async def bulk_upsert(
        db: AsyncSession,
        ledger: LedgerType,
        operations: Sequence[UpsertOperation],
    ) -> Dict[str, int]:
        """Insert or update every (key, fields) pair in one statement.

        Returns ``{"written": n}`` with one count per submitted operation.

        Raises:
            BatchWriteError: The storage layer rejected the batch. Nothing
                from this batch is kept.
        """
        if not operations:
            return {"written": 0}

        ledger = LedgerType(ledger)
        model = ledger_model(ledger)
        table = model.__table__
        dialect_name = db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            raise BatchWriteError(
                f"Dialect '{dialect_name}' has no conditional upsert support",
                batch_size=len(operations),
            )

        rows = OrderLedgerRepository._collapse(ledger, operations)
        key_columns = _LEDGER_KEY_COLUMNS[ledger]
        stmt = insert(table)
        update_columns = {
            column: stmt.excluded[column]
            for column in rows[0]
            if column not in key_columns and column in table.c
        }
        update_columns["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key_columns),
            set_=update_columns,
        )

        try:
            await db.execute(stmt, rows)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Bulk upsert rejected",
                extra={"ledger": ledger.value, "operations": len(operations), "error": str(e)},
            )
            raise BatchWriteError(
                f"Bulk upsert into {table.name} failed: {e}",
                batch_size=len(operations),
            ) from e

        return {"written": len(operations)}

    @staticmethod
    async def find_one(
        db: AsyncSession,
        ledger: LedgerType,
        filters: Dict[str, Any],
        for_update: bool = False,
    ):
        model = ledger_model(ledger)
        # Reads must see writes made through bulk statements in this session
        stmt = (
            select(model)
            .filter_by(**filters)
            .order_by(model.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update_one(
        db: AsyncSession,
        ledger: LedgerType,
        filters: Dict[str, Any],
        fields: Dict[str, Any],
    ) -> int:
        model = ledger_model(ledger)
        target = select(model.id).filter_by(**filters).order_by(model.id).limit(1)
        stmt = (
            update(model)
            .where(model.id == target.scalar_subquery())
            .values(**fields, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount

    @staticmethod
    async def delete_one(db: AsyncSession, ledger: LedgerType, record_id: int) -> int:
        model = ledger_model(ledger)
        stmt = (
            delete(model)
            .where(model.id == record_id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount

    @staticmethod
    async def count(db: AsyncSession, ledger: LedgerType, filters: Optional[Dict[str, Any]] = None) -> int:
        model = ledger_model(ledger)
        stmt = select(func.count(model.id))
        if filters:
            stmt = stmt.where(*(getattr(model, column) == value for column, value in filters.items()))
        result = await db.execute(stmt)
        return result.scalar_one()
