import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ledger_sync.db.models.order_fields import RECONCILIATION_KEY_COLUMNS, TEXT_COLUMN_LENGTHS
from ledger_sync.schemas.order_schemas import OrderRecord
from ledger_sync.services.field_normalizer import has_value
from ledger_sync.utils.enums.ledger import LedgerType
from ledger_sync.utils.field_aliases import NUMERIC_FIELD_ALIASES, NUMERIC_FIELDS


@dataclass(frozen=True)
class CanonicalRecord:
    """Coerced column values plus the natural-key filter used for upsert."""

    fields: Dict[str, Any]
    key: Dict[str, str]


def coerce_quantity(value: Any) -> float:
    """Force a value to a finite, non-negative float."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def build_natural_key(record: OrderRecord, ledger: LedgerType) -> Dict[str, str]:
    key = {
        "po_number": record.po_number,
        "product_code": record.product_code,
        "so_number": record.so_number,
        "size": record.size,
    }
    if record.line_item_number:
        key["line_item_number"] = record.line_item_number
    if ledger is LedgerType.DISPATCHED and record.invoice_number:
        key["invoice_number"] = record.invoice_number
    return key


def reconciliation_key(record: OrderRecord) -> Dict[str, str]:
    """Key used to find the pending line a dispatch record draws down.

    Deliberately coarser than the natural key: one pending line can be
    fulfilled by dispatch rows carrying different line item or invoice
    numbers.
    """
    return {column: getattr(record, column) for column in RECONCILIATION_KEY_COLUMNS}


def canonicalize(
    record: OrderRecord,
    ledger: LedgerType,
    source: Optional[str] = None,
) -> CanonicalRecord:
    coerced = {field: coerce_quantity(getattr(record, field)) for field in NUMERIC_FIELDS}

    # Pending exports without an outstanding column still carry order and
    # sale quantities; derive the outstanding amount from them.
    if ledger is LedgerType.PENDING and not has_value(
        record.raw, NUMERIC_FIELD_ALIASES["pending_quantity"]
    ):
        coerced["pending_quantity"] = max(
            0.0, coerced["quantity"] - coerced["dispatch_quantity"]
        )

    update: Dict[str, Any] = dict(coerced, status=ledger.status_label)
    if source is not None:
        update["source"] = source
    canonical = record.model_copy(update=update)

    # Over-long cells are clipped to the column width rather than failing the batch
    clipped = {
        field: getattr(canonical, field)[:limit]
        for field, limit in TEXT_COLUMN_LENGTHS.items()
        if len(getattr(canonical, field)) > limit
    }
    if clipped:
        canonical = canonical.model_copy(update=clipped)
    return CanonicalRecord(
        fields=canonical.model_dump(),
        key=build_natural_key(canonical, ledger),
    )
