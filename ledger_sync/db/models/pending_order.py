from sqlalchemy import Index, UniqueConstraint
from ledger_sync.db.base import Base
from ledger_sync.db.models.order_fields import OrderFieldsMixin, PENDING_KEY_COLUMNS


class PendingOrder(OrderFieldsMixin, Base):
    """Outstanding order lines. Rows are removed once fully dispatched."""

    __tablename__ = "tbl_pending_orders"
    __table_args__ = (
        UniqueConstraint(*PENDING_KEY_COLUMNS, name="uq_pending_orders_natural_key"),
        Index("idx_pending_orders_reconcile", "po_number", "product_code", "size"),
        Index("idx_pending_orders_expected_delivery", "expected_delivery_date"),
    )
