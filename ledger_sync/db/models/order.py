from sqlalchemy import Index, UniqueConstraint
from ledger_sync.db.base import Base
from ledger_sync.db.models.order_fields import OrderFieldsMixin, HISTORY_KEY_COLUMNS


class Order(OrderFieldsMixin, Base):
    """Dispatch history. Never deleted by ingestion."""

    __tablename__ = "tbl_orders"
    __table_args__ = (
        UniqueConstraint(*HISTORY_KEY_COLUMNS, name="uq_orders_natural_key"),
        Index("idx_orders_reconcile", "po_number", "product_code", "size"),
        Index("idx_orders_dispatch_date", "dispatch_date"),
        Index("idx_orders_invoice_number", "invoice_number"),
    )
