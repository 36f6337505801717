from sqlalchemy import Column, BigInteger, Integer, String, Float, JSON, TIMESTAMP, func


# Columns making up the upsert natural key. Optional parts are stored as ""
# so the unique constraint can cover them.
PENDING_KEY_COLUMNS = ("po_number", "product_code", "so_number", "size", "line_item_number")
HISTORY_KEY_COLUMNS = PENDING_KEY_COLUMNS + ("invoice_number",)

# Coarser key used to find the pending line a dispatch record fulfils
RECONCILIATION_KEY_COLUMNS = ("po_number", "product_code", "size")


class OrderFieldsMixin:
    """Canonical order-line columns shared by the pending and history ledgers."""

    # SQLite only autoincrements INTEGER primary keys
    id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True)

    # Order identification
    po_number = Column(String(100), nullable=False, server_default="", default="", index=True)
    so_number = Column(String(100), nullable=False, server_default="", default="", index=True)
    order_number = Column(String(100), nullable=False, server_default="", default="")
    line_item_number = Column(String(50), nullable=False, server_default="", default="")

    # Product
    product_code = Column(String(100), nullable=False, server_default="", default="", index=True)
    part_number = Column(String(100), nullable=False, server_default="", default="")
    size = Column(String(50), nullable=False, server_default="", default="")
    drawing_number = Column(String(100), nullable=False, server_default="", default="")

    # Customer
    customer_name = Column(String(255), nullable=False, server_default="", default="", index=True)
    customer_code = Column(String(100), nullable=False, server_default="", default="")

    # Quantities
    quantity = Column(Float, nullable=False, server_default="0", default=0)
    dispatch_quantity = Column(Float, nullable=False, server_default="0", default=0)
    pending_quantity = Column(Float, nullable=False, server_default="0", default=0)

    # Financial
    gross_weight = Column(Float, nullable=False, server_default="0", default=0)
    charge_weight = Column(Float, nullable=False, server_default="0", default=0)
    rate = Column(Float, nullable=False, server_default="0", default=0)

    # Dates are kept in the source's own format
    so_date = Column(String(50), nullable=False, server_default="", default="")
    order_date = Column(String(50), nullable=False, server_default="", default="")
    dispatch_date = Column(String(50), nullable=False, server_default="", default="")
    expected_delivery_date = Column(String(50), nullable=False, server_default="", default="")
    pack_slip_date = Column(String(50), nullable=False, server_default="", default="")
    invoice_date = Column(String(50), nullable=False, server_default="", default="")

    # Shipping
    invoice_number = Column(String(100), nullable=False, server_default="", default="")
    truck_number = Column(String(100), nullable=False, server_default="", default="")
    transport = Column(String(255), nullable=False, server_default="", default="")

    # Free text
    department_remark = Column(String(500), nullable=False, server_default="", default="")
    so_special_remark = Column(String(500), nullable=False, server_default="", default="")
    die_indent = Column(String(255), nullable=False, server_default="", default="")

    status = Column(String(20), nullable=False, server_default="", default="")
    source = Column(String(255), nullable=False, server_default="", default="")
    raw = Column(JSON, nullable=True, comment="Verbatim source row, audit only")

    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=True)
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now(), nullable=True)


# Bounded text columns and their lengths, used to clip values before writing
TEXT_COLUMN_LENGTHS = {
    name: column.type.length
    for name, column in vars(OrderFieldsMixin).items()
    if isinstance(column, Column) and isinstance(column.type, String) and column.type.length
}
