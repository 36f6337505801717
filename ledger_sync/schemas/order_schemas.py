from typing import Any, Dict

from pydantic import BaseModel, Field


class OrderRecord(BaseModel):
    """Canonical order line shared by the pending and history ledgers."""

    po_number: str = ""
    so_number: str = ""
    order_number: str = ""
    line_item_number: str = ""

    product_code: str = ""
    part_number: str = ""
    size: str = ""
    drawing_number: str = ""

    customer_name: str = ""
    customer_code: str = ""

    quantity: float = 0
    dispatch_quantity: float = 0
    pending_quantity: float = 0

    gross_weight: float = 0
    charge_weight: float = 0
    rate: float = 0

    so_date: str = ""
    order_date: str = ""
    dispatch_date: str = ""
    expected_delivery_date: str = ""
    pack_slip_date: str = ""
    invoice_date: str = ""

    invoice_number: str = ""
    truck_number: str = ""
    transport: str = ""

    department_remark: str = ""
    so_special_remark: str = ""
    die_indent: str = ""

    status: str = ""
    source: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)

