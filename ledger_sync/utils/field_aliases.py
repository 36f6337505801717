"""Source column aliases for each canonical order field.

Each entry lists candidate column names in priority order. The first
candidate holding a non-blank value wins. Supporting a new export format
means adding its column names here.
"""
from typing import Dict, Tuple

TEXT_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    # Order identification
    "po_number": ("Order No", "PO No"),
    "so_number": ("S/O No", "SO No"),
    "order_number": ("Order No",),
    # Disambiguates repeated PO + product combinations within one order
    "line_item_number": ("PO Srl", "P Srl", "Line"),

    # Product
    "product_code": ("Item Code", "Produce Code"),
    "part_number": ("Style No",),
    "size": ("Size",),
    "drawing_number": ("Drg.No",),

    # Customer
    "customer_name": ("Buyer Name", "Party Name"),
    "customer_code": ("Cust Code",),

    # Dates
    "so_date": ("S/O Date",),
    "order_date": ("Order Date",),
    "dispatch_date": ("Dispatch Date",),
    "expected_delivery_date": ("Delivery Date",),
    "pack_slip_date": ("Pack Slip Dt",),
    "invoice_date": ("Invoice Dt",),

    # Shipping
    "invoice_number": ("Invoice No",),
    "truck_number": ("Truck No",),
    "transport": ("Transport",),

    # Remarks
    "department_remark": ("Dept.Remark",),
    "so_special_remark": ("SO SPL.Remark",),
    "die_indent": ("DIE Indend",),
}

NUMERIC_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "quantity": ("Order Qty",),
    "dispatch_quantity": ("Sale Qty",),
    "pending_quantity": ("O/S Ord.Qty",),
    "gross_weight": ("Gross Wt",),
    "charge_weight": ("Chg.Wt",),
    "rate": ("Rate",),
}

NUMERIC_FIELDS: Tuple[str, ...] = tuple(NUMERIC_FIELD_ALIASES)
