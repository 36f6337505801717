from .pending_order import PendingOrder
from .order import Order
from .ingestion_run import IngestionRun

__all__ = [
    "PendingOrder",
    "Order",
    "IngestionRun",
]
