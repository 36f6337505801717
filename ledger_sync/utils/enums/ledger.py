from enum import Enum, IntEnum


class LedgerType(str, Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"

    @property
    def status_label(self) -> str:
        return "Pending" if self is LedgerType.PENDING else "Dispatched"


class IngestionStatus(IntEnum):
    PENDING = 0
    PROCESSING = 1
    COMPLETED = 2
    FAILED = 3
    CANCELLED = 4


class ReconcileOutcome(str, Enum):
    RECONCILED = "reconciled"  # pending line fully satisfied and deleted
    DECREMENTED = "decremented"
    UNMATCHED = "unmatched"
    FAILED = "failed"
