"""Error taxonomy for the ingestion pipeline.

Row-level data problems never raise: the normalizer resolves them to safe
defaults. The classes here cover the failures that end an ingestion run
(or, for reconciliation, that are counted per record).
"""


class LedgerSyncError(Exception):
    """Base class for ingestion errors."""


class UnsupportedFileError(LedgerSyncError):
    """Input rejected before any batch was processed."""


class FileDecodeError(LedgerSyncError):
    """Input could not be decoded into rows."""


class BatchWriteError(LedgerSyncError):
    """A bulk upsert was rejected by the storage layer.

    Attributes:
        batch_size: Number of operations in the rejected batch.
    """

    def __init__(self, message: str, batch_size: int = 0):
        super().__init__(message)
        self.batch_size = batch_size
