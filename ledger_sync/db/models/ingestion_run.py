from sqlalchemy import Column, BigInteger, Integer, String, Text, TIMESTAMP, func
from ledger_sync.db.base import Base


class IngestionRun(Base):
    __tablename__ = "tbl_ingestion_runs"

    id = Column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True)
    file_name = Column(String(255), nullable=True)
    ledger = Column(String(20), nullable=False)
    source = Column(String(255), nullable=True)
    status = Column(Integer, nullable=False, default=0, comment="0=pending, 1=processing, 2=completed, 3=failed, 4=cancelled")

    batch_size = Column(Integer, nullable=True)
    batches = Column(Integer, default=0, nullable=True)
    rows_written = Column(BigInteger, default=0, nullable=True)
    reconciled = Column(BigInteger, default=0, nullable=True)
    decremented = Column(BigInteger, default=0, nullable=True)
    unmatched = Column(BigInteger, default=0, nullable=True)
    reconcile_failed = Column(BigInteger, default=0, nullable=True)

    started_at = Column(TIMESTAMP, nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    processing_time_seconds = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now(), nullable=True)
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now(), nullable=True)
