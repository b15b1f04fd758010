from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from app.core.constants import JOB_STATUS_RUNNING
from app.database.base import Base


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(32), primary_key=True)
    file_name = Column(String, nullable=False)
    status = Column(String(20), nullable=False, default=JOB_STATUS_RUNNING)

    total_rows = Column(Integer, nullable=False, default=0)
    created = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    rejected = Column(Integer, nullable=False, default=0)
    failed_rows = Column(Integer, nullable=False, default=0)
    failed_batches = Column(Integer, nullable=False, default=0)

    error_message = Column(String)

    started_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    finished_at = Column(DateTime(timezone=True))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_import_jobs_status", "status"),
    )


__all__ = ["ImportJob"]
