from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String

from app.core.constants import MEDIA_STATUS_NONE
from app.database.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    code = Column(String)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    # De-duplication key for imports; checked before insert, not constrained.
    name = Column(String, nullable=False)
    detail = Column(String)
    specification = Column(String)
    standard = Column(String)
    unit = Column(String)
    quantity = Column(Integer, nullable=False, default=0)
    note = Column(String)

    images = Column(JSON, nullable=False, default=list)
    other_fields = Column(JSON, nullable=False, default=list)

    media_status = Column(String(20), nullable=False, default=MEDIA_STATUS_NONE)
    staged_images = Column(JSON, nullable=False, default=list)
    import_job_id = Column(String(32), ForeignKey("import_jobs.id"))

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_products_name", "name"),
        Index("idx_products_code", "code"),
        Index("idx_products_media_status", "media_status"),
    )


__all__ = ["Product"]
