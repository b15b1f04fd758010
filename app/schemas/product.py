from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class CategoryRead(BaseModel):
    id: int
    name: str
    icon_name: str = ""

    model_config = ConfigDict(from_attributes=True)


class ProductRead(BaseModel):
    id: int
    code: Optional[str] = None
    category_id: int
    name: str
    detail: Optional[str] = None
    specification: Optional[str] = None
    standard: Optional[str] = None
    unit: Optional[str] = None
    quantity: int
    note: Optional[str] = None
    images: List[str] = []
    other_fields: List[List[Any]] = []
    media_status: str
    import_job_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
