from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportFileRequest(BaseModel):
    path: str
    index: Dict[str, str] = Field(description="Field name to column letter, e.g. {'name': 'C'}.")
    batch_size: Optional[int] = Field(default=None, ge=1)
    image_width: Optional[int] = Field(default=None, ge=1)
    image_height: Optional[int] = Field(default=None, ge=1)
    required_fields: Optional[List[str]] = None
    image_source_dir: Optional[str] = None


class ImportSummaryRead(BaseModel):
    job_id: str
    status: str
    total_rows: int = 0
    created: int = 0
    skipped: int = 0
    rejected: int = 0
    failed_rows: int = 0
    failed_batches: int = 0
    fatal_error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ImportJobRead(BaseModel):
    id: str
    file_name: Optional[str] = None
    status: str
    total_rows: int = 0
    created: int = 0
    skipped: int = 0
    rejected: int = 0
    failed_rows: int = 0
    failed_batches: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class JobSubmitted(BaseModel):
    job_id: str
    status: str


class ReconcileRead(BaseModel):
    completed: int
    lost: int
    failed: int = 0
