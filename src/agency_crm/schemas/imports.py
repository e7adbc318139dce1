from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ImportJobCreate(BaseModel):
    filename: str
    total_rows: int = Field(..., gt=0)


class ImportBatchRequest(BaseModel):
    rows: List[Dict[str, Any]]
    # Position of the first row of this batch within the whole file
    offset: int = Field(0, ge=0)
    agency_id: Optional[str] = None


class ImportBatchResponse(BaseModel):
    ok: int
    fail: int
    skipped: int
    total: int
    processed_rows: int
    is_complete: bool
    status: str


class ImportJobResponse(BaseModel):
    id: str
    agency_id: str
    filename: str
    status: str
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    percent: float = 0.0
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True
