from datetime import datetime
from typing import Generic, TypeVar, List, Optional, Any, Dict
from pydantic import BaseModel, Field

T = TypeVar("T")

class StandardResponse(BaseModel, Generic[T]):
    """Standard API response envelope."""
    status: str = "success"
    data: Optional[T] = None
    message: Optional[str] = None

class JobStatusResponse(BaseModel):
    """Progress of one enrichment job."""
    job_id: str
    kind: str
    status: str
    mode: str
    total: int
    processed: int
    succeeded: int
    failed: int
    fields_updated: int = 0
    current_item: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    details: List[Dict[str, Any]] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
