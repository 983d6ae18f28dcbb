"""
Notification outbox, dead letter and audit trail schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Dict, Any
from backend.app.models.dlq import DLQStatus


class DrainResponse(BaseModel):
    processed: int
    sent: int
    failed: int
    pending: int


class DeadLetterResponse(BaseModel):
    id: int
    task_name: str
    outbox_id: Optional[int]
    error_message: str
    payload: Optional[Dict[str, Any]]
    status: DLQStatus
    retry_count: int
    created_at: datetime
    last_retry_at: Optional[datetime]

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[int]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime

    class Config:
        from_attributes = True
