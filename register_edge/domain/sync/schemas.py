from typing import List, Optional

from pydantic import BaseModel


class SyncOrderResult(BaseModel):
    success: bool
    order_id: str
    platform_order_id: Optional[str] = None
    error: Optional[str] = None
    will_retry: bool = False
    retry_count: int = 0
    in_progress: bool = False


class SyncError(BaseModel):
    order_id: str
    error: str


class SyncSummary(BaseModel):
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[SyncError] = []


class OutboxPassResult(BaseModel):
    sent: int = 0
    dropped: int = 0
    deferred: bool = False


class OutboxStatus(BaseModel):
    length: int
    is_processing: bool
    ready: int
    retrying: int
