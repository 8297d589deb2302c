"""
Models for sync cycle results and page outcomes.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, Field


class SyncStage(str, Enum):
    """Stage of a list sync cycle, attached to errors."""
    WATERMARK_READ = "watermark_read"
    FETCH_FIRST_PAGE = "fetch_first_page"
    PUSH_FIRST_PAGE = "push_first_page"
    FETCH_PAGE = "fetch_page"
    PUSH_PAGE = "push_page"
    WATERMARK_WRITE = "watermark_write"


@dataclass
class PageOutcome:
    """What a page worker reports back to the engine."""
    page: int
    member_count: int = 0
    error: Optional[Exception] = None
    stage: Optional[SyncStage] = None


class ListSyncResult(BaseModel):
    """Represents a successful sync cycle for one list."""
    list_id: str
    since_last_changed: str = ""
    cycle_started_at: datetime
    completed_at: Optional[datetime] = None
    total_items: int = 0
    pages: int = 0
    processed: int = 0
    watermark_committed: bool = False
    execution_time_seconds: Optional[float] = None

    @property
    def full_sync(self) -> bool:
        return not self.since_last_changed


class SweepResult(BaseModel):
    """Represents one pass over every audience list."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    lists_found: int = 0
    results: List[ListSyncResult] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.failures

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the sweep."""
        return {
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "lists_found": self.lists_found,
            "synced": len(self.results),
            "failed": len(self.failures),
            "members_processed": sum(r.processed for r in self.results),
            "error": self.error,
        }
