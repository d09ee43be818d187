"""Session event models."""
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, Field

from .data import new_id


class EventType(str, Enum):
    SESSION_CREATED = "session.created"
    SESSION_STARTED = "session.started"
    SESSION_COMPLETED = "session.completed"
    SESSION_FAILED = "session.failed"
    PAGE_LOADED = "page.loaded"
    PAGE_ERROR = "page.error"
    DATA_EXTRACTED = "data.extracted"
    DATA_CLEANED = "data.cleaned"
    EXPORT_STARTED = "export.started"
    EXPORT_COMPLETED = "export.completed"
    PROGRESS_UPDATED = "progress.updated"
    ERROR_OCCURRED = "error.occurred"

    @property
    def severity(self) -> str:
        if "error" in self.value or "failed" in self.value:
            return "error"
        return "info"


class ScrapingEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    session_id: str
    type: EventType
    data: Any = None
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: str = "info"


class EventSubscription(BaseModel):
    """A subscriber callback for one session, or for all sessions when
    ``session_id`` is None."""

    id: str = Field(default_factory=new_id)
    session_id: Optional[str] = None
    event_types: List[EventType]
    callback: Callable[[ScrapingEvent], None]
    created: datetime = Field(default_factory=datetime.now)
    active: bool = True

    def matches(self, event: ScrapingEvent) -> bool:
        return (
            self.active
            and event.type in self.event_types
            and (self.session_id is None or self.session_id == event.session_id)
        )
