"""Debounce batch status model."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class BatchState(str, Enum):
    """
    Batch lifecycle.

    in_progress -> processing is the claim step; only one sweep may win it.
    """

    IN_PROGRESS = 'in_progress'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    ERROR = 'error'


ACTIVE_BATCH_STATES = (BatchState.IN_PROGRESS, BatchState.PROCESSING)


class BatchStatus(BaseModel):
    """One debounce window of communications for a project."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: str
    batch_status: BatchState = BatchState.IN_PROGRESS
    scheduled_processing_time: datetime
    processed_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error_message: str | None = None

    @property
    def is_active(self) -> bool:
        return self.batch_status in ACTIVE_BATCH_STATES

    def is_due(self, now: datetime) -> bool:
        return (
            self.batch_status == BatchState.IN_PROGRESS
            and self.scheduled_processing_time <= now
        )
