"""Raw inbound webhook as stored before normalization."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class RawWebhook(BaseModel):
    """
    Provider webhook body persisted verbatim on ingress.

    Terminal once processed is True; processing_error is set when
    normalization failed.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    service: str = Field(..., description='Provider key, e.g. "justcall" or "twilio"')
    raw_payload: dict[str, Any] = Field(default_factory=dict)
    processed: bool = False
    processing_error: str | None = None
    signature: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
