"""PromptRun audit trail, workflow prompt templates and AI provider config."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class PromptRunStatus(str, Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    ERROR = 'ERROR'


class WorkflowPromptType(str, Enum):
    SUMMARY_UPDATE = 'summary_update'
    ACTION_DETECTION_EXECUTION = 'action_detection_execution'
    MULTI_PROJECT_ANALYSIS = 'multi_project_analysis'


class AIConfig(BaseModel):
    """Decision engine selection, resolved once per pipeline invocation."""

    model_config = ConfigDict(frozen=True)

    provider: str = 'openai'
    model: str = 'gpt-4o'


class WorkflowPrompt(BaseModel):
    id: str | None = None
    type: WorkflowPromptType
    prompt_text: str


class PromptRun(BaseModel):
    """One decision-engine invocation. Append-only."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_id: str | None = None
    workflow_prompt_id: str | None = None
    prompt_type: WorkflowPromptType | None = None
    prompt_input: str
    prompt_output: str | None = None
    status: PromptRunStatus = PromptRunStatus.PENDING
    ai_provider: str
    ai_model: str
    error_message: str | None = None
    tool_calls: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
