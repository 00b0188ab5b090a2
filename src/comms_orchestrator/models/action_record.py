"""
ActionRecord model: a proposed or executed autonomous action.

Status only moves forward: pending -> executed | failed. An action with
requires_approval=True needs an approval signal before it can execute;
reminders are created already executed.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class ActionType(str, Enum):
    MESSAGE = 'message'
    SET_FUTURE_REMINDER = 'set_future_reminder'
    DATA_UPDATE = 'data_update'
    ESCALATION = 'escalation'
    HUMAN_IN_LOOP = 'human_in_loop'
    NO_ACTION = 'no_action'


class ActionStatus(str, Enum):
    PENDING = 'pending'
    EXECUTED = 'executed'
    FAILED = 'failed'


TERMINAL_ACTION_STATES = (ActionStatus.EXECUTED, ActionStatus.FAILED)


class ActionRecord(BaseModel):
    """Action proposed by the decision engine, linked to its PromptRun."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    prompt_run_id: str = Field(..., description='PromptRun that produced this action')
    project_id: str
    action_type: ActionType
    action_payload: dict[str, Any] = Field(default_factory=dict)
    requires_approval: bool = True
    status: ActionStatus = ActionStatus.PENDING

    recipient_id: str | None = None
    sender_id: str | None = None
    message: str | None = None

    approved_at: datetime | None = None
    approved_by: str | None = None
    executed_at: datetime | None = None
    execution_claimed_at: datetime | None = None
    execution_result: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ACTION_STATES
