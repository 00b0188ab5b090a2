"""
Project, track and contact models.

A Project belongs to one company (tenant) and follows a track whose roles,
base prompt and milestones feed the decision engine.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Project(BaseModel):
    """Project record mutated by the updater and reminder scheduling."""

    id: str
    company_id: str
    summary: str | None = None
    next_step: str | None = None
    track_id: str | None = None
    next_check_date: datetime | None = None
    last_action_check: datetime | None = None
    address: str | None = None

    # CRM-sourced fields used by reminder activation criteria
    crm_id: str | None = None
    status: str | None = None
    contract_signed: datetime | None = None
    install_finalized: datetime | None = None
    is_test_record: bool = False


class TrackMilestone(BaseModel):
    id: str
    track_id: str
    step_title: str
    prompt_instructions: str | None = None
    step_order: int = 0


class ProjectTrack(BaseModel):
    """Workflow track describing who is involved and how the agent should act."""

    id: str
    name: str
    description: str | None = None
    track_base_prompt: str | None = None
    roles: dict[str, Any] | list[str] = Field(default_factory=list)
    milestones: list[TrackMilestone] = Field(default_factory=list)

    def milestone_instructions(self) -> str:
        """Render milestone guidance as an ordered list for prompts."""
        ordered = sorted(self.milestones, key=lambda m: m.step_order)
        lines = []
        for milestone in ordered:
            line = f'{milestone.step_order}. {milestone.step_title}'
            if milestone.prompt_instructions:
                line += f': {milestone.prompt_instructions}'
            lines.append(line)
        return '\n'.join(lines)


class Contact(BaseModel):
    """Person linked to a project (homeowner, roofer, project manager, ...)."""

    id: str
    full_name: str | None = None
    role: str | None = None
    phone_number: str | None = None
    email: str | None = None
