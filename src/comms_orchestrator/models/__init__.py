"""
Data models for the communications orchestrator.
"""

from .action_record import ActionRecord, ActionStatus, ActionType
from .batch import ACTIVE_BATCH_STATES, BatchState, BatchStatus
from .communication import (
    CommSubtype,
    CommType,
    Communication,
    Direction,
    Participant,
    ParticipantRole,
)
from .project import Contact, Project, ProjectTrack, TrackMilestone
from .prompt_run import AIConfig, PromptRun, PromptRunStatus, WorkflowPrompt, WorkflowPromptType
from .webhook import RawWebhook

__all__ = [
    'ActionRecord',
    'ActionStatus',
    'ActionType',
    'ACTIVE_BATCH_STATES',
    'BatchState',
    'BatchStatus',
    'CommSubtype',
    'CommType',
    'Communication',
    'Direction',
    'Participant',
    'ParticipantRole',
    'Contact',
    'Project',
    'ProjectTrack',
    'TrackMilestone',
    'AIConfig',
    'PromptRun',
    'PromptRunStatus',
    'WorkflowPrompt',
    'WorkflowPromptType',
    'RawWebhook',
]
