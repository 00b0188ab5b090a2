"""
Built-in tool catalog.

``build_registry`` binds each backing unit to its collaborators so the
registry only ever calls ``execute(args, context)``.
"""

from functools import partial

import httpx

from comms_orchestrator.actions.records import ActionRecordService, CreateActionRecordArgs
from comms_orchestrator.repository import CommsRepository

from ..registry import ToolRegistry, ToolSpec
from .actions import EscalationArgs, create_action_record, escalation
from .knowledge import KnowledgeLookupArgs, knowledge_lookup
from .projects import CrmReadArgs, IdentifyProjectArgs, crm_read, identify_project


def build_registry(
    repository: CommsRepository,
    actions: ActionRecordService,
    knowledge_search_url: str | None = None,
    http_timeout: float = 30.0,
    http_client: httpx.AsyncClient | None = None,
) -> ToolRegistry:
    return ToolRegistry(
        [
            ToolSpec(
                name='create_action_record',
                description=(
                    'Creates an action record for a project: a message, data update, '
                    'reminder, escalation or human review.'
                ),
                args_model=CreateActionRecordArgs,
                execute=partial(create_action_record, repository=repository, actions=actions),
            ),
            ToolSpec(
                name='identify_project',
                description='Finds projects by id, CRM ID or address within the caller\'s company.',
                args_model=IdentifyProjectArgs,
                execute=partial(identify_project, repository=repository),
            ),
            ToolSpec(
                name='escalation',
                description=(
                    'Creates an escalation for a project that needs management attention '
                    'due to issues, delays or non-responsive contacts.'
                ),
                args_model=EscalationArgs,
                execute=partial(escalation, repository=repository, actions=actions),
            ),
            ToolSpec(
                name='knowledge_lookup',
                description='Searches the company knowledge base for relevant documents.',
                args_model=KnowledgeLookupArgs,
                execute=partial(
                    knowledge_lookup,
                    search_url=knowledge_search_url,
                    timeout=http_timeout,
                    http_client=http_client,
                ),
            ),
            ToolSpec(
                name='crm_read',
                description='Reads project details, contacts or recent activity for a project.',
                args_model=CrmReadArgs,
                execute=partial(crm_read, repository=repository),
            ),
        ]
    )


__all__ = [
    'CrmReadArgs',
    'EscalationArgs',
    'IdentifyProjectArgs',
    'KnowledgeLookupArgs',
    'build_registry',
]
