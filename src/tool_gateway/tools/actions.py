"""create_action_record and escalation backing units."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from comms_orchestrator.actions.records import ActionRecordService, CreateActionRecordArgs
from comms_orchestrator.errors import ActionValidationError
from comms_orchestrator.logging import get_logger
from comms_orchestrator.models.prompt_run import PromptRun
from comms_orchestrator.repository import CommsRepository

from ..context import SecurityContext
from ..errors import ToolArgumentError
from .common import load_project_for, scoped_project_id

logger = get_logger(__name__)

GATEWAY_PROVIDER = 'tool_gateway'


class EscalationArgs(BaseModel):
    model_config = ConfigDict(extra='forbid')

    reason: str = Field(..., min_length=1, description='The reason for escalating this project')
    description: str | None = Field(default=None, description='Detailed description of the situation')
    escalation_details: str | None = Field(
        default=None, description='Additional details about what requires escalation'
    )
    project_id: str = Field(..., description='The project ID that needs escalation')


def _tool_run(
    tool: str,
    arguments: dict[str, Any],
    project_id: str,
    context: SecurityContext,
) -> PromptRun:
    """Audit row linking gateway-created actions to the invocation that made them."""
    return PromptRun(
        project_id=project_id,
        prompt_input=json.dumps({'tool': tool, 'arguments': arguments}, default=str),
        ai_provider=GATEWAY_PROVIDER,
        ai_model=context.user_type,
    )


async def _create(
    repository: CommsRepository,
    actions: ActionRecordService,
    tool: str,
    arguments: dict[str, Any],
    project_id: str,
    context: SecurityContext,
) -> dict[str, Any]:
    await load_project_for(repository, context, project_id)
    run = _tool_run(tool, arguments, project_id, context)
    try:
        record = await actions.prepare(arguments, project_id=project_id, prompt_run_id=run.id)
    except ActionValidationError as e:
        raise ToolArgumentError(e.message, details=e.field_errors) from e

    # nothing is written until the arguments are known to be valid
    await repository.insert_prompt_run(run)
    await repository.complete_prompt_run(run.id, '', [{'name': tool, 'arguments': arguments}])
    await actions.save(record)
    logger.info('gateway.action_created', tool=tool, action_id=record.id, project_id=project_id)
    return {
        'status': 'success',
        'action_id': record.id,
        'action_type': record.action_type.value,
        'action_status': record.status.value,
        'requires_approval': record.requires_approval,
    }


async def create_action_record(
    args: CreateActionRecordArgs,
    context: SecurityContext,
    *,
    repository: CommsRepository,
    actions: ActionRecordService,
) -> dict[str, Any]:
    project_id = scoped_project_id(args.project_id, context)
    arguments = args.model_dump(exclude_none=True)
    arguments['project_id'] = project_id
    return await _create(repository, actions, 'create_action_record', arguments, project_id, context)


async def escalation(
    args: EscalationArgs,
    context: SecurityContext,
    *,
    repository: CommsRepository,
    actions: ActionRecordService,
) -> dict[str, Any]:
    arguments = {'action_type': 'escalation', **args.model_dump(exclude_none=True)}
    return await _create(repository, actions, 'escalation', arguments, args.project_id, context)
