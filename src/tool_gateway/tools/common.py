"""Helpers shared by backing units."""

from comms_orchestrator.models.project import Project
from comms_orchestrator.repository import CommsRepository

from ..context import SecurityContext
from ..errors import AccessDeniedError, GatewayError, ToolArgumentError


def scoped_project_id(requested: str | None, context: SecurityContext) -> str:
    project_id = requested or context.project_id
    if not project_id:
        raise ToolArgumentError(
            'project_id is required',
            details=[{'loc': ['project_id'], 'msg': 'Field required'}],
        )
    return project_id


async def load_project_for(
    repository: CommsRepository,
    context: SecurityContext,
    project_id: str,
) -> Project:
    """
    Fetch a project the caller's company owns.

    Raises:
        GatewayError: 404 when the project does not exist
        AccessDeniedError: The project belongs to another company
    """
    project = await repository.get_project(project_id)
    if project is None:
        raise GatewayError(f'Project not found: {project_id}', status_code=404)
    if project.company_id != context.company_id:
        raise AccessDeniedError('Project belongs to another company')
    return project
