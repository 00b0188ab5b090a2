"""identify_project and crm_read backing units."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from comms_orchestrator.repository import CommsRepository

from ..context import SecurityContext
from .common import load_project_for, scoped_project_id


class IdentifyProjectArgs(BaseModel):
    model_config = ConfigDict(extra='forbid')

    query: str = Field(
        ..., min_length=1, description='Search query to identify the project (address, CRM ID or id)'
    )
    type: Literal['any', 'id', 'crm_id', 'address'] = Field(
        default='any', description="Field to search. 'any' searches all fields"
    )
    limit: int = Field(default=5, ge=1, le=20, description='Maximum number of projects to return')


class CrmReadArgs(BaseModel):
    model_config = ConfigDict(extra='forbid')

    resource_type: Literal['project', 'contact', 'activity'] = Field(
        ..., description='The type of resource to read'
    )
    project_id: str | None = Field(default=None, description='Project to read from')
    limit: int = Field(default=10, ge=1, le=100, description='Maximum number of results to return')


async def identify_project(
    args: IdentifyProjectArgs,
    context: SecurityContext,
    *,
    repository: CommsRepository,
) -> dict[str, Any]:
    projects = await repository.search_projects(context.company_id, args.query, args.type, args.limit)
    if not projects:
        return {'status': 'success', 'projects': [], 'message': f'No projects found matching "{args.query}"'}

    results = []
    for project in projects:
        contacts = await repository.list_project_contacts(project.id)
        results.append(
            {
                'id': project.id,
                'crm_id': project.crm_id,
                'address': project.address,
                'status': project.status,
                'next_step': project.next_step,
                'summary': project.summary,
                'contacts': [c.model_dump() for c in contacts],
            }
        )
    return {'status': 'success', 'projects': results}


async def crm_read(
    args: CrmReadArgs,
    context: SecurityContext,
    *,
    repository: CommsRepository,
) -> dict[str, Any]:
    project_id = scoped_project_id(args.project_id, context)
    project = await load_project_for(repository, context, project_id)

    if args.resource_type == 'project':
        data: Any = project.model_dump(mode='json')
    elif args.resource_type == 'contact':
        contacts = await repository.list_project_contacts(project_id)
        data = [c.model_dump() for c in contacts[: args.limit]]
    else:
        communications = await repository.list_project_communications(project_id, args.limit)
        data = [
            {
                'id': c.id,
                'type': c.type.value,
                'subtype': c.subtype.value,
                'direction': c.direction.value,
                'timestamp': c.timestamp.isoformat(),
                'content': c.content,
            }
            for c in communications
        ]
    return {'status': 'success', 'resource_type': args.resource_type, 'data': data}
