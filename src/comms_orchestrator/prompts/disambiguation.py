"""
Multi-project disambiguation response handling and fallback instruction.
"""

import json
import re

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..models.project import Project

_FENCE_PATTERN = re.compile(r'^```(?:json)?\s*|\s*```$', re.MULTILINE)


class ProjectPartition(BaseModel):
    """Slice of one communication that concerns a single project."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias='projectId')
    relevant_content: str = Field(..., alias='relevantContent')


class DisambiguationResponse(BaseModel):
    projects: list[ProjectPartition]


def project_fingerprint(project: Project) -> dict[str, str | None]:
    """Short identifying view of a project for the disambiguation prompt."""
    summary = project.summary or ''
    return {
        'id': project.id,
        'summary': summary[:500] if summary else None,
        'address': project.address,
        'next_step': project.next_step,
    }


def parse_disambiguation_response(text: str) -> list[ProjectPartition] | None:
    """
    Parse the decision engine's partition reply.

    Returns:
        Partitions, or None when the reply is not in the expected shape
    """
    if not text or not text.strip():
        return None
    cleaned = _FENCE_PATTERN.sub('', text.strip()).strip()
    try:
        data = json.loads(cleaned)
        response = DisambiguationResponse.model_validate(data)
    except (json.JSONDecodeError, PydanticValidationError):
        return None
    return [p for p in response.projects if p.relevant_content.strip()]


def build_fallback_instruction(project: Project, content: str) -> str:
    """New-data text used when the partition reply could not be parsed."""
    return (
        'IMPORTANT: This communication appears to be between a project manager and '
        'a roofer/contractor and may reference multiple projects. Only extract and '
        f'apply information that relates to project {project.id} '
        f'(address: {project.address or "unknown"}). If nothing in it concerns this '
        'project, leave the summary unchanged.\n\n'
        f'{content}'
    )
