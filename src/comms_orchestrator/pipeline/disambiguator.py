"""
Multi-project disambiguator.

Splits one communication that may span several open projects into
per-project slices and runs the updater independently for each. When the
decision engine's reply cannot be parsed, every open project gets its own
update with an explicit disambiguation instruction instead.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ..config import config
from ..errors import CommsOrchestratorError, DisambiguationError
from ..logging import get_logger, logging_context
from ..models.prompt_run import AIConfig, WorkflowPromptType
from ..prompts.disambiguation import (
    build_fallback_instruction,
    parse_disambiguation_response,
    project_fingerprint,
)
from ..repository import CommsRepository
from .prompt_runner import PromptRunner
from .updater import ProjectUpdater

logger = get_logger(__name__)


@dataclass
class DisambiguationResult:
    company_id: str
    used_fallback: bool = False
    prompt_run_id: str | None = None
    updated_project_ids: list[str] = field(default_factory=list)
    failed_project_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_project_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            'company_id': self.company_id,
            'used_fallback': self.used_fallback,
            'prompt_run_id': self.prompt_run_id,
            'updated_project_ids': self.updated_project_ids,
            'failed_project_ids': self.failed_project_ids,
            'errors': self.errors,
            'success': self.success,
        }


class MultiProjectDisambiguator:
    """
    Partitions cross-project content and fans out to the updater.

    Usage:
        disambiguator = MultiProjectDisambiguator(prompt_runner, repository, updater)
        result = await disambiguator.process(company_id, content, ai_config)
    """

    def __init__(
        self,
        prompt_runner: PromptRunner,
        repository: CommsRepository,
        updater: ProjectUpdater,
        project_limit: int | None = None,
    ):
        self.prompt_runner = prompt_runner
        self.repository = repository
        self.updater = updater
        self.project_limit = project_limit or config.MULTI_PROJECT_LIMIT

    async def process(
        self,
        company_id: str,
        content: str,
        ai_config: AIConfig,
    ) -> DisambiguationResult:
        """
        Args:
            company_id: Tenant whose open projects are candidates
            content: Formatted communication or batch transcript
            ai_config: Decision engine selection for this invocation

        Raises:
            DisambiguationError: No open projects to distribute content to
        """
        result = DisambiguationResult(company_id=company_id)
        with logging_context(company_id=company_id):
            projects = await self.repository.list_open_projects(company_id, self.project_limit)
            if not projects:
                raise DisambiguationError(
                    'No open projects for company',
                    {'company_id': company_id},
                )
            by_id = {p.id: p for p in projects}

            partitions = None
            try:
                run, output = await self.prompt_runner.run_text(
                    WorkflowPromptType.MULTI_PROJECT_ANALYSIS,
                    {
                        'projects_data': json.dumps([project_fingerprint(p) for p in projects]),
                        'communication_content': content,
                        'current_date': None,
                    },
                    ai_config,
                )
                result.prompt_run_id = run.id
                partitions = parse_disambiguation_response(output)
            except CommsOrchestratorError as e:
                logger.warning('disambiguator.analysis_failed', error=str(e))

            if partitions is not None:
                known = [p for p in partitions if p.project_id in by_id]
                dropped = len(partitions) - len(known)
                if dropped:
                    logger.warning('disambiguator.unknown_projects_ignored', count=dropped)
                logger.info('disambiguator.partitioned', projects=len(known))
                targets = [(p.project_id, p.relevant_content) for p in known]
            else:
                logger.warning('disambiguator.fallback', projects=len(projects))
                result.used_fallback = True
                targets = [
                    (p.id, build_fallback_instruction(p, content)) for p in projects
                ]

            for project_id, new_data in targets:
                try:
                    await self.updater.process(project_id, new_data, ai_config)
                except CommsOrchestratorError as e:
                    logger.error('disambiguator.project_failed', project_id=project_id, error=str(e))
                    result.failed_project_ids.append(project_id)
                    result.errors.append(f'{project_id}: {e.message}')
                else:
                    result.updated_project_ids.append(project_id)
        return result
