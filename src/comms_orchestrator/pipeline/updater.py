"""
Project summary and action updater.

Two sequential stages per project:
1. summary_update: fold the new communication data into the project summary
2. action_detection_execution: reload the project and let the decision engine
   propose actions through create_action_record tool calls

Stage 2 never runs when stage 1 fails; acting on a stale summary risks
duplicate or wrong actions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..actions.records import ActionRecordService
from ..errors import (
    ActionDetectionError,
    ActionValidationError,
    CommsOrchestratorError,
    NotFoundError,
    SummaryUpdateError,
)
from ..logging import PipelineTimer, get_logger, logging_context
from ..models.project import Project, ProjectTrack
from ..models.prompt_run import AIConfig, WorkflowPromptType
from ..prompts.action_detection import CREATE_ACTION_RECORD, build_action_tool
from ..repository import CommsRepository
from .prompt_runner import PromptRunner

logger = get_logger(__name__)


@dataclass
class ReminderContext:
    """Extra context when action detection runs from the reminder sweep."""

    next_check_date: datetime | None = None
    days_since_last_check: int | None = None


@dataclass
class UpdateResult:
    """Result of running the updater for one project."""

    project_id: str
    summary_updated: bool = False
    summary_prompt_run_id: str | None = None
    action_prompt_run_id: str | None = None
    action_ids: list[str] = field(default_factory=list)
    rejected_actions: list[dict[str, Any]] = field(default_factory=list)
    stage_timings: dict[str, float] = field(default_factory=dict)
    processing_time_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'project_id': self.project_id,
            'summary_updated': self.summary_updated,
            'summary_prompt_run_id': self.summary_prompt_run_id,
            'action_prompt_run_id': self.action_prompt_run_id,
            'action_ids': self.action_ids,
            'rejected_actions': self.rejected_actions,
            'stage_timings': self.stage_timings,
            'processing_time_ms': self.processing_time_ms,
        }


def _track_fields(track: ProjectTrack | None) -> dict[str, Any]:
    if track is None:
        return {'track_name': '', 'track_roles': '', 'track_base_prompt': ''}
    return {
        'track_name': track.name,
        'track_roles': track.roles,
        'track_base_prompt': track.track_base_prompt or '',
    }


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class ProjectUpdater:
    """
    Runs the summary and action stages for a project.

    Usage:
        updater = ProjectUpdater(prompt_runner, repository, action_service)
        result = await updater.process(project_id, new_data, ai_config)
    """

    def __init__(
        self,
        prompt_runner: PromptRunner,
        repository: CommsRepository,
        action_service: ActionRecordService,
    ):
        self.prompt_runner = prompt_runner
        self.repository = repository
        self.action_service = action_service

    async def _load(self, project_id: str) -> Project:
        project = await self.repository.get_project(project_id)
        if project is None:
            raise NotFoundError(f'Project not found: {project_id}', {'project_id': project_id})
        return project

    async def _load_track(self, project: Project) -> ProjectTrack | None:
        if not project.track_id:
            return None
        return await self.repository.get_track(project.track_id)

    async def process(
        self,
        project_id: str,
        new_data: str,
        ai_config: AIConfig,
    ) -> UpdateResult:
        """
        Update the project summary, then detect actions.

        Args:
            project_id: Project to update
            new_data: Formatted communication or batch transcript
            ai_config: Decision engine selection for this invocation

        Returns:
            UpdateResult with prompt run ids and created action ids

        Raises:
            NotFoundError: Project does not exist
            SummaryUpdateError: Stage 1 failed; stage 2 was not attempted
            ActionDetectionError: Stage 2 failed after the summary was saved
        """
        timer = PipelineTimer()
        result = UpdateResult(project_id=project_id)

        with logging_context(project_id=project_id):
            project = await self._load(project_id)
            track = await self._load_track(project)
            logger.info('updater.started', ai_model=ai_config.model)

            with timer.stage('summary_update'):
                context = {
                    'summary': project.summary or '',
                    **_track_fields(track),
                    'current_date': _today(),
                    'new_data': new_data,
                }
                try:
                    run, output = await self.prompt_runner.run_text(
                        WorkflowPromptType.SUMMARY_UPDATE,
                        context,
                        ai_config,
                        project_id=project_id,
                    )
                except CommsOrchestratorError as e:
                    raise SummaryUpdateError(
                        f'Summary update failed: {e.message}',
                        {'project_id': project_id},
                    ) from e
                result.summary_prompt_run_id = run.id

                summary = output.strip()
                if not summary:
                    raise SummaryUpdateError(
                        'Summary update returned no text',
                        {'project_id': project_id, 'prompt_run_id': run.id},
                    )
                await self.repository.update_project_summary(project_id, summary)
                result.summary_updated = True

            with timer.stage('action_detection'):
                refreshed = await self._load(project_id)
                await self.detect_actions(refreshed, track, new_data, ai_config, result)

            summary_timing = timer.summary()
            result.stage_timings = summary_timing['stages']
            result.processing_time_ms = int(summary_timing['total_ms'])
            logger.info(
                'updater.complete',
                actions_created=len(result.action_ids),
                actions_rejected=len(result.rejected_actions),
                processing_time_ms=result.processing_time_ms,
            )
        return result

    async def detect_actions(
        self,
        project: Project,
        track: ProjectTrack | None,
        new_data: str,
        ai_config: AIConfig,
        result: UpdateResult | None = None,
        reminder: ReminderContext | None = None,
    ) -> UpdateResult:
        """
        Run stage 2 and turn create_action_record calls into action records.

        Invalid tool calls are recorded on the result and do not fail the stage.
        """
        result = result or UpdateResult(project_id=project.id)
        if track is None:
            track = await self._load_track(project)

        context: dict[str, Any] = {
            'summary': project.summary or '',
            **_track_fields(track),
            'current_date': _today(),
            'next_step': project.next_step or '',
            'new_data': new_data,
            'is_reminder_check': reminder is not None,
            'property_address': project.address or '',
            'milestone_instructions': track.milestone_instructions() if track else '',
        }
        if reminder is not None:
            context['next_check_date'] = (
                reminder.next_check_date.isoformat() if reminder.next_check_date else ''
            )
            context['days_since_last_check'] = reminder.days_since_last_check

        try:
            run, completion = await self.prompt_runner.run_with_tools(
                WorkflowPromptType.ACTION_DETECTION_EXECUTION,
                context,
                [build_action_tool()],
                ai_config,
                project_id=project.id,
            )
        except CommsOrchestratorError as e:
            raise ActionDetectionError(
                f'Action detection failed: {e.message}',
                {'project_id': project.id},
            ) from e
        result.action_prompt_run_id = run.id

        for call in completion.tool_calls:
            if call.name != CREATE_ACTION_RECORD:
                logger.warning('updater.unknown_tool_call', tool=call.name)
                continue
            try:
                record = await self.action_service.create(
                    call.arguments,
                    project_id=project.id,
                    prompt_run_id=run.id,
                )
            except ActionValidationError as e:
                logger.warning(
                    'updater.action_rejected',
                    error=e.message,
                    field_errors=e.field_errors,
                )
                result.rejected_actions.append(
                    {'arguments': call.arguments, 'error': e.message, 'field_errors': e.field_errors}
                )
                continue
            result.action_ids.append(record.id)

        return result
