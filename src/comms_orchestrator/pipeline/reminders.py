"""
Reminder sweep.

Projects whose next_check_date falls before tomorrow are re-examined by the
action-detection stage with reminder context. A successful check stamps
last_action_check and clears next_check_date, unless the check itself set a
new reminder, in which case the new date stands.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Callable

from ..errors import CommsOrchestratorError, PartialSuccessResult
from ..logging import get_logger, logging_context
from ..models.project import Project
from ..models.prompt_run import AIConfig
from ..repository import CommsRepository
from .prompt_runner import PromptRunner
from .updater import ProjectUpdater, ReminderContext

logger = get_logger(__name__)

INACTIVE_STATUSES = frozenset({'archived', 'void', 'cancelled', 'canceled'})

ProjectPredicate = Callable[[Project], bool]


def activation_criteria(project: Project) -> bool:
    """Contract signed, install not finalised, not a test record, not closed."""
    if project.is_test_record:
        return False
    if project.contract_signed is None or project.install_finalized is not None:
        return False
    return (project.status or '').strip().lower() not in INACTIVE_STATUSES


def _start_of_tomorrow(now: datetime) -> datetime:
    tomorrow = (now + timedelta(days=1)).date()
    return datetime.combine(tomorrow, time.min, tzinfo=now.tzinfo or timezone.utc)


def _days_since(then: datetime | None, now: datetime) -> int | None:
    if then is None:
        return None
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    return max((now - then).days, 0)


def reminder_note(project: Project, now: datetime) -> str:
    """new_data text for a scheduled check."""
    lines = [f'Scheduled reminder check on {now.date().isoformat()}.']
    if project.next_check_date:
        lines.append(f'Check was due {project.next_check_date.date().isoformat()}.')
    if project.next_step:
        lines.append(f'Recorded next step: {project.next_step}')
    return '\n'.join(lines)


class ReminderSweep:
    """
    Runs action detection for projects due a reminder check.

    Usage:
        sweep = ReminderSweep(repository, updater, prompt_runner, criteria=activation_criteria)
        result = await sweep.run()
    """

    def __init__(
        self,
        repository: CommsRepository,
        updater: ProjectUpdater,
        prompt_runner: PromptRunner,
        criteria: ProjectPredicate | None = None,
    ):
        self.repository = repository
        self.updater = updater
        self.prompt_runner = prompt_runner
        self.criteria = criteria

    async def run(
        self,
        now: datetime | None = None,
        ai_config: AIConfig | None = None,
    ) -> PartialSuccessResult:
        now = now or datetime.now(timezone.utc)
        result = PartialSuccessResult()

        projects = await self.repository.list_projects_due_for_check(_start_of_tomorrow(now))
        if self.criteria is not None:
            eligible = [p for p in projects if self.criteria(p)]
            for p in projects:
                if p not in eligible:
                    result.add_skipped(p.id)
            projects = eligible
        logger.info('reminders.sweep_started', due=len(projects), skipped=len(result.skipped))
        if not projects:
            return result

        ai_config = ai_config or await self.prompt_runner.resolve_ai_config()
        for project in projects:
            with logging_context(company_id=project.company_id, project_id=project.id):
                reminder = ReminderContext(
                    next_check_date=project.next_check_date,
                    days_since_last_check=_days_since(project.last_action_check, now),
                )
                try:
                    update = await self.updater.detect_actions(
                        project,
                        None,
                        reminder_note(project, now),
                        ai_config,
                        reminder=reminder,
                    )
                    await self.repository.mark_reminder_checked(
                        project.id, now, project.next_check_date
                    )
                except CommsOrchestratorError as e:
                    logger.error('reminders.project_failed', error=str(e))
                    result.add_failure(e, project.id)
                    continue
                except Exception as e:
                    logger.exception('reminders.project_crashed')
                    result.add_failure(
                        CommsOrchestratorError(
                            f'Unexpected error: {type(e).__name__}: {e}',
                            {'project_id': project.id},
                        ),
                        project.id,
                    )
                    continue
                logger.info('reminders.project_checked', actions_created=len(update.action_ids))
                result.add_success(project.id, {'action_ids': update.action_ids})

        logger.info(
            'reminders.sweep_complete',
            succeeded=result.success_count,
            failed=result.failure_count,
        )
        return result
