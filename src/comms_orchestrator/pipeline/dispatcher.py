"""
Communication dispatcher.

Routes a freshly normalized Communication to exactly one downstream path:

- disambiguate: multi-project conversations go to the disambiguator
- batch: SMS joins its project's debounce batch
- immediate: calls (and SMS overflowing a full batch) run the updater now
- unmatched: no project could be found; nothing further happens

Failures are captured on the DispatcherResult; the Communication itself is
already durable by the time the dispatcher runs.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import CommsOrchestratorError, NotFoundError
from ..logging import get_logger, logging_context
from ..models.communication import Communication
from ..repository import CommsRepository
from .batcher import BatchScheduler
from .disambiguator import DisambiguationResult, MultiProjectDisambiguator
from .formatter import format_communication
from .project_finder import MultiProjectClassifier, ProjectFinder
from .prompt_runner import PromptRunner
from .updater import ProjectUpdater, UpdateResult

logger = get_logger(__name__)

ROUTE_DISAMBIGUATE = 'disambiguate'
ROUTE_BATCH = 'batch'
ROUTE_IMMEDIATE = 'immediate'
ROUTE_UNMATCHED = 'unmatched'


# =============================================================================
# Result Model
# =============================================================================


@dataclass
class DispatcherResult:
    """Outcome of routing one communication."""

    communication_id: str
    project_id: str | None = None
    route: str | None = None
    multi_project_potential: bool = False

    batch_id: str | None = None
    update_result: UpdateResult | None = None
    disambiguation_result: DisambiguationResult | None = None

    started_at: datetime | None = None
    dispatch_time_ms: int | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        if self.errors:
            return False
        if self.disambiguation_result is not None:
            return self.disambiguation_result.success
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            'communication_id': self.communication_id,
            'project_id': self.project_id,
            'route': self.route,
            'multi_project_potential': self.multi_project_potential,
            'batch_id': self.batch_id,
            'update': self.update_result.to_dict() if self.update_result else None,
            'disambiguation': (
                self.disambiguation_result.to_dict() if self.disambiguation_result else None
            ),
            'success': self.success,
            'dispatch_time_ms': self.dispatch_time_ms,
            'errors': self.errors,
        }


# =============================================================================
# CommunicationDispatcher
# =============================================================================


class CommunicationDispatcher:
    """
    Chooses and runs the downstream path for a communication.

    Usage:
        dispatcher = CommunicationDispatcher(
            repository, prompt_runner, updater, disambiguator, scheduler, classifier
        )
        result = await dispatcher.dispatch(communication_id)
    """

    def __init__(
        self,
        repository: CommsRepository,
        prompt_runner: PromptRunner,
        updater: ProjectUpdater,
        disambiguator: MultiProjectDisambiguator,
        scheduler: BatchScheduler,
        classifier: MultiProjectClassifier,
        finder: ProjectFinder | None = None,
    ):
        self.repository = repository
        self.prompt_runner = prompt_runner
        self.updater = updater
        self.disambiguator = disambiguator
        self.scheduler = scheduler
        self.classifier = classifier
        self.finder = finder or ProjectFinder(repository)

    async def dispatch(self, communication_id: str) -> DispatcherResult:
        """
        Route a stored communication.

        Raises:
            NotFoundError: The communication does not exist
        """
        t0 = time.monotonic()
        result = DispatcherResult(communication_id=communication_id, started_at=datetime.now())
        log = logger.bind(communication_id=communication_id)

        communication = await self.repository.get_communication(communication_id)
        if communication is None:
            raise NotFoundError(
                f'Communication not found: {communication_id}',
                {'communication_id': communication_id},
            )

        with logging_context(trace_id=communication_id):
            log.info('dispatcher.started', type=communication.type.value)
            try:
                await self._route(communication, result)
            except CommsOrchestratorError as e:
                log.error(
                    'dispatcher.failed',
                    route=result.route,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors.append(f'{type(e).__name__}: {e.message}')

            result.dispatch_time_ms = int((time.monotonic() - t0) * 1000)
            log.info(
                'dispatcher.complete',
                route=result.route,
                project_id=result.project_id,
                success=result.success,
                dispatch_time_ms=result.dispatch_time_ms,
            )
        return result

    async def _route(self, communication: Communication, result: DispatcherResult) -> None:
        project_id = await self.finder.find_project_id(communication)
        multi = communication.multi_project_potential or await self.classifier.is_multi_project(
            communication
        )
        communication.project_id = project_id
        communication.multi_project_potential = multi
        await self.repository.update_communication_routing(communication.id, project_id, multi)

        result.project_id = project_id
        result.multi_project_potential = multi

        if not project_id:
            result.route = ROUTE_UNMATCHED
            return

        if multi:
            result.route = ROUTE_DISAMBIGUATE
            project = await self.repository.get_project(project_id)
            if project is None:
                raise NotFoundError(f'Project not found: {project_id}', {'project_id': project_id})
            ai_config = await self.prompt_runner.resolve_ai_config()
            result.disambiguation_result = await self.disambiguator.process(
                project.company_id,
                format_communication(communication),
                ai_config,
            )
            return

        if communication.is_sms:
            batch = await self.scheduler.enqueue(communication)
            if batch is not None:
                result.route = ROUTE_BATCH
                result.batch_id = batch.id
                return

        result.route = ROUTE_IMMEDIATE
        ai_config = await self.prompt_runner.resolve_ai_config()
        result.update_result = await self.updater.process(
            project_id,
            format_communication(communication),
            ai_config,
        )
