"""
Debounce batching for SMS traffic.

Messages for one project arriving within the debounce window share a single
in_progress BatchStatus. An external sweep claims due batches with a
compare-and-set (in_progress -> processing), joins the members into one
transcript and runs the updater once per batch.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ..config import config
from ..errors import BatchError, CommsOrchestratorError, PartialSuccessResult
from ..logging import get_logger, logging_context
from ..models.batch import BatchState, BatchStatus
from ..models.communication import Communication
from ..models.prompt_run import AIConfig
from ..repository import CommsRepository
from .formatter import format_batch_transcript
from .prompt_runner import PromptRunner
from .updater import ProjectUpdater

logger = get_logger(__name__)

ATTACH_ATTEMPTS = 3


class BatchScheduler:
    """
    Attaches communications to batches and sweeps due batches.

    Usage:
        scheduler = BatchScheduler(repository, updater, prompt_runner)
        batch = await scheduler.enqueue(communication)
        result = await scheduler.sweep()
    """

    def __init__(
        self,
        repository: CommsRepository,
        updater: ProjectUpdater,
        prompt_runner: PromptRunner,
        debounce_seconds: int | None = None,
        max_size: int | None = None,
    ):
        self.repository = repository
        self.updater = updater
        self.prompt_runner = prompt_runner
        self.debounce = timedelta(
            seconds=config.BATCH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.max_size = max_size or config.BATCH_MAX_SIZE

    async def enqueue(
        self,
        communication: Communication,
        now: datetime | None = None,
    ) -> BatchStatus | None:
        """
        Attach a communication to its project's open batch, opening one if needed.

        The attach only lands while the batch is still in_progress. A sweep
        that claims the batch in between sends us round again to find or open
        the next one.

        Returns:
            The batch the communication joined, or None when the open batch
            is full (or keeps being claimed) and the caller should process
            the communication directly
        """
        if not communication.project_id:
            raise BatchError('Communication has no project_id', {'communication_id': communication.id})
        now = now or datetime.now(timezone.utc)
        log = logger.bind(communication_id=communication.id, project_id=communication.project_id)

        for attempt in range(ATTACH_ATTEMPTS):
            batch = await self.repository.get_open_batch(communication.project_id)
            if batch is not None:
                members = await self.repository.count_batch_communications(batch.id)
                if members >= self.max_size:
                    log.info('batch.full', batch_id=batch.id, members=members)
                    return None
            else:
                batch = await self.repository.create_batch(
                    communication.project_id,
                    now + self.debounce,
                )
                if batch is None:
                    log.info('batch.open_lost', attempt=attempt)
                    continue
                log.info(
                    'batch.opened',
                    batch_id=batch.id,
                    scheduled_processing_time=batch.scheduled_processing_time.isoformat(),
                )

            if await self.repository.attach_to_batch(communication.id, batch.id):
                communication.batch_id = batch.id
                log.info('batch.attached', batch_id=batch.id)
                return batch
            log.info('batch.attach_lost', batch_id=batch.id, attempt=attempt)

        log.warning('batch.attach_gave_up', attempts=ATTACH_ATTEMPTS)
        return None

    async def sweep(
        self,
        now: datetime | None = None,
        ai_config: AIConfig | None = None,
    ) -> PartialSuccessResult:
        """
        Process every due batch this sweep manages to claim.

        Batches claimed by a concurrent sweep are reported as skipped. A batch
        whose update fails is marked error; its members stay attached by
        batch_id for recovery.
        """
        now = now or datetime.now(timezone.utc)
        result = PartialSuccessResult()

        due = await self.repository.list_due_batches(now)
        logger.info('batch.sweep_started', due=len(due))
        if not due:
            return result

        ai_config = ai_config or await self.prompt_runner.resolve_ai_config()
        for batch in due:
            await self._process_batch(batch, ai_config, result)

        logger.info(
            'batch.sweep_complete',
            succeeded=result.success_count,
            failed=result.failure_count,
            skipped=len(result.skipped),
        )
        return result

    async def _process_batch(
        self,
        batch: BatchStatus,
        ai_config: AIConfig,
        result: PartialSuccessResult,
    ) -> None:
        with logging_context(project_id=batch.project_id):
            if not await self.repository.claim_batch(batch.id):
                logger.info('batch.claim_lost', batch_id=batch.id)
                result.add_skipped(batch.id)
                return
            logger.info('batch.claimed', batch_id=batch.id)

            try:
                members = await self.repository.list_batch_communications(batch.id)
                if not members:
                    logger.warning('batch.empty', batch_id=batch.id)
                    await self.repository.finish_batch(batch.id, BatchState.COMPLETED)
                    result.add_success(batch.id, {'members': 0})
                    return

                transcript = format_batch_transcript(members)
                update = await self.updater.process(batch.project_id, transcript, ai_config)
            except CommsOrchestratorError as e:
                logger.error('batch.failed', batch_id=batch.id, error=str(e))
                await self.repository.finish_batch(batch.id, BatchState.ERROR, e.message)
                result.add_failure(e, batch.id)
                return
            except Exception as e:
                # a claimed batch must never be left in processing
                logger.exception('batch.crashed', batch_id=batch.id)
                error = BatchError(
                    f'Unexpected error: {type(e).__name__}: {e}',
                    {'batch_id': batch.id},
                )
                await self.repository.finish_batch(batch.id, BatchState.ERROR, error.message)
                result.add_failure(error, batch.id)
                return

            await self.repository.finish_batch(batch.id, BatchState.COMPLETED)
            logger.info('batch.completed', batch_id=batch.id, members=len(members))
            result.add_success(
                batch.id,
                {'members': len(members), 'action_ids': update.action_ids},
            )
