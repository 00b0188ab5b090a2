"""
Tests for SMS debounce batching and the batch sweep.

Tests cover:
- Messages inside one debounce window share a batch and one update
- Concurrent sweeps process a due batch exactly once
- Messages arriving after a claim open a fresh batch
- Update failures mark the batch error and keep members attached
- Full batches hand the message back for immediate processing
- A batch claimed between lookup and attach never swallows the message
- Unexpected failures still end the batch in error
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import PROJECT_ID, make_sms, tool_reply

from comms_orchestrator.errors import BatchError
from comms_orchestrator.models.batch import BatchState
from comms_orchestrator.pipeline.batcher import BatchScheduler

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler(repository, updater, prompt_runner) -> BatchScheduler:
    return BatchScheduler(repository, updater, prompt_runner, debounce_seconds=60, max_size=5)


async def _enqueue(repository, scheduler, content, at):
    communication = repository.add_communication(make_sms(content, timestamp=at))
    return communication, await scheduler.enqueue(communication, now=at)


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_first_message_opens_batch(self, repository, scheduler, project):
        communication, batch = await _enqueue(repository, scheduler, 'Hi', T0)

        assert batch.project_id == PROJECT_ID
        assert batch.batch_status == BatchState.IN_PROGRESS
        assert batch.scheduled_processing_time == T0 + timedelta(seconds=60)
        assert communication.batch_id == batch.id
        assert repository.communications[communication.id].batch_id == batch.id

    @pytest.mark.asyncio
    async def test_messages_in_window_share_batch(self, repository, scheduler, project):
        _, first = await _enqueue(repository, scheduler, 'Hi', T0)
        _, second = await _enqueue(repository, scheduler, 'Still there?', T0 + timedelta(seconds=10))

        assert first.id == second.id
        assert len(repository.batches) == 1

    @pytest.mark.asyncio
    async def test_full_batch_returns_none(self, repository, updater, prompt_runner, project):
        scheduler = BatchScheduler(repository, updater, prompt_runner, debounce_seconds=60, max_size=2)
        await _enqueue(repository, scheduler, 'one', T0)
        await _enqueue(repository, scheduler, 'two', T0)

        communication, batch = await _enqueue(repository, scheduler, 'three', T0)

        assert batch is None
        assert repository.communications[communication.id].batch_id is None

    @pytest.mark.asyncio
    async def test_requires_project(self, scheduler):
        with pytest.raises(BatchError):
            await scheduler.enqueue(make_sms('orphan', project_id=None))


class TestSweep:
    @pytest.mark.asyncio
    async def test_two_messages_one_update(self, repository, scheduler, project, fake_openai):
        await _enqueue(repository, scheduler, 'The roof is leaking', T0)
        await _enqueue(repository, scheduler, 'Near the chimney', T0 + timedelta(seconds=10))

        result = await scheduler.sweep(now=T0 + timedelta(seconds=61))

        assert result.success_count == 1
        assert result.succeeded[0].data['members'] == 2
        assert repository.calls.count(f'summary:{PROJECT_ID}') == 1
        assert len(fake_openai.text_calls) == 1

        prompt = fake_openai.text_calls[0][0]['content']
        assert prompt.index('The roof is leaking') < prompt.index('Near the chimney')

        batch = next(iter(repository.batches.values()))
        assert batch.batch_status == BatchState.COMPLETED
        assert batch.processed_at is not None

    @pytest.mark.asyncio
    async def test_batch_not_due_is_left_alone(self, repository, scheduler, project, fake_openai):
        await _enqueue(repository, scheduler, 'Hi', T0)

        result = await scheduler.sweep(now=T0 + timedelta(seconds=30))

        assert result.total_count == 0
        assert fake_openai.text_calls == []
        assert next(iter(repository.batches.values())).batch_status == BatchState.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_claim_once(self, repository, scheduler, project):
        await _enqueue(repository, scheduler, 'Hi', T0)
        now = T0 + timedelta(seconds=61)

        first, second = await asyncio.gather(scheduler.sweep(now=now), scheduler.sweep(now=now))

        assert first.success_count + second.success_count == 1
        assert len(first.skipped) + len(second.skipped) == 1
        assert len([c for c in repository.calls if c.startswith('claim:')]) == 1
        assert repository.calls.count(f'summary:{PROJECT_ID}') == 1

    @pytest.mark.asyncio
    async def test_message_after_claim_opens_new_batch(self, repository, prompt_runner, project):
        updater = MagicMock()
        scheduler = BatchScheduler(repository, updater, prompt_runner, debounce_seconds=60, max_size=5)
        _, original = await _enqueue(repository, scheduler, 'first', T0)
        late = {}

        async def _process(project_id, new_data, ai_config):
            late['communication'], late['batch'] = await _enqueue(
                repository, scheduler, 'late arrival', T0 + timedelta(seconds=62)
            )
            return MagicMock(action_ids=[])

        updater.process = AsyncMock(side_effect=_process)

        await scheduler.sweep(now=T0 + timedelta(seconds=61))

        assert late['batch'].id != original.id
        assert late['batch'].batch_status == BatchState.IN_PROGRESS
        assert repository.batches[original.id].batch_status == BatchState.COMPLETED
        transcript = updater.process.await_args.args[1]
        assert 'late arrival' not in transcript

    @pytest.mark.asyncio
    async def test_update_failure_marks_batch_error(self, repository, scheduler, project, fake_openai):
        fake_openai.text_replies.append(Exception('upstream timeout'))
        communication, batch = await _enqueue(repository, scheduler, 'Hi', T0)

        result = await scheduler.sweep(now=T0 + timedelta(seconds=61))

        assert result.failure_count == 1
        stored = repository.batches[batch.id]
        assert stored.batch_status == BatchState.ERROR
        assert 'Summary update failed' in stored.error_message
        assert repository.communications[communication.id].batch_id == batch.id

    @pytest.mark.asyncio
    async def test_empty_batch_completes(self, repository, scheduler, project, fake_openai):
        batch = await repository.create_batch(PROJECT_ID, T0)

        result = await scheduler.sweep(now=T0 + timedelta(seconds=1))

        assert result.succeeded[0].data == {'members': 0}
        assert repository.batches[batch.id].batch_status == BatchState.COMPLETED
        assert fake_openai.text_calls == []

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_batch_error(self, repository, prompt_runner, project):
        updater = MagicMock()
        updater.process = AsyncMock(side_effect=OverflowError('date value out of range'))
        scheduler = BatchScheduler(repository, updater, prompt_runner, debounce_seconds=60, max_size=5)
        _, batch = await _enqueue(repository, scheduler, 'Hi', T0)

        result = await scheduler.sweep(now=T0 + timedelta(seconds=61))

        assert result.failure_count == 1
        stored = repository.batches[batch.id]
        assert stored.batch_status == BatchState.ERROR
        assert 'OverflowError' in stored.error_message

    @pytest.mark.asyncio
    async def test_out_of_range_reminder_is_rejected_not_fatal(self, repository, scheduler, project, fake_openai):
        fake_openai.tool_replies.append(
            tool_reply({'action_type': 'set_future_reminder', 'days_until_check': 10**7, 'check_reason': 'x'})
        )
        _, batch = await _enqueue(repository, scheduler, 'Check back much later', T0)

        result = await scheduler.sweep(now=T0 + timedelta(seconds=61))

        assert result.success_count == 1
        assert repository.batches[batch.id].batch_status == BatchState.COMPLETED
        assert repository.actions == {}
        assert repository.projects[PROJECT_ID].next_check_date is None


class TestAttachRaces:
    @pytest.mark.asyncio
    async def test_sweep_between_lookup_and_attach(self, repository, scheduler, project, fake_openai, monkeypatch):
        _, original = await _enqueue(repository, scheduler, 'first', T0)
        lookup = repository.get_open_batch
        swept = []

        async def _lookup_then_sweep(project_id):
            batch = await lookup(project_id)
            if not swept:
                swept.append(await scheduler.sweep(now=T0 + timedelta(seconds=61)))
            return batch

        monkeypatch.setattr(repository, 'get_open_batch', _lookup_then_sweep)

        late, batch = await _enqueue(repository, scheduler, 'late arrival', T0 + timedelta(seconds=62))

        assert swept[0].success_count == 1
        assert repository.batches[original.id].batch_status == BatchState.COMPLETED
        assert batch.id != original.id
        assert batch.batch_status == BatchState.IN_PROGRESS
        assert repository.communications[late.id].batch_id == batch.id

        result = await scheduler.sweep(now=T0 + timedelta(seconds=200))

        assert result.success_count == 1
        assert 'late arrival' in fake_openai.text_calls[-1][0]['content']

    @pytest.mark.asyncio
    async def test_open_batch_lost_then_retried(self, repository, scheduler, project, monkeypatch):
        create = repository.create_batch
        attempts = []

        async def _create(project_id, scheduled_processing_time):
            attempts.append(scheduled_processing_time)
            if len(attempts) == 1:
                return None
            return await create(project_id, scheduled_processing_time)

        monkeypatch.setattr(repository, 'create_batch', _create)

        communication, batch = await _enqueue(repository, scheduler, 'Hi', T0)

        assert len(attempts) == 2
        assert repository.communications[communication.id].batch_id == batch.id

    @pytest.mark.asyncio
    async def test_gives_up_for_immediate_processing(self, repository, scheduler, project, monkeypatch):
        monkeypatch.setattr(repository, 'attach_to_batch', AsyncMock(return_value=False))

        communication, batch = await _enqueue(repository, scheduler, 'Hi', T0)

        assert batch is None
        assert communication.batch_id is None
        assert repository.attach_to_batch.await_count == 3
