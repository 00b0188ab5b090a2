"""
Relational repository for the communications orchestrator.

Provides raw parameterised SQL over the durable store:
- raw_comms_webhooks, communications (ingestion)
- comms_batch_status (debounce batches; compare-and-set claim)
- projects, project_tracks, project_track_milestones, contacts,
  project_contacts (project context)
- workflow_prompts, prompt_runs, ai_config (decision engine audit trail)
- action_records (action state machine)

comms_batch_status is expected to carry a partial unique index on
project_id WHERE batch_status = 'in_progress': one open batch per project.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .clients.postgres_client import PostgresClient
from .errors import wrap_database_error
from .logging import get_logger
from .models.action_record import ActionRecord, ActionStatus
from .models.batch import BatchState, BatchStatus
from .models.communication import Communication, Participant
from .models.project import Contact, Project, ProjectTrack, TrackMilestone
from .models.prompt_run import AIConfig, PromptRun, WorkflowPrompt, WorkflowPromptType
from .models.webhook import RawWebhook

logger = get_logger(__name__)


def _json_in(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str)


def _json_out(value: Any) -> Any:
    """asyncpg returns json/jsonb as text unless a codec is registered."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _id(value: Any) -> str | None:
    return str(value) if value is not None else None


def _row_to_communication(row: Any) -> Communication:
    extra = _json_out(row.get('normalized_data')) or {}
    return Communication(
        id=_id(row['id']),
        type=row['type'],
        subtype=row['subtype'],
        direction=row['direction'],
        participants=[Participant(**p) for p in (_json_out(row['participants']) or [])]
        or [Participant.placeholder()],
        timestamp=row['timestamp'],
        duration=row.get('duration'),
        content=row.get('content'),
        recording_url=row.get('recording_url'),
        project_id=_id(row.get('project_id')),
        batch_id=_id(row.get('batch_id')),
        multi_project_potential=bool(row.get('multi_project_potential')),
        raw_webhook_id=_id(row.get('raw_webhook_id')),
        parse_error=extra.get('parse_error') if isinstance(extra, dict) else None,
    )


def _row_to_batch(row: Any) -> BatchStatus:
    return BatchStatus(
        id=_id(row['id']),
        project_id=_id(row['project_id']),
        batch_status=row['batch_status'],
        scheduled_processing_time=row['scheduled_processing_time'],
        processed_at=row.get('processed_at'),
        error_message=row.get('error_message'),
    )


def _row_to_project(row: Any) -> Project:
    return Project(
        id=_id(row['id']),
        company_id=_id(row['company_id']),
        summary=row.get('summary'),
        next_step=row.get('next_step'),
        track_id=_id(row.get('project_track')),
        next_check_date=row.get('next_check_date'),
        last_action_check=row.get('last_action_check'),
        address=row.get('address'),
        crm_id=_id(row.get('crm_id')),
        status=row.get('status'),
        contract_signed=row.get('contract_signed'),
        install_finalized=row.get('install_finalized'),
        is_test_record=bool(row.get('is_test_record')),
    )


def _row_to_action(row: Any) -> ActionRecord:
    return ActionRecord(
        id=_id(row['id']),
        prompt_run_id=_id(row['prompt_run_id']),
        project_id=_id(row['project_id']),
        action_type=row['action_type'],
        action_payload=_json_out(row.get('action_payload')) or {},
        requires_approval=bool(row['requires_approval']),
        status=row['status'],
        recipient_id=_id(row.get('recipient_id')),
        sender_id=_id(row.get('sender_ID')),
        message=row.get('message'),
        approved_at=row.get('approved_at'),
        approved_by=row.get('approved_by'),
        executed_at=row.get('executed_at'),
        execution_claimed_at=row.get('execution_claimed_at'),
        execution_result=_json_out(row.get('execution_result')),
    )


INSERT_ACTION_SQL = """
    INSERT INTO action_records (
        id, prompt_run_id, project_id, action_type, action_payload,
        requires_approval, status, recipient_id, "sender_ID", message,
        executed_at, execution_result, created_at
    ) VALUES (
        :id, :prompt_run_id, :project_id, :action_type,
        CAST(:action_payload AS jsonb), :requires_approval, :status,
        :recipient_id, :sender_id, :message, :executed_at,
        CAST(:execution_result AS jsonb), :created_at
    )
"""


def _action_params(record: ActionRecord) -> dict[str, Any]:
    return {
        'id': record.id,
        'prompt_run_id': record.prompt_run_id,
        'project_id': record.project_id,
        'action_type': record.action_type.value,
        'action_payload': _json_in(record.action_payload),
        'requires_approval': record.requires_approval,
        'status': record.status.value,
        'recipient_id': record.recipient_id,
        'sender_id': record.sender_id,
        'message': record.message,
        'executed_at': record.executed_at,
        'execution_result': _json_in(record.execution_result),
        'created_at': record.created_at,
    }


class CommsRepository:
    """
    SQL operations backing every pipeline stage.

    Handles:
    - Exactly-once processed flag on raw webhooks
    - Batch lifecycle with a conditional-UPDATE claim
    - Project context loading for prompts
    - PromptRun and ActionRecord persistence
    """

    def __init__(self, postgres_client: PostgresClient):
        """
        Initialize the repository.

        Args:
            postgres_client: Connected Postgres client
        """
        self.postgres = postgres_client

    # =========================================================================
    # Execution helpers
    # =========================================================================

    async def _fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            async with self.postgres.engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise wrap_database_error(e, {'statement': ' '.join(sql.split())[:120]})

    async def _fetch_one(self, sql: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        rows = await self._fetch_all(sql, params)
        return rows[0] if rows else None

    async def _execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        try:
            async with self.postgres.engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                return result.rowcount
        except SQLAlchemyError as e:
            raise wrap_database_error(e, {'statement': ' '.join(sql.split())[:120]})

    async def _execute_all(self, statements: list[tuple[str, dict[str, Any]]]) -> None:
        """Run the statements in one transaction; any failure rolls back all of them."""
        try:
            async with self.postgres.engine.begin() as conn:
                for sql, params in statements:
                    await conn.execute(text(sql), params)
        except SQLAlchemyError as e:
            raise wrap_database_error(e, {'statements': len(statements)})

    # =========================================================================
    # Raw webhooks
    # =========================================================================

    async def insert_raw_webhook(self, webhook: RawWebhook) -> RawWebhook:
        await self._execute(
            """
            INSERT INTO raw_comms_webhooks (id, service, raw_payload, processed, signature, created_at)
            VALUES (:id, :service, CAST(:raw_payload AS jsonb), false, :signature, :created_at)
            """,
            {
                'id': webhook.id,
                'service': webhook.service,
                'raw_payload': _json_in(webhook.raw_payload),
                'signature': webhook.signature,
                'created_at': webhook.created_at,
            },
        )
        logger.debug('repository.raw_webhook_inserted', webhook_id=webhook.id)
        return webhook

    async def get_raw_webhook(self, webhook_id: str) -> RawWebhook | None:
        row = await self._fetch_one(
            """
            SELECT id, service, raw_payload, processed, processing_error, signature, created_at
            FROM raw_comms_webhooks WHERE id = :id
            """,
            {'id': webhook_id},
        )
        if row is None:
            return None
        return RawWebhook(
            id=_id(row['id']),
            service=row['service'],
            raw_payload=_json_out(row['raw_payload']) or {},
            processed=bool(row['processed']),
            processing_error=row.get('processing_error'),
            signature=row.get('signature'),
            created_at=row['created_at'],
        )

    async def mark_webhook_processed(self, webhook_id: str, error: str | None = None) -> bool:
        """
        Flip processed to true if it is still false.

        Returns:
            True when this call performed the transition
        """
        row = await self._fetch_one(
            """
            UPDATE raw_comms_webhooks
            SET processed = true, processing_error = :error
            WHERE id = :id AND processed = false
            RETURNING id
            """,
            {'id': webhook_id, 'error': error},
        )
        return row is not None

    # =========================================================================
    # Communications
    # =========================================================================

    async def insert_communication(self, communication: Communication) -> Communication:
        await self._execute(
            """
            INSERT INTO communications (
                id, raw_webhook_id, type, subtype, direction, participants,
                timestamp, duration, content, recording_url, project_id,
                batch_id, multi_project_potential, normalized_data
            ) VALUES (
                :id, :raw_webhook_id, :type, :subtype, :direction,
                CAST(:participants AS jsonb), :timestamp, :duration, :content,
                :recording_url, :project_id, :batch_id, :multi_project_potential,
                CAST(:normalized_data AS jsonb)
            )
            """,
            {
                'id': communication.id,
                'raw_webhook_id': communication.raw_webhook_id,
                'type': communication.type.value,
                'subtype': communication.subtype.value,
                'direction': communication.direction.value,
                'participants': _json_in(
                    [p.model_dump(mode='json') for p in communication.participants]
                ),
                'timestamp': communication.timestamp,
                'duration': communication.duration,
                'content': communication.content,
                'recording_url': communication.recording_url,
                'project_id': communication.project_id,
                'batch_id': communication.batch_id,
                'multi_project_potential': communication.multi_project_potential,
                'normalized_data': _json_in({'parse_error': communication.parse_error}),
            },
        )
        return communication

    async def get_communication(self, communication_id: str) -> Communication | None:
        row = await self._fetch_one(
            'SELECT * FROM communications WHERE id = :id',
            {'id': communication_id},
        )
        return _row_to_communication(row) if row else None

    async def update_communication_routing(
        self,
        communication_id: str,
        project_id: str | None = None,
        multi_project_potential: bool | None = None,
    ) -> None:
        """Assign project and multi-project flag after normalization."""
        await self._execute(
            """
            UPDATE communications
            SET project_id = COALESCE(:project_id, project_id),
                multi_project_potential = COALESCE(:multi, multi_project_potential)
            WHERE id = :id
            """,
            {'id': communication_id, 'project_id': project_id, 'multi': multi_project_potential},
        )

    async def attach_to_batch(self, communication_id: str, batch_id: str) -> bool:
        """Attach only while the batch is still in_progress. False once a sweep has claimed it."""
        row = await self._fetch_one(
            """
            UPDATE communications SET batch_id = :batch_id
            WHERE id = :id
              AND EXISTS (
                SELECT 1 FROM comms_batch_status
                WHERE id = :batch_id AND batch_status = 'in_progress'
              )
            RETURNING id
            """,
            {'id': communication_id, 'batch_id': batch_id},
        )
        return row is not None

    async def list_batch_communications(self, batch_id: str) -> list[Communication]:
        """Members of a batch ordered by timestamp (queryable for recovery)."""
        rows = await self._fetch_all(
            'SELECT * FROM communications WHERE batch_id = :batch_id ORDER BY timestamp ASC',
            {'batch_id': batch_id},
        )
        return [_row_to_communication(r) for r in rows]

    async def count_batch_communications(self, batch_id: str) -> int:
        row = await self._fetch_one(
            'SELECT COUNT(*) AS n FROM communications WHERE batch_id = :batch_id',
            {'batch_id': batch_id},
        )
        return int(row['n']) if row else 0

    # =========================================================================
    # Batches
    # =========================================================================

    async def get_open_batch(self, project_id: str) -> BatchStatus | None:
        row = await self._fetch_one(
            """
            SELECT * FROM comms_batch_status
            WHERE project_id = :project_id
              AND batch_status = 'in_progress'
            ORDER BY created_at DESC LIMIT 1
            """,
            {'project_id': project_id},
        )
        return _row_to_batch(row) if row else None

    async def create_batch(self, project_id: str, scheduled_processing_time: datetime) -> BatchStatus | None:
        """
        Open a batch for the project unless one is already open.

        Returns:
            The new batch, the open batch that won a concurrent insert, or
            None when that batch was claimed before it could be read back
        """
        batch = BatchStatus(project_id=project_id, scheduled_processing_time=scheduled_processing_time)
        row = await self._fetch_one(
            """
            INSERT INTO comms_batch_status (id, project_id, batch_status, scheduled_processing_time, created_at)
            SELECT :id, :project_id, 'in_progress', :scheduled, :created_at
            WHERE NOT EXISTS (
                SELECT 1 FROM comms_batch_status
                WHERE project_id = :project_id
                  AND batch_status = 'in_progress'
            )
            ON CONFLICT DO NOTHING
            RETURNING id
            """,
            {
                'id': batch.id,
                'project_id': project_id,
                'scheduled': scheduled_processing_time,
                'created_at': batch.created_at,
            },
        )
        if row is not None:
            return batch
        return await self.get_open_batch(project_id)

    async def list_due_batches(self, now: datetime) -> list[BatchStatus]:
        rows = await self._fetch_all(
            """
            SELECT * FROM comms_batch_status
            WHERE batch_status = 'in_progress' AND scheduled_processing_time <= :now
            ORDER BY scheduled_processing_time ASC
            """,
            {'now': now},
        )
        return [_row_to_batch(r) for r in rows]

    async def claim_batch(self, batch_id: str) -> bool:
        """Compare-and-set in_progress -> processing. True for exactly one caller."""
        row = await self._fetch_one(
            """
            UPDATE comms_batch_status SET batch_status = 'processing'
            WHERE id = :id AND batch_status = 'in_progress'
            RETURNING id
            """,
            {'id': batch_id},
        )
        return row is not None

    async def finish_batch(
        self,
        batch_id: str,
        state: BatchState,
        error_message: str | None = None,
    ) -> None:
        await self._execute(
            """
            UPDATE comms_batch_status
            SET batch_status = :state, processed_at = :processed_at, error_message = :error
            WHERE id = :id AND batch_status = 'processing'
            """,
            {
                'id': batch_id,
                'state': state.value,
                'processed_at': datetime.now(timezone.utc),
                'error': error_message,
            },
        )

    # =========================================================================
    # Projects and context
    # =========================================================================

    async def get_project(self, project_id: str) -> Project | None:
        row = await self._fetch_one('SELECT * FROM projects WHERE id = :id', {'id': project_id})
        return _row_to_project(row) if row else None

    async def list_open_projects(self, company_id: str, limit: int) -> list[Project]:
        rows = await self._fetch_all(
            """
            SELECT * FROM projects
            WHERE company_id = :company_id
              AND COALESCE(status, '') NOT IN ('Archived', 'VOID', 'Cancelled', 'Canceled')
            ORDER BY created_at DESC
            LIMIT :limit
            """,
            {'company_id': company_id, 'limit': limit},
        )
        return [_row_to_project(r) for r in rows]

    async def list_projects_due_for_check(self, before: datetime) -> list[Project]:
        rows = await self._fetch_all(
            """
            SELECT * FROM projects
            WHERE next_check_date IS NOT NULL AND next_check_date < :before
            ORDER BY next_check_date ASC
            """,
            {'before': before},
        )
        return [_row_to_project(r) for r in rows]

    async def find_project_ids_by_phone(self, phone_suffix: str) -> list[str]:
        """Projects linked to contacts whose phone ends with the given digits."""
        rows = await self._fetch_all(
            """
            SELECT DISTINCT pc.project_id
            FROM contacts c
            JOIN project_contacts pc ON pc.contact_id = c.id
            WHERE regexp_replace(COALESCE(c.phone_number, ''), '[^0-9]', '', 'g') LIKE :pattern
            """,
            {'pattern': f'%{phone_suffix}'},
        )
        return [_id(r['project_id']) for r in rows]

    async def find_contact_roles_by_phone(self, phone_suffix: str) -> list[str]:
        rows = await self._fetch_all(
            """
            SELECT role FROM contacts
            WHERE regexp_replace(COALESCE(phone_number, ''), '[^0-9]', '', 'g') LIKE :pattern
            """,
            {'pattern': f'%{phone_suffix}'},
        )
        return [r['role'] for r in rows if r.get('role')]

    async def update_project_summary(self, project_id: str, summary: str) -> None:
        await self._execute(
            'UPDATE projects SET summary = :summary, updated_at = now() WHERE id = :id',
            {'id': project_id, 'summary': summary},
        )

    async def mark_reminder_checked(
        self,
        project_id: str,
        checked_at: datetime,
        previous_check_date: datetime | None,
    ) -> None:
        """Stamp the check; clear next_check_date only if nothing rescheduled it meanwhile."""
        await self._execute(
            """
            UPDATE projects
            SET last_action_check = :checked_at,
                next_check_date = CASE
                    WHEN next_check_date IS NOT DISTINCT FROM :previous THEN NULL
                    ELSE next_check_date
                END
            WHERE id = :id
            """,
            {'id': project_id, 'checked_at': checked_at, 'previous': previous_check_date},
        )

    async def get_track(self, track_id: str) -> ProjectTrack | None:
        row = await self._fetch_one('SELECT * FROM project_tracks WHERE id = :id', {'id': track_id})
        if row is None:
            return None
        milestones = await self._fetch_all(
            """
            SELECT * FROM project_track_milestones
            WHERE track_id = :track_id ORDER BY step_order ASC
            """,
            {'track_id': track_id},
        )
        return ProjectTrack(
            id=_id(row['id']),
            name=row.get('name') or '',
            description=row.get('description'),
            track_base_prompt=row.get('track_base_prompt'),
            roles=_json_out(row.get('Roles') or row.get('roles')) or [],
            milestones=[
                TrackMilestone(
                    id=_id(m['id']),
                    track_id=_id(m['track_id']),
                    step_title=m.get('step_title') or '',
                    prompt_instructions=m.get('prompt_instructions'),
                    step_order=m.get('step_order') or 0,
                )
                for m in milestones
            ],
        )

    async def list_project_contacts(self, project_id: str) -> list[Contact]:
        rows = await self._fetch_all(
            """
            SELECT c.id, c.full_name, c.role, c.phone_number, c.email
            FROM contacts c JOIN project_contacts pc ON pc.contact_id = c.id
            WHERE pc.project_id = :project_id
            """,
            {'project_id': project_id},
        )
        return [
            Contact(
                id=_id(r['id']),
                full_name=r.get('full_name'),
                role=r.get('role'),
                phone_number=r.get('phone_number'),
                email=r.get('email'),
            )
            for r in rows
        ]

    async def search_projects(
        self,
        company_id: str,
        query: str,
        search_type: str = 'any',
        limit: int = 5,
    ) -> list[Project]:
        """Case-insensitive match on id, crm_id or address within one company."""
        conditions = {
            'id': 'CAST(id AS text) = :exact',
            'crm_id': 'crm_id ILIKE :pattern',
            'address': 'address ILIKE :pattern',
        }
        if search_type == 'any':
            where = ' OR '.join(conditions.values())
        else:
            where = conditions[search_type]
        rows = await self._fetch_all(
            f"""
            SELECT * FROM projects
            WHERE company_id = :company_id AND ({where})
            ORDER BY created_at DESC
            LIMIT :limit
            """,
            {'company_id': company_id, 'exact': query, 'pattern': f'%{query}%', 'limit': limit},
        )
        return [_row_to_project(r) for r in rows]

    async def list_project_communications(self, project_id: str, limit: int = 20) -> list[Communication]:
        rows = await self._fetch_all(
            """
            SELECT * FROM communications WHERE project_id = :project_id
            ORDER BY timestamp DESC LIMIT :limit
            """,
            {'project_id': project_id, 'limit': limit},
        )
        return [_row_to_communication(r) for r in rows]

    # =========================================================================
    # Prompts, prompt runs, AI config
    # =========================================================================

    async def get_workflow_prompt(self, prompt_type: WorkflowPromptType) -> WorkflowPrompt | None:
        row = await self._fetch_one(
            """
            SELECT id, type, prompt_text FROM workflow_prompts
            WHERE type = :type ORDER BY created_at DESC LIMIT 1
            """,
            {'type': prompt_type.value},
        )
        if row is None:
            return None
        return WorkflowPrompt(id=_id(row['id']), type=prompt_type, prompt_text=row['prompt_text'])

    async def get_ai_config(self) -> AIConfig | None:
        row = await self._fetch_one(
            'SELECT provider, model FROM ai_config ORDER BY created_at DESC LIMIT 1'
        )
        if row is None or not row.get('provider') or not row.get('model'):
            return None
        return AIConfig(provider=row['provider'], model=row['model'])

    async def insert_prompt_run(self, run: PromptRun) -> PromptRun:
        await self._execute(
            """
            INSERT INTO prompt_runs (
                id, project_id, workflow_prompt_id, prompt_input, status,
                ai_provider, ai_model, created_at
            ) VALUES (
                :id, :project_id, :workflow_prompt_id, :prompt_input, :status,
                :ai_provider, :ai_model, :created_at
            )
            """,
            {
                'id': run.id,
                'project_id': run.project_id,
                'workflow_prompt_id': run.workflow_prompt_id,
                'prompt_input': run.prompt_input,
                'status': run.status.value,
                'ai_provider': run.ai_provider,
                'ai_model': run.ai_model,
                'created_at': run.created_at,
            },
        )
        return run

    async def complete_prompt_run(
        self,
        run_id: str,
        output: str,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> None:
        await self._execute(
            """
            UPDATE prompt_runs
            SET status = 'COMPLETED', prompt_output = :output,
                tool_calls = CAST(:tool_calls AS jsonb), completed_at = :now
            WHERE id = :id
            """,
            {
                'id': run_id,
                'output': output,
                'tool_calls': _json_in(tool_calls or []),
                'now': datetime.now(timezone.utc),
            },
        )

    async def fail_prompt_run(self, run_id: str, error_message: str) -> None:
        await self._execute(
            """
            UPDATE prompt_runs
            SET status = 'ERROR', error_message = :error, completed_at = :now
            WHERE id = :id
            """,
            {'id': run_id, 'error': error_message, 'now': datetime.now(timezone.utc)},
        )

    # =========================================================================
    # Action records
    # =========================================================================

    async def insert_action_record(
        self,
        record: ActionRecord,
        next_check_date: datetime | None = None,
    ) -> ActionRecord:
        """
        Insert an action record.

        With next_check_date, the project is rescheduled in the same
        transaction, so a reminder never moves the date without its record.
        """
        statements: list[tuple[str, dict[str, Any]]] = [(INSERT_ACTION_SQL, _action_params(record))]
        if next_check_date is not None:
            statements.append((
                'UPDATE projects SET next_check_date = :when WHERE id = :id',
                {'id': record.project_id, 'when': next_check_date},
            ))
        await self._execute_all(statements)
        return record

    async def get_action_record(self, action_id: str) -> ActionRecord | None:
        row = await self._fetch_one('SELECT * FROM action_records WHERE id = :id', {'id': action_id})
        return _row_to_action(row) if row else None

    async def record_approval(self, action_id: str, approved_by: str | None, approved_at: datetime) -> bool:
        row = await self._fetch_one(
            """
            UPDATE action_records SET approved_at = :approved_at, approved_by = :approved_by
            WHERE id = :id AND status = 'pending' AND approved_at IS NULL
            RETURNING id
            """,
            {'id': action_id, 'approved_by': approved_by, 'approved_at': approved_at},
        )
        return row is not None

    async def claim_action_execution(self, action_id: str, claimed_at: datetime) -> bool:
        """
        Compare-and-set the execution claim on a pending action.

        True for exactly one caller, and only once any required approval is
        recorded. The winner alone performs the side effect.
        """
        row = await self._fetch_one(
            """
            UPDATE action_records SET execution_claimed_at = :claimed_at
            WHERE id = :id
              AND status = 'pending'
              AND execution_claimed_at IS NULL
              AND (requires_approval = false OR approved_at IS NOT NULL)
            RETURNING id
            """,
            {'id': action_id, 'claimed_at': claimed_at},
        )
        return row is not None

    async def transition_action(
        self,
        action_id: str,
        to_status: ActionStatus,
        execution_result: dict[str, Any] | None = None,
        executed_at: datetime | None = None,
        unclaimed_only: bool = False,
    ) -> bool:
        """
        Move a pending action to a terminal state. False if it already left pending.

        unclaimed_only also refuses actions whose execution is under way.
        """
        claim_clause = ' AND execution_claimed_at IS NULL' if unclaimed_only else ''
        row = await self._fetch_one(
            f"""
            UPDATE action_records
            SET status = :status, execution_result = CAST(:result AS jsonb),
                executed_at = :executed_at
            WHERE id = :id AND status = 'pending'{claim_clause}
            RETURNING id
            """,
            {
                'id': action_id,
                'status': to_status.value,
                'result': _json_in(execution_result),
                'executed_at': executed_at,
            },
        )
        return row is not None
