"""
Action record state machine.

Creation validates the type-specific required fields before anything is
written; a failed validation leaves no row behind. Reminders take effect at
creation and are stored executed. Everything else starts pending and, when
requires_approval is set, can only execute after an approval signal.
Execution first claims the action (execution_claimed_at) with a
compare-and-set; only the claimant performs the send, and reject refuses a
claimed action.

    pending --approve/execute--> executed
    pending --reject/send failure--> failed
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ActionValidationError, InvalidTransitionError, NotFoundError
from ..logging import get_logger
from ..models.action_record import ActionRecord, ActionStatus, ActionType
from ..repository import CommsRepository
from .contacts import default_sender, resolve_contact
from .executor import MessageSender

logger = get_logger(__name__)


ACTION_TYPE_ALIASES: dict[str, ActionType] = {
    'send_message': ActionType.MESSAGE,
    'sendmessage': ActionType.MESSAGE,
    'reminder': ActionType.SET_FUTURE_REMINDER,
    'set_reminder': ActionType.SET_FUTURE_REMINDER,
    'future_reminder': ActionType.SET_FUTURE_REMINDER,
    'update_data': ActionType.DATA_UPDATE,
    'dataupdate': ActionType.DATA_UPDATE,
    'escalate': ActionType.ESCALATION,
    'human': ActionType.HUMAN_IN_LOOP,
    'human_review': ActionType.HUMAN_IN_LOOP,
    'no_action_needed': ActionType.NO_ACTION,
    'none': ActionType.NO_ACTION,
}

REQUIRED_FIELDS: dict[ActionType, tuple[str, ...]] = {
    ActionType.MESSAGE: ('recipient', 'message_content'),
    ActionType.SET_FUTURE_REMINDER: ('days_until_check', 'check_reason'),
    ActionType.DATA_UPDATE: ('field', 'value'),
    ActionType.ESCALATION: ('reason', 'project_id'),
    ActionType.HUMAN_IN_LOOP: ('review_reason',),
    ActionType.NO_ACTION: (),
}

MAX_REMINDER_DAYS = 3650


def normalize_action_type(raw: Any) -> ActionType:
    """
    Resolve canonical names and known aliases.

    Raises:
        ActionValidationError: Missing or unknown action_type
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ActionValidationError(
            'action_type is required',
            field_errors={'action_type': 'required'},
        )
    key = raw.strip().lower().replace('-', '_').replace(' ', '_')
    try:
        return ActionType(key)
    except ValueError:
        pass
    if key in ACTION_TYPE_ALIASES:
        return ACTION_TYPE_ALIASES[key]
    raise ActionValidationError(
        f'Unknown action_type: {raw}',
        field_errors={'action_type': f'unknown value {raw!r}'},
    )


class CreateActionRecordArgs(BaseModel):
    """Arguments of the create_action_record tool call."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    action_type: str = Field(
        ...,
        description='The type of action to create',
        json_schema_extra={'enum': [t.value for t in ActionType]},
    )
    description: str | None = Field(default=None, description='Description of the action')
    priority: str | None = Field(default=None, description='low, medium or high')

    # message
    recipient: str | None = Field(
        default=None, description='For messages: name or role of the recipient'
    )
    recipient_id: str | None = Field(
        default=None, description='For messages: contact id of the recipient'
    )
    sender: str | None = Field(
        default=None, description='For messages: name or role of the sender'
    )
    message_content: str | None = Field(
        default=None,
        validation_alias=AliasChoices('message_content', 'message_text', 'message'),
        description='For messages: the message text to send',
    )

    # set_future_reminder
    days_until_check: int | None = Field(
        default=None,
        ge=0,
        le=MAX_REMINDER_DAYS,
        description='For reminders: days until the project is checked again',
    )
    check_reason: str | None = Field(default=None, description='For reminders: why the check is needed')

    # data_update
    field: str | None = Field(
        default=None,
        validation_alias=AliasChoices('field', 'data_field'),
        description='For data updates: the field to update',
    )
    value: Any = Field(
        default=None,
        validation_alias=AliasChoices('value', 'data_value'),
        description='For data updates: the new value',
    )

    # escalation / human_in_loop
    reason: str | None = Field(default=None, description='For escalations: why escalation is needed')
    escalation_details: str | None = Field(default=None, description='For escalations: details')
    review_reason: str | None = Field(
        default=None, description='For human review: why a person must look at this'
    )
    project_id: str | None = Field(default=None, description='Project the action concerns')

    @field_validator('days_until_check', mode='before')
    @classmethod
    def _coerce_days(cls, value: Any) -> Any:
        if value is None or value == '':
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return value

    def missing_fields(self, action_type: ActionType) -> dict[str, str]:
        errors: dict[str, str] = {}
        for name in REQUIRED_FIELDS[action_type]:
            value = getattr(self, name)
            if name == 'recipient' and self.recipient_id:
                continue
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[name] = f'{name} is required for {action_type.value} actions'
        return errors


def parse_action_args(arguments: dict[str, Any], project_id: str | None = None) -> tuple[ActionType, CreateActionRecordArgs]:
    """
    Validate raw tool-call arguments.

    Args:
        arguments: Decoded tool-call arguments
        project_id: Project in scope; fills project_id when the call omits it

    Returns:
        Canonical action type and validated arguments

    Raises:
        ActionValidationError: With one entry per offending field
    """
    action_type = normalize_action_type(arguments.get('action_type'))
    data = dict(arguments)
    if project_id and not data.get('project_id'):
        data['project_id'] = project_id
    try:
        args = CreateActionRecordArgs.model_validate(data)
    except PydanticValidationError as e:
        field_errors = {
            '.'.join(str(p) for p in err['loc']): err['msg'] for err in e.errors()
        }
        raise ActionValidationError('Invalid action arguments', field_errors=field_errors)

    missing = args.missing_fields(action_type)
    if missing:
        raise ActionValidationError(
            f'Missing required fields for {action_type.value}: {", ".join(sorted(missing))}',
            field_errors=missing,
        )
    return action_type, args


class ActionRecordService:
    """
    Creates action records and drives them through their lifecycle.

    Usage:
        service = ActionRecordService(repository)
        record = await service.create(args, project_id=pid, prompt_run_id=rid)
        await service.approve(record.id, approved_by='ops@company')
    """

    def __init__(
        self,
        repository: CommsRepository,
        sender: MessageSender | None = None,
    ):
        self.repository = repository
        self.sender = sender or MessageSender()


    async def create(
        self,
        arguments: dict[str, Any],
        *,
        project_id: str,
        prompt_run_id: str,
    ) -> ActionRecord:
        """
        Validate and insert one action record.

        Raises:
            ActionValidationError: Required fields missing or recipient unresolvable
        """
        record = await self.prepare(arguments, project_id=project_id, prompt_run_id=prompt_run_id)
        return await self.save(record)

    async def prepare(
        self,
        arguments: dict[str, Any],
        *,
        project_id: str,
        prompt_run_id: str,
    ) -> ActionRecord:
        """
        Validate arguments and build the record without writing anything.

        Raises:
            ActionValidationError: Required fields missing or recipient unresolvable
        """
        action_type, args = parse_action_args(arguments, project_id)
        record = ActionRecord(
            prompt_run_id=prompt_run_id,
            project_id=project_id,
            action_type=action_type,
        )

        if action_type == ActionType.MESSAGE:
            await self._prepare_message(record, args)
        elif action_type == ActionType.SET_FUTURE_REMINDER:
            self._prepare_reminder(record, args)
        elif action_type == ActionType.DATA_UPDATE:
            record.action_payload = {
                'field': args.field,
                'value': args.value,
                'description': args.description,
            }
        elif action_type == ActionType.ESCALATION:
            record.action_payload = {
                'reason': args.reason,
                'project_id': args.project_id,
                'escalation_details': args.escalation_details,
                'priority': args.priority,
            }
        elif action_type == ActionType.HUMAN_IN_LOOP:
            record.action_payload = {
                'review_reason': args.review_reason,
                'description': args.description,
            }
        else:
            record.action_payload = {'description': args.description, 'reason': args.reason}
        return record

    async def save(self, record: ActionRecord) -> ActionRecord:
        """Insert a prepared record; a reminder reschedules its project in the same transaction."""
        next_check = None
        if record.action_type == ActionType.SET_FUTURE_REMINDER:
            next_check = datetime.fromisoformat(record.execution_result['next_check_date'])
        await self.repository.insert_action_record(record, next_check_date=next_check)
        logger.info(
            'action_record.created',
            project_id=record.project_id,
            action_type=record.action_type.value,
            action_id=record.id,
            status=record.status.value,
        )
        return record

    async def _prepare_message(self, record: ActionRecord, args: CreateActionRecordArgs) -> None:
        contacts = await self.repository.list_project_contacts(record.project_id)

        recipient = None
        if args.recipient_id:
            recipient = next((c for c in contacts if c.id == args.recipient_id), None)
        if recipient is None:
            recipient = resolve_contact(args.recipient, contacts)
        if recipient is None:
            raise ActionValidationError(
                f'No project contact matches recipient {args.recipient or args.recipient_id!r}',
                field_errors={'recipient': 'could not be resolved to a project contact'},
            )

        sender = resolve_contact(args.sender, contacts) if args.sender else None
        sender = sender or default_sender(contacts)

        record.recipient_id = recipient.id
        record.sender_id = sender.id if sender else None
        record.message = args.message_content
        record.requires_approval = True
        record.action_payload = {
            'recipient': recipient.full_name or args.recipient,
            'recipient_role': recipient.role,
            'sender': sender.full_name if sender else args.sender,
            'message_content': args.message_content,
            'description': args.description,
        }

    def _prepare_reminder(self, record: ActionRecord, args: CreateActionRecordArgs) -> None:
        now = datetime.now(timezone.utc)
        next_check = now + timedelta(days=args.days_until_check)

        record.requires_approval = False
        record.status = ActionStatus.EXECUTED
        record.executed_at = now
        record.action_payload = {
            'description': args.description or f'Check project in {args.days_until_check} days',
            'check_reason': args.check_reason,
            'days_until_check': args.days_until_check,
        }
        record.execution_result = {'next_check_date': next_check.isoformat()}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _load(self, action_id: str) -> ActionRecord:
        record = await self.repository.get_action_record(action_id)
        if record is None:
            raise NotFoundError(f'Action record not found: {action_id}', {'action_id': action_id})
        return record

    async def approve(self, action_id: str, approved_by: str | None = None) -> ActionRecord:
        """Record the approval signal, then execute."""
        record = await self._load(action_id)
        if record.is_terminal:
            raise InvalidTransitionError(
                f'Action {action_id} is already {record.status.value}',
                {'action_id': action_id},
            )
        if record.approved_at is None:
            await self.repository.record_approval(
                action_id, approved_by, datetime.now(timezone.utc)
            )
        return await self.execute(action_id)

    async def reject(self, action_id: str, reason: str | None = None) -> ActionRecord:
        record = await self._load(action_id)
        moved = await self.repository.transition_action(
            action_id,
            ActionStatus.FAILED,
            execution_result={'rejected': True, 'reason': reason},
            unclaimed_only=True,
        )
        if not moved:
            state = 'being executed' if record.execution_claimed_at else record.status.value
            raise InvalidTransitionError(
                f'Action {action_id} is already {state}',
                {'action_id': action_id},
            )
        logger.info('action_record.rejected', action_id=action_id)
        return await self._load(action_id)

    async def execute(self, action_id: str) -> ActionRecord:
        """
        Execute a pending action.

        The execution claim is taken before the message is sent, so of two
        overlapping calls only one reaches the send service.

        Raises:
            InvalidTransitionError: Terminal already, approval still outstanding,
                or another call holds the execution claim
        """
        record = await self._load(action_id)
        if record.is_terminal:
            raise InvalidTransitionError(
                f'Action {action_id} is already {record.status.value}',
                {'action_id': action_id},
            )
        if record.requires_approval and record.approved_at is None:
            raise InvalidTransitionError(
                f'Action {action_id} requires approval before execution',
                {'action_id': action_id},
            )

        now = datetime.now(timezone.utc)
        if not await self.repository.claim_action_execution(action_id, now):
            raise InvalidTransitionError(
                f'Action {action_id} is already being executed',
                {'action_id': action_id},
            )

        if record.action_type == ActionType.MESSAGE:
            result = await self.sender.send(record)
            status = ActionStatus.EXECUTED if result.success else ActionStatus.FAILED
            execution_result = result.to_dict()
        else:
            status = ActionStatus.EXECUTED
            execution_result = {'success': True, 'action_type': record.action_type.value}

        moved = await self.repository.transition_action(
            action_id,
            status,
            execution_result=execution_result,
            executed_at=now if status == ActionStatus.EXECUTED else None,
        )
        if not moved:
            raise InvalidTransitionError(
                f'Action {action_id} changed state during execution',
                {'action_id': action_id},
            )
        logger.info('action_record.executed', action_id=action_id, status=status.value)
        return await self._load(action_id)
