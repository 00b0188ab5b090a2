"""
JustCall webhook parser.

Handles both payload generations:
- v2: dot-delimited event type (``call.completed``, ``sms.received``),
  optionally wrapped in ``data``, with contact_number/justcall_number and
  nested call_info / sms_info / justcall_ai blocks.
- v1: flat ``type: call|sms`` (or call_type / message_type) with from/to.

JustCall retries aggressively on non-2xx responses, so any internal failure
on a recognised payload yields a synthesized fallback Communication tagged
with the error instead of raising.
"""

from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from ..errors import UnknownEventError
from ..logging import get_logger
from ..models.communication import (
    CommSubtype,
    CommType,
    Communication,
    Direction,
    Participant,
    ParticipantRole,
)
from .base import (
    LooseInt,
    LooseList,
    LooseStr,
    ProviderEvent,
    WebhookParser,
    first_text,
    loose_model,
    map_call_status,
    map_direction,
    parse_timestamp,
)

logger = get_logger(__name__)


def _event_prefix(payload: dict[str, Any]) -> str | None:
    event_type = payload.get('type')
    if isinstance(event_type, str) and '.' in event_type:
        return event_type.split('.', 1)[0].lower()
    return None


def _v2_body(payload: dict[str, Any]) -> dict[str, Any]:
    """Flatten the optional ``data`` wrapper, keeping the outer event type."""
    data = payload.get('data')
    if not isinstance(data, dict):
        return payload
    body = dict(data)
    if payload.get('type') is not None:
        body['type'] = payload['type']
    return body


def _render_transcript(turns: list[Any]) -> str | None:
    lines = []
    for turn in turns:
        if isinstance(turn, str):
            lines.append(turn.strip())
        elif isinstance(turn, dict):
            speaker = turn.get('speaker') or turn.get('role') or turn.get('name')
            text = turn.get('text') or turn.get('content') or turn.get('sentence')
            if not text:
                continue
            lines.append(f'{speaker}: {text}' if speaker else str(text))
    rendered = '\n'.join(line for line in lines if line)
    return rendered or None


def _join_date_time(date: str | None, time: str | None) -> str | None:
    if date and time:
        return f'{date}T{time}'
    return date


def _phone(value: str | None, role: ParticipantRole) -> Participant | None:
    if not value:
        return None
    return Participant(type='phone', value=value, role=role)


def _ordered(*participants: Participant | None) -> list[Participant]:
    present = [p for p in participants if p is not None]
    return present or [Participant.placeholder()]


# =============================================================================
# v2 nested blocks
# =============================================================================


class _Block(BaseModel):
    model_config = ConfigDict(extra='ignore')


class SmsInfo(_Block):
    body: LooseStr = None
    direction: LooseStr = None


class CallInfo(_Block):
    notes: LooseStr = None
    recording: LooseStr = None
    type: LooseStr = None
    disposition: LooseStr = None
    status: LooseStr = None
    voicemail_transcription: LooseStr = None


class JustCallAI(_Block):
    call_summary: LooseStr = None
    call_transcript: LooseList = Field(default_factory=list)


# =============================================================================
# v2 events
# =============================================================================


class _JustCallV2Event(ProviderEvent):
    type: LooseStr = None
    direction: LooseStr = None
    contact_number: LooseStr = None
    justcall_number: LooseStr = None
    datetime_: LooseStr = Field(default=None, alias='datetime')
    timestamp: LooseStr = None
    created_at: LooseStr = None

    @model_validator(mode='before')
    @classmethod
    def _unwrap(cls, data: Any) -> Any:
        return _v2_body(data) if isinstance(data, dict) else data


class JustCallV2Sms(_JustCallV2Event):
    """``sms.*`` events, or any v2 body carrying sms_info."""

    category: ClassVar[str] = 'justcall.v2.sms'

    sms_info: Annotated[SmsInfo | None, BeforeValidator(loose_model)] = None
    sms_date: LooseStr = None
    sms_time: LooseStr = None

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        if _event_prefix(payload) in ('sms', 'message'):
            return True
        return 'sms_info' in _v2_body(payload)

    def to_communication(self) -> Communication:
        sms = self.sms_info or SmsInfo()
        direction = map_direction(self.direction, sms.direction)
        contact_role, agent_role = (
            (ParticipantRole.SENDER, ParticipantRole.RECEIVER)
            if direction == Direction.INBOUND
            else (ParticipantRole.RECEIVER, ParticipantRole.SENDER)
        )
        contact = _phone(self.contact_number, contact_role)
        agent = _phone(self.justcall_number, agent_role)
        participants = (
            _ordered(contact, agent)
            if direction == Direction.INBOUND
            else _ordered(agent, contact)
        )
        return Communication(
            type=CommType.SMS,
            subtype=CommSubtype.SMS_MESSAGE,
            direction=direction,
            participants=participants,
            timestamp=parse_timestamp(
                self.datetime_,
                _join_date_time(self.sms_date, self.sms_time),
                self.timestamp,
                self.created_at,
            ),
            content=first_text(sms.body),
        )


class JustCallV2Call(_JustCallV2Event):
    """``call.*`` events, or any v2 body carrying call_info."""

    category: ClassVar[str] = 'justcall.v2.call'

    call_info: Annotated[CallInfo | None, BeforeValidator(loose_model)] = None
    justcall_ai: Annotated[JustCallAI | None, BeforeValidator(loose_model)] = None
    transcript: LooseList = Field(default_factory=list)
    voicemail_transcription: LooseStr = None
    call_duration: LooseInt = None
    duration: LooseInt = None
    recording_url: LooseStr = None
    call_date: LooseStr = None
    call_time: LooseStr = None

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        if _event_prefix(payload) == 'call':
            return True
        return 'call_info' in _v2_body(payload)

    def _event_suffix(self) -> str | None:
        if self.type and '.' in self.type:
            return self.type.split('.', 1)[1]
        return None

    def _content(self) -> str | None:
        info = self.call_info or CallInfo()
        ai = self.justcall_ai or JustCallAI()
        turns = self.transcript or ai.call_transcript
        # Priority: agent notes, AI summary, transcript turns, voicemail text
        return first_text(
            info.notes,
            ai.call_summary,
            _render_transcript(turns),
            info.voicemail_transcription,
            self.voicemail_transcription,
        )

    def to_communication(self) -> Communication:
        info = self.call_info or CallInfo()
        direction = map_direction(self.direction)
        if direction == Direction.INBOUND:
            participants = _ordered(
                _phone(self.contact_number, ParticipantRole.CALLER),
                _phone(self.justcall_number, ParticipantRole.RECIPIENT),
            )
        else:
            participants = _ordered(
                _phone(self.justcall_number, ParticipantRole.CALLER),
                _phone(self.contact_number, ParticipantRole.RECIPIENT),
            )
        return Communication(
            type=CommType.CALL,
            subtype=map_call_status(
                info.status, self._event_suffix(), info.disposition, info.type
            ),
            direction=direction,
            participants=participants,
            timestamp=parse_timestamp(
                self.datetime_,
                _join_date_time(self.call_date, self.call_time),
                self.timestamp,
                self.created_at,
            ),
            duration=self.call_duration if self.call_duration is not None else self.duration,
            content=self._content(),
            recording_url=first_text(info.recording, self.recording_url),
        )


# =============================================================================
# v1 events
# =============================================================================


class _JustCallV1Event(ProviderEvent):
    type: LooseStr = None
    direction: LooseStr = None
    from_: LooseStr = Field(default=None, alias='from')
    to: LooseStr = None
    timestamp: LooseStr = None


class JustCallV1Call(_JustCallV1Event):
    category: ClassVar[str] = 'justcall.v1.call'

    call_type: LooseStr = None
    status: LooseStr = None
    start_time: LooseStr = None
    duration: LooseInt = None
    notes: LooseStr = None
    transcript: LooseStr = None
    recording_url: LooseStr = None

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        return payload.get('type') == 'call' or bool(payload.get('call_type'))

    def to_communication(self) -> Communication:
        direction = map_direction(self.direction, self.call_type)
        inbound = direction == Direction.INBOUND
        return Communication(
            type=CommType.CALL,
            subtype=map_call_status(self.status),
            direction=direction,
            participants=_ordered(
                _phone(self.from_, ParticipantRole.CALLER if inbound else ParticipantRole.RECIPIENT),
                _phone(self.to, ParticipantRole.RECIPIENT if inbound else ParticipantRole.CALLER),
            ),
            timestamp=parse_timestamp(self.timestamp, self.start_time),
            duration=self.duration,
            content=first_text(self.notes, self.transcript),
            recording_url=self.recording_url,
        )


class JustCallV1Sms(_JustCallV1Event):
    category: ClassVar[str] = 'justcall.v1.sms'

    message_type: LooseStr = None
    date: LooseStr = None
    text: LooseStr = None
    body: LooseStr = None
    message: LooseStr = None

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        return payload.get('type') == 'sms' or bool(payload.get('message_type'))

    def to_communication(self) -> Communication:
        direction = map_direction(self.direction, self.message_type)
        inbound = direction == Direction.INBOUND
        return Communication(
            type=CommType.SMS,
            subtype=CommSubtype.SMS_MESSAGE,
            direction=direction,
            participants=_ordered(
                _phone(self.from_, ParticipantRole.SENDER if inbound else ParticipantRole.RECEIVER),
                _phone(self.to, ParticipantRole.RECEIVER if inbound else ParticipantRole.SENDER),
            ),
            timestamp=parse_timestamp(self.timestamp, self.date),
            content=first_text(self.text, self.body, self.message),
        )


# =============================================================================
# Parser
# =============================================================================


def _looks_like_sms(payload: dict[str, Any]) -> bool:
    body = _v2_body(payload)
    return (
        _event_prefix(payload) in ('sms', 'message')
        or payload.get('type') == 'sms'
        or 'sms_info' in body
        or bool(payload.get('message_type'))
    )


class JustCallParser(WebhookParser):
    service: ClassVar[str] = 'justcall'
    decoders: ClassVar[tuple[type[ProviderEvent], ...]] = (
        JustCallV2Sms,
        JustCallV2Call,
        JustCallV1Call,
        JustCallV1Sms,
    )

    def parse(
        self,
        payload: dict[str, Any],
        raw_webhook_id: str | None = None,
    ) -> Communication:
        try:
            return super().parse(payload, raw_webhook_id)
        except UnknownEventError:
            raise
        except Exception as e:
            logger.warning(
                'parser.fallback_synthesized',
                service=self.service,
                raw_webhook_id=raw_webhook_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback(payload, raw_webhook_id, e)

    def _fallback(
        self,
        payload: dict[str, Any],
        raw_webhook_id: str | None,
        exc: Exception,
    ) -> Communication:
        is_sms = _looks_like_sms(payload)
        return Communication(
            type=CommType.SMS if is_sms else CommType.CALL,
            subtype=CommSubtype.SMS_MESSAGE if is_sms else CommSubtype.CALL_OTHER,
            direction=Direction.INBOUND,
            participants=[Participant.placeholder()],
            raw_webhook_id=raw_webhook_id,
            parse_error=f'{type(exc).__name__}: {exc}',
        )
