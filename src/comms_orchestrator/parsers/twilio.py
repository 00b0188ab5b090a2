"""
Twilio webhook parser.

Twilio posts form-encoded status callbacks with PascalCase keys. Voice
callbacks carry CallSid/CallStatus; messaging callbacks carry
MessageSid/SmsSid/Body.
"""

from typing import Any, ClassVar

from pydantic import Field

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
    LooseStr,
    ProviderEvent,
    WebhookParser,
    first_text,
    map_call_status,
    map_direction,
    parse_timestamp,
)


class _TwilioEvent(ProviderEvent):
    from_: LooseStr = Field(default=None, alias='From')
    to: LooseStr = Field(default=None, alias='To')
    direction: LooseStr = Field(default=None, alias='Direction')
    timestamp: LooseStr = Field(default=None, alias='Timestamp')
    date_created: LooseStr = Field(default=None, alias='DateCreated')

    def _participants(self, inbound_roles: tuple[ParticipantRole, ParticipantRole]) -> list[Participant]:
        first_role, second_role = inbound_roles
        if map_direction(self.direction) == Direction.OUTBOUND:
            first_role, second_role = second_role, first_role
        participants = []
        if self.from_:
            participants.append(Participant(type='phone', value=self.from_, role=first_role))
        if self.to:
            participants.append(Participant(type='phone', value=self.to, role=second_role))
        return participants or [Participant.placeholder()]


class TwilioCall(_TwilioEvent):
    category: ClassVar[str] = 'twilio.call'

    call_sid: LooseStr = Field(default=None, alias='CallSid')
    call_status: LooseStr = Field(default=None, alias='CallStatus')
    call_duration: LooseInt = Field(default=None, alias='CallDuration')
    duration: LooseInt = Field(default=None, alias='Duration')
    recording_url: LooseStr = Field(default=None, alias='RecordingUrl')
    transcription_text: LooseStr = Field(default=None, alias='TranscriptionText')

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        return bool(payload.get('CallSid') or payload.get('CallStatus'))

    def to_communication(self) -> Communication:
        return Communication(
            type=CommType.CALL,
            subtype=map_call_status(self.call_status),
            direction=map_direction(self.direction),
            participants=self._participants(
                (ParticipantRole.CALLER, ParticipantRole.RECIPIENT)
            ),
            timestamp=parse_timestamp(self.timestamp, self.date_created),
            duration=self.call_duration if self.call_duration is not None else self.duration,
            content=first_text(self.transcription_text),
            recording_url=self.recording_url,
        )


class TwilioSms(_TwilioEvent):
    category: ClassVar[str] = 'twilio.sms'

    message_sid: LooseStr = Field(default=None, alias='MessageSid')
    sms_sid: LooseStr = Field(default=None, alias='SmsSid')
    body: LooseStr = Field(default=None, alias='Body')

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        return bool(
            payload.get('MessageSid') or payload.get('SmsSid') or payload.get('Body')
        )

    def to_communication(self) -> Communication:
        return Communication(
            type=CommType.SMS,
            subtype=CommSubtype.SMS_MESSAGE,
            direction=map_direction(self.direction),
            participants=self._participants(
                (ParticipantRole.SENDER, ParticipantRole.RECEIVER)
            ),
            timestamp=parse_timestamp(self.date_created, self.timestamp),
            content=first_text(self.body),
        )


class TwilioParser(WebhookParser):
    service: ClassVar[str] = 'twilio'
    decoders: ClassVar[tuple[type[ProviderEvent], ...]] = (TwilioCall, TwilioSms)
