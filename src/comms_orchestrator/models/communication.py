"""
Canonical Communication model.

Every provider parser produces a Communication: a provider-agnostic record
of one inbound or outbound call, SMS or email. Content is fixed once the
record is written; only project_id and batch_id are assigned afterwards.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class CommType(str, Enum):
    """Top-level communication channel."""

    CALL = 'CALL'
    SMS = 'SMS'
    EMAIL = 'EMAIL'


class CommSubtype(str, Enum):
    """Fixed subtype vocabulary; unknown call outcomes map to CALL_OTHER."""

    CALL_COMPLETED = 'CALL_COMPLETED'
    CALL_MISSED = 'CALL_MISSED'
    CALL_NO_ANSWER = 'CALL_NO_ANSWER'
    CALL_BUSY = 'CALL_BUSY'
    CALL_CANCELED = 'CALL_CANCELED'
    CALL_FAILED = 'CALL_FAILED'
    CALL_OTHER = 'CALL_OTHER'
    SMS_MESSAGE = 'SMS_MESSAGE'
    EMAIL_MESSAGE = 'EMAIL_MESSAGE'


class Direction(str, Enum):
    INBOUND = 'inbound'
    OUTBOUND = 'outbound'


class ParticipantRole(str, Enum):
    CALLER = 'caller'
    RECIPIENT = 'recipient'
    SENDER = 'sender'
    RECEIVER = 'receiver'
    UNKNOWN = 'unknown'


class Participant(BaseModel):
    """One party to a communication."""

    type: str = Field(default='phone', description='Identifier kind: phone, email or unknown')
    value: str = Field(..., description='Phone number, address, or "unknown" placeholder')
    role: ParticipantRole = ParticipantRole.UNKNOWN

    @classmethod
    def placeholder(cls) -> 'Participant':
        """Participant emitted when no party could be identified."""
        return cls(type='unknown', value='unknown', role=ParticipantRole.UNKNOWN)


class Communication(BaseModel):
    """Normalized, provider-agnostic communication record."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: CommType
    subtype: CommSubtype
    direction: Direction = Direction.INBOUND
    participants: list[Participant] = Field(default_factory=lambda: [Participant.placeholder()])
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    duration: int | None = Field(default=None, description='Call duration in seconds')
    content: str | None = None
    recording_url: str | None = None

    # Assigned after normalization
    project_id: str | None = None
    batch_id: str | None = None
    multi_project_potential: bool = False

    raw_webhook_id: str | None = None
    parse_error: str | None = Field(
        default=None,
        description='Set when the record was synthesized after a parser failure',
    )

    @property
    def is_sms(self) -> bool:
        return self.type == CommType.SMS

    @property
    def is_call(self) -> bool:
        return self.type == CommType.CALL

    def phone_numbers(self) -> list[str]:
        """Phone values of all identified participants, in order."""
        return [
            p.value for p in self.participants
            if p.type == 'phone' and p.value and p.value != 'unknown'
        ]

    def participant_with_role(self, *roles: ParticipantRole) -> Participant | None:
        for participant in self.participants:
            if participant.role in roles:
                return participant
        return None
