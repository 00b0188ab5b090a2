"""
Shared building blocks for provider webhook parsers.

Each provider exposes an ordered tuple of event decoders. A decoder is a
pydantic model describing one provider event category; its ``matches``
classmethod inspects the payload shape and the first match wins. Field
types are lenient so missing or oddly typed optional fields never raise.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict

from ..errors import UnknownEventError
from ..logging import get_logger
from ..models.communication import CommSubtype, Communication, Direction

logger = get_logger(__name__)


# =============================================================================
# Lenient field types
# =============================================================================


def _coerce_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    text = str(value).strip()
    return text or None


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _coerce_dict(value: Any) -> Any:
    return value if isinstance(value, dict) else None


def _coerce_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


LooseStr = Annotated[str | None, BeforeValidator(_coerce_str)]
LooseInt = Annotated[int | None, BeforeValidator(_coerce_int)]
LooseList = Annotated[list[Any], BeforeValidator(_coerce_list)]


def loose_model(value: Any) -> Any:
    """BeforeValidator for nested models: non-dict input becomes None."""
    return _coerce_dict(value)


# =============================================================================
# Normalisation helpers
# =============================================================================


CALL_STATUS_SUBTYPES: dict[str, CommSubtype] = {
    'completed': CommSubtype.CALL_COMPLETED,
    'answered': CommSubtype.CALL_COMPLETED,
    'missed': CommSubtype.CALL_MISSED,
    'voicemail': CommSubtype.CALL_MISSED,
    'no-answer': CommSubtype.CALL_NO_ANSWER,
    'no_answer': CommSubtype.CALL_NO_ANSWER,
    'noanswer': CommSubtype.CALL_NO_ANSWER,
    'unanswered': CommSubtype.CALL_NO_ANSWER,
    'busy': CommSubtype.CALL_BUSY,
    'canceled': CommSubtype.CALL_CANCELED,
    'cancelled': CommSubtype.CALL_CANCELED,
    'abandoned': CommSubtype.CALL_CANCELED,
    'failed': CommSubtype.CALL_FAILED,
}

OUTBOUND_DIRECTIONS = frozenset({
    'outbound', 'outgoing', 'out', 'outbound-api', 'outbound-dial', 'outbound-call',
})


def map_call_status(*candidates: str | None) -> CommSubtype:
    """Map the first recognised call outcome to a subtype; CALL_OTHER otherwise."""
    for candidate in candidates:
        if not candidate:
            continue
        subtype = CALL_STATUS_SUBTYPES.get(candidate.strip().lower())
        if subtype is not None:
            return subtype
    return CommSubtype.CALL_OTHER


def map_direction(*candidates: str | None) -> Direction:
    """First non-empty candidate decides; anything not outbound is inbound."""
    for candidate in candidates:
        if candidate:
            if candidate.strip().lower() in OUTBOUND_DIRECTIONS:
                return Direction.OUTBOUND
            return Direction.INBOUND
    return Direction.INBOUND


def parse_timestamp(*candidates: Any) -> datetime:
    """
    Normalise the first parseable candidate to an aware UTC datetime.

    Accepts datetimes, epoch seconds or milliseconds, ISO 8601 strings
    (including a trailing Z) and RFC 2822 dates. Falls back to now.
    """
    for value in candidates:
        parsed = _parse_one_timestamp(value)
        if parsed is not None:
            return parsed
    return datetime.now(timezone.utc)


def _parse_one_timestamp(value: Any) -> datetime | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.isdigit():
        return _parse_one_timestamp(int(text))
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def first_text(*candidates: str | None) -> str | None:
    """Return the first non-blank string."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


# =============================================================================
# Decoder / parser base classes
# =============================================================================


class ProviderEvent(BaseModel):
    """One provider event category. Subclasses are pure decoders."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    category: ClassVar[str] = ''

    @classmethod
    def matches(cls, payload: dict[str, Any]) -> bool:
        raise NotImplementedError

    def to_communication(self) -> Communication:
        raise NotImplementedError


class WebhookParser:
    """
    Decodes one provider's webhooks into canonical Communications.

    Subclasses set ``service`` and the ordered ``decoders`` tuple.
    """

    service: ClassVar[str] = ''
    decoders: ClassVar[tuple[type[ProviderEvent], ...]] = ()

    def decode(self, payload: dict[str, Any]) -> ProviderEvent:
        """
        Select the first decoder whose shape matches and validate with it.

        Raises:
            UnknownEventError: No decoder recognises the payload
        """
        if not isinstance(payload, dict):
            raise UnknownEventError(
                f'Unknown {self.service} webhook type',
                context={'payload_type': type(payload).__name__},
            )
        for decoder in self.decoders:
            if decoder.matches(payload):
                return decoder.model_validate(payload)
        raise UnknownEventError(
            f'Unknown {self.service} webhook type',
            context={'keys': sorted(payload.keys())[:20]},
        )

    def parse(
        self,
        payload: dict[str, Any],
        raw_webhook_id: str | None = None,
    ) -> Communication:
        """
        Parse a raw payload into a Communication.

        Args:
            payload: Decoded webhook body
            raw_webhook_id: Id of the stored RawWebhook, linked on the result

        Returns:
            Canonical Communication
        """
        event = self.decode(payload)
        communication = event.to_communication()
        communication.raw_webhook_id = raw_webhook_id
        logger.debug(
            'parser.decoded',
            service=self.service,
            category=event.category,
            type=communication.type.value,
            subtype=communication.subtype.value,
        )
        return communication
