"""
Provider webhook parsers.

``get_parser(service)`` returns the parser registered for a provider key.
"""

from ..errors import UnsupportedServiceError
from .base import ProviderEvent, WebhookParser, map_call_status, map_direction, parse_timestamp
from .justcall import JustCallParser
from .twilio import TwilioParser

PARSERS: dict[str, WebhookParser] = {
    JustCallParser.service: JustCallParser(),
    TwilioParser.service: TwilioParser(),
}


def get_parser(service: str) -> WebhookParser:
    """
    Look up the parser for a provider.

    Raises:
        UnsupportedServiceError: No parser is registered for ``service``
    """
    parser = PARSERS.get((service or '').strip().lower())
    if parser is None:
        raise UnsupportedServiceError(
            f'Unsupported service: {service}',
            context={'supported': sorted(PARSERS)},
        )
    return parser


__all__ = [
    'JustCallParser',
    'PARSERS',
    'ProviderEvent',
    'TwilioParser',
    'WebhookParser',
    'get_parser',
    'map_call_status',
    'map_direction',
    'parse_timestamp',
]
