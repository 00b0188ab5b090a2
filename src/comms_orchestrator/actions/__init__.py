"""
Action records: validation, contact resolution and execution.
"""

from .contacts import ROLE_SYNONYMS, canonical_role, default_sender, resolve_contact
from .executor import MessageSender, SendResult
from .records import (
    ACTION_TYPE_ALIASES,
    ActionRecordService,
    CreateActionRecordArgs,
    normalize_action_type,
    parse_action_args,
)

__all__ = [
    'ACTION_TYPE_ALIASES',
    'ActionRecordService',
    'CreateActionRecordArgs',
    'MessageSender',
    'ROLE_SYNONYMS',
    'SendResult',
    'canonical_role',
    'default_sender',
    'normalize_action_type',
    'parse_action_args',
    'resolve_contact',
]
