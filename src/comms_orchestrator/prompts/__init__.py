"""
LLM prompts for the communications orchestrator.
"""

from .action_detection import CREATE_ACTION_RECORD, build_action_tool
from .disambiguation import (
    DisambiguationResponse,
    ProjectPartition,
    build_fallback_instruction,
    parse_disambiguation_response,
    project_fingerprint,
)
from .templates import DEFAULT_TEMPLATES, render_template

__all__ = [
    'CREATE_ACTION_RECORD',
    'DEFAULT_TEMPLATES',
    'DisambiguationResponse',
    'ProjectPartition',
    'build_action_tool',
    'build_fallback_instruction',
    'parse_disambiguation_response',
    'project_fingerprint',
    'render_template',
]
