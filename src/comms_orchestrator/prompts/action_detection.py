"""
Function tool offered to the decision engine during action detection.
"""

from typing import Any

from ..actions.records import CreateActionRecordArgs

CREATE_ACTION_RECORD = 'create_action_record'

CREATE_ACTION_RECORD_DESCRIPTION = (
    'Creates an action record based on your analysis. Use this when you determine '
    'an action is needed (message, data update, reminder, escalation or human review).'
)


def build_action_tool() -> dict[str, Any]:
    """OpenAI function-tool definition generated from the argument model."""
    schema = CreateActionRecordArgs.model_json_schema()
    schema.pop('title', None)
    return {
        'type': 'function',
        'function': {
            'name': CREATE_ACTION_RECORD,
            'description': CREATE_ACTION_RECORD_DESCRIPTION,
            'parameters': schema,
        },
    }
