"""
Workflow prompt templates.

Stored templates (workflow_prompts table) take precedence; these defaults
apply when none is stored for a type. Placeholders use ``{{name}}``.
"""

import json
import re
from typing import Any

from ..models.prompt_run import WorkflowPromptType

PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*([a-zA-Z0-9_]+)\s*\}\}')


SUMMARY_UPDATE_TEMPLATE = """You maintain the running summary of a {{track_name}} project.

Track roles: {{track_roles}}
Track guidance: {{track_base_prompt}}
Today's date: {{current_date}}

Current project summary:
{{summary}}

New information:
{{new_data}}

Rewrite the project summary so it reflects the new information. Keep facts
from the current summary that are still true, note what changed and when,
and keep it under 300 words. Reply with the summary text only."""


ACTION_DETECTION_TEMPLATE = """You are the project manager assistant for a {{track_name}} project.

Track roles: {{track_roles}}
Track guidance: {{track_base_prompt}}
Today's date: {{current_date}}
Property address: {{property_address}}

Project summary:
{{summary}}

Current next step: {{next_step}}

Milestones:
{{milestone_instructions}}

Reminder check: {{is_reminder_check}}

New information:
{{new_data}}

Decide whether any action is needed now. For every action call the
create_action_record tool once (message, set_future_reminder, data_update,
escalation, human_in_loop). If nothing is needed, call it with
action_type "no_action" or set a future reminder. Briefly explain your reasoning."""


MULTI_PROJECT_ANALYSIS_TEMPLATE = """A single communication may concern several projects.

Open projects (JSON):
{{projects_data}}

Communication:
{{communication_content}}

For each project the communication is relevant to, extract the portion of
the content that concerns it. Reply with JSON only, in the form:
{"projects": [{"projectId": "<id>", "relevantContent": "<text>"}]}
Omit projects the communication does not mention."""


DEFAULT_TEMPLATES: dict[WorkflowPromptType, str] = {
    WorkflowPromptType.SUMMARY_UPDATE: SUMMARY_UPDATE_TEMPLATE,
    WorkflowPromptType.ACTION_DETECTION_EXECUTION: ACTION_DETECTION_TEMPLATE,
    WorkflowPromptType.MULTI_PROJECT_ANALYSIS: MULTI_PROJECT_ANALYSIS_TEMPLATE,
}


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def render_template(template: str, context: dict[str, Any]) -> tuple[str, list[str]]:
    """
    Substitute ``{{name}}`` placeholders from context.

    Non-string values are JSON encoded. Placeholders without a context
    entry are left in place.

    Returns:
        Rendered text and the names of placeholders that were not replaced
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in context:
            missing.append(name)
            return match.group(0)
        return _as_text(context[name])

    return PLACEHOLDER_PATTERN.sub(_replace, template), missing
