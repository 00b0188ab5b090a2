"""
OpenAI-backed decision engine.

Summary updates and disambiguation need plain text back; action detection
offers the ``create_action_record`` function and needs the tool calls. Both
go through one retried ``chat.completions.create`` call.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from ..logging import get_logger

logger = get_logger(__name__)


@dataclass
class ToolCall:
    """One function call requested by the model."""

    name: str
    arguments: dict[str, Any]
    raw_arguments: str = ''
    call_id: str | None = None


@dataclass
class ToolCompletion:
    """Assistant text plus any requested tool calls."""

    content: str = ''
    tool_calls: list[ToolCall] = field(default_factory=list)


def _decode_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning('openai_client.tool_arguments_invalid_json', raw=raw[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}



class OpenAIClient:
    """
    Prompt in, text or tool calls out.

    The key comes from the argument or OPENAI_API_KEY; the default model from
    the argument or AI_MODEL. Per-invocation model overrides come from the
    resolved AIConfig.
    """

    def __init__(self, api_key: str | None = None, chat_model: str | None = None):
        self.api_key = api_key or os.getenv('OPENAI_API_KEY')
        if not self.api_key:
            raise ValueError('OPENAI_API_KEY environment variable is required')

        self.chat_model = chat_model or os.getenv('AI_MODEL', 'gpt-4o')
        self._client = AsyncOpenAI(api_key=self.api_key)

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=10))
    async def _create(self, messages: list[dict[str, str]], model: str | None, **kwargs: Any):
        return await self._client.chat.completions.create(
            model=model or self.chat_model,
            messages=messages,  # type: ignore
            **kwargs,
        )

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        """Return the assistant text ('' when the model sent none)."""
        response = await self._create(messages, model, temperature=temperature, max_tokens=max_tokens)
        return response.choices[0].message.content or ''

    async def chat_completion_with_tools(
        self,
        messages: list[dict[str, str]],
        tools: list[dict[str, Any]],
        model: str | None = None,
        temperature: float = 0.0,
    ) -> ToolCompletion:
        """
        Let the model answer with text, function calls or both.

        Arguments that are not a JSON object decode to ``{}``; the raw string
        is kept on the ToolCall for the PromptRun audit.
        """
        response = await self._create(
            messages, model, tools=tools, tool_choice='auto', temperature=temperature
        )
        message = response.choices[0].message
        calls = [
            ToolCall(
                name=call.function.name,
                arguments=_decode_arguments(call.function.arguments),
                raw_arguments=call.function.arguments or '',
                call_id=call.id,
            )
            for call in (message.tool_calls or [])
        ]
        return ToolCompletion(content=message.content or '', tool_calls=calls)

    async def health_check(self) -> dict[str, bool | str]:
        try:
            await self._client.models.retrieve(self.chat_model)
        except Exception as e:
            return {'healthy': False, 'error': str(e)}
        return {'healthy': True, 'chat_model': self.chat_model}

    async def close(self):
        await self._client.close()
