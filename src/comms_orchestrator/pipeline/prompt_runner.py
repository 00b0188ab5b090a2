"""
Decision-engine invocation with a PromptRun audit trail.

Every call resolves its template (stored or default), renders it, records a
PENDING PromptRun, calls the model and then marks the run COMPLETED or
ERROR. Failures are persisted before being raised.
"""

from typing import Any

from ..clients.openai_client import OpenAIClient, ToolCompletion
from ..config import config
from ..errors import DatabaseError, wrap_openai_error
from ..logging import get_logger
from ..models.prompt_run import AIConfig, PromptRun, PromptRunStatus, WorkflowPromptType
from ..prompts.templates import DEFAULT_TEMPLATES, render_template
from ..repository import CommsRepository

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = ('openai',)


class PromptRunner:
    """Runs workflow prompts against the decision engine."""

    def __init__(self, openai_client: OpenAIClient, repository: CommsRepository):
        self.openai = openai_client
        self.repository = repository

    async def resolve_ai_config(self) -> AIConfig:
        """
        Latest stored provider/model, falling back to environment config.

        Resolved once per pipeline invocation and passed down explicitly.
        """
        try:
            stored = await self.repository.get_ai_config()
        except DatabaseError as e:
            logger.warning('prompt_runner.ai_config_unavailable', error=str(e))
            stored = None

        if stored is not None and stored.provider in SUPPORTED_PROVIDERS:
            return stored
        if stored is not None:
            logger.warning(
                'prompt_runner.provider_unsupported',
                provider=stored.provider,
                fallback_model=config.AI_MODEL,
            )
        return AIConfig(provider=config.AI_PROVIDER, model=config.AI_MODEL)

    async def _prepare(
        self,
        prompt_type: WorkflowPromptType,
        context: dict[str, Any],
        project_id: str | None,
        ai_config: AIConfig,
    ) -> tuple[PromptRun, str]:
        stored = await self.repository.get_workflow_prompt(prompt_type)
        template = stored.prompt_text if stored else DEFAULT_TEMPLATES[prompt_type]

        rendered, missing = render_template(template, context)
        if missing:
            logger.warning(
                'prompt_runner.unreplaced_variables',
                prompt_type=prompt_type.value,
                variables=missing,
            )

        run = PromptRun(
            project_id=project_id,
            workflow_prompt_id=stored.id if stored else None,
            prompt_type=prompt_type,
            prompt_input=rendered,
            ai_provider=ai_config.provider,
            ai_model=ai_config.model,
        )
        await self.repository.insert_prompt_run(run)
        return run, rendered

    async def _fail(self, run: PromptRun, exc: Exception) -> Exception:
        error = wrap_openai_error(exc, {'prompt_run_id': run.id})
        run.status = PromptRunStatus.ERROR
        run.error_message = str(error)
        await self.repository.fail_prompt_run(run.id, run.error_message)
        logger.error(
            'prompt_runner.failed',
            prompt_run_id=run.id,
            prompt_type=run.prompt_type.value if run.prompt_type else None,
            error=str(exc),
        )
        return error

    async def run_text(
        self,
        prompt_type: WorkflowPromptType,
        context: dict[str, Any],
        ai_config: AIConfig,
        project_id: str | None = None,
    ) -> tuple[PromptRun, str]:
        """
        Run a prompt expecting a plain-text reply.

        Returns:
            The completed PromptRun and the model's text

        Raises:
            OpenAIError: The model call failed (run stored as ERROR)
        """
        run, rendered = await self._prepare(prompt_type, context, project_id, ai_config)
        try:
            output = await self.openai.chat_completion(
                messages=[{'role': 'user', 'content': rendered}],
                model=ai_config.model,
            )
        except Exception as e:
            raise await self._fail(run, e) from e

        await self.repository.complete_prompt_run(run.id, output)
        run.status = PromptRunStatus.COMPLETED
        run.prompt_output = output
        return run, output

    async def run_with_tools(
        self,
        prompt_type: WorkflowPromptType,
        context: dict[str, Any],
        tools: list[dict[str, Any]],
        ai_config: AIConfig,
        project_id: str | None = None,
    ) -> tuple[PromptRun, ToolCompletion]:
        """Run a prompt offering function tools; tool calls are stored on the run."""
        run, rendered = await self._prepare(prompt_type, context, project_id, ai_config)
        try:
            completion = await self.openai.chat_completion_with_tools(
                messages=[{'role': 'user', 'content': rendered}],
                tools=tools,
                model=ai_config.model,
            )
        except Exception as e:
            raise await self._fail(run, e) from e

        calls = [{'name': c.name, 'arguments': c.arguments} for c in completion.tool_calls]
        await self.repository.complete_prompt_run(run.id, completion.content, calls)
        run.status = PromptRunStatus.COMPLETED
        run.prompt_output = completion.content
        run.tool_calls = calls
        return run, completion
