"""
Webhook normalizer.

Turns a stored RawWebhook into a canonical Communication:

    ingested -> parse -> normalized (processed=true)
                      -> failed     (processed=true, processing_error set)

The Communication is durable before the webhook is marked processed, and
dispatch runs only afterwards. A dispatch failure never removes the
Communication.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import (
    AlreadyProcessedError,
    CommsOrchestratorError,
    DatabaseError,
    NotFoundError,
    ParseError,
)
from ..logging import get_logger, logging_context
from ..models.webhook import RawWebhook
from ..parsers import get_parser
from ..repository import CommsRepository
from .dispatcher import CommunicationDispatcher, DispatcherResult

logger = get_logger(__name__)


@dataclass
class NormalizationResult:
    webhook_id: str
    communication_id: str | None = None
    parse_error: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.communication_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            'success': self.success,
            'webhook_id': self.webhook_id,
            'communication_id': self.communication_id,
            'parse_error': self.parse_error,
            'error': self.error,
        }


class WebhookNormalizer:
    """
    Parses stored webhooks and hands the result to the dispatcher.

    Usage:
        normalizer = WebhookNormalizer(repository, dispatcher)
        result = await normalizer.normalize(webhook_id, 'justcall')
        await normalizer.dispatch_safely(result.communication_id)
    """

    def __init__(self, repository: CommsRepository, dispatcher: CommunicationDispatcher):
        self.repository = repository
        self.dispatcher = dispatcher

    async def _mark_failed(self, webhook_id: str, error: str) -> None:
        try:
            await self.repository.mark_webhook_processed(webhook_id, error)
        except DatabaseError as e:
            logger.error('normalizer.mark_failed_error', webhook_id=webhook_id, error=str(e))

    async def normalize(self, webhook_id: str, service: str) -> NormalizationResult:
        """
        Parse and persist one stored webhook.

        Raises:
            NotFoundError: No webhook with this id
            AlreadyProcessedError: The webhook was normalized before
            ParseError: Unknown service or unrecognized event (webhook marked
                processed with the error)
            DatabaseError: The Communication could not be stored
        """
        with logging_context(trace_id=webhook_id):
            webhook = await self.repository.get_raw_webhook(webhook_id)
            if webhook is None:
                raise NotFoundError(f'Webhook not found: {webhook_id}', {'webhook_id': webhook_id})
            if webhook.processed:
                raise AlreadyProcessedError(
                    f'Webhook already processed: {webhook_id}',
                    {'webhook_id': webhook_id, 'processing_error': webhook.processing_error},
                )

            try:
                parser = get_parser(service)
                communication = parser.parse(webhook.raw_payload, raw_webhook_id=webhook_id)
            except ParseError as e:
                logger.warning('normalizer.parse_failed', service=service, error=str(e))
                await self._mark_failed(webhook_id, str(e))
                raise

            try:
                await self.repository.insert_communication(communication)
            except DatabaseError as e:
                logger.error('normalizer.store_failed', error=str(e))
                await self._mark_failed(webhook_id, str(e))
                raise

            if not await self.repository.mark_webhook_processed(webhook_id, communication.parse_error):
                raise AlreadyProcessedError(
                    f'Webhook processed concurrently: {webhook_id}',
                    {'webhook_id': webhook_id, 'communication_id': communication.id},
                )

            logger.info(
                'normalizer.parsed',
                service=service,
                communication_id=communication.id,
                type=communication.type.value,
                subtype=communication.subtype.value,
                degraded=communication.parse_error is not None,
            )
            return NormalizationResult(
                webhook_id=webhook_id,
                communication_id=communication.id,
                parse_error=communication.parse_error,
            )

    async def ingest(
        self,
        service: str,
        payload: dict[str, Any],
        signature: str | None = None,
    ) -> NormalizationResult:
        """
        Store a provider payload and normalize it in one step.

        Parse failures are recorded on the webhook and returned, not raised;
        only storage failures propagate.
        """
        webhook = RawWebhook(service=service, raw_payload=payload, signature=signature)
        await self.repository.insert_raw_webhook(webhook)
        logger.info('normalizer.ingested', service=service, webhook_id=webhook.id)
        try:
            return await self.normalize(webhook.id, service)
        except ParseError as e:
            return NormalizationResult(webhook_id=webhook.id, error=str(e))

    async def dispatch_safely(self, communication_id: str) -> DispatcherResult | None:
        """Dispatch without raising; used as a fire-and-forget background task."""
        try:
            return await self.dispatcher.dispatch(communication_id)
        except CommsOrchestratorError as e:
            logger.error(
                'normalizer.dispatch_failed',
                communication_id=communication_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        except Exception as e:
            logger.exception(
                'normalizer.dispatch_crashed',
                communication_id=communication_id,
                error=str(e),
            )
        return None

    async def process(self, webhook_id: str, service: str) -> NormalizationResult:
        """Normalize, then await dispatch of the resulting Communication."""
        result = await self.normalize(webhook_id, service)
        await self.dispatch_safely(result.communication_id)
        return result
