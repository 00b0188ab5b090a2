"""HTTP client for handing approved message actions to the outbound send service."""

from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import config
from ..logging import get_logger
from ..models.action_record import ActionRecord

logger = get_logger(__name__)


@dataclass
class SendResult:
    """Result of posting a message action to the send service."""

    success: bool
    status_code: int | None = None
    error: str | None = None
    response: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            'success': self.success,
            'status_code': self.status_code,
            'error': self.error,
            'response': self.response,
        }


class MessageSender:
    """
    Posts message actions to the outbound communication service.

    No retries: a failed send marks the action failed and an operator
    re-drives it.
    """

    def __init__(
        self,
        send_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.send_url = send_url if send_url is not None else config.SEND_COMMUNICATION_URL
        self.timeout = timeout or config.HTTP_TIMEOUT_SECONDS
        self._http_client = http_client

    async def send(self, record: ActionRecord) -> SendResult:
        if not self.send_url:
            return SendResult(success=False, error='SEND_COMMUNICATION_URL is not configured')

        body = {
            'actionId': record.id,
            'projectId': record.project_id,
            'recipientId': record.recipient_id,
            'senderId': record.sender_id,
            'messageContent': record.message,
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.send_url, json=body)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.send_url, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning('executor.send_rejected', action_id=record.id, status_code=status)
            return SendResult(success=False, status_code=status, error=f'HTTP {status}')
        except httpx.HTTPError as e:
            logger.warning('executor.send_failed', action_id=record.id, error=str(e))
            return SendResult(success=False, error=f'{type(e).__name__}: {e}')

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        logger.info('executor.sent', action_id=record.id, status_code=response.status_code)
        return SendResult(
            success=True,
            status_code=response.status_code,
            response=payload if isinstance(payload, dict) else {'data': payload},
        )
