"""knowledge_lookup backing unit, delegating to the external search service."""

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from comms_orchestrator.logging import get_logger

from ..context import SecurityContext
from ..errors import ToolExecutionError

logger = get_logger(__name__)


class KnowledgeLookupArgs(BaseModel):
    model_config = ConfigDict(extra='forbid')

    query: str = Field(..., min_length=1, description='The search query to find relevant information')
    limit: int = Field(default=5, ge=1, le=50, description='Maximum number of results to return')


async def knowledge_lookup(
    args: KnowledgeLookupArgs,
    context: SecurityContext,
    *,
    search_url: str | None,
    timeout: float = 30.0,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    if not search_url:
        raise ToolExecutionError('Knowledge search is not configured')

    body = {'query': args.query, 'limit': args.limit, 'company_id': context.company_id}
    try:
        if http_client is not None:
            response = await http_client.post(search_url, json=body)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(search_url, json=body)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning('gateway.knowledge_lookup_failed', error=str(e))
        raise ToolExecutionError(f'Knowledge search failed: {e}') from e

    documents = payload.get('results', payload) if isinstance(payload, dict) else payload
    results = [
        {
            'id': d.get('id'),
            'title': d.get('title'),
            'content': d.get('content'),
            'url': d.get('url'),
            'similarity': d.get('similarity'),
        }
        for d in documents or []
        if isinstance(d, dict)
    ]
    if not results:
        return {
            'status': 'success',
            'results': [],
            'message': 'No relevant documents found in the knowledge base.',
        }
    return {'status': 'success', 'results': results}
