"""FastAPI application for the multi-tenant tool gateway."""

from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from comms_orchestrator.actions import ActionRecordService, MessageSender
from comms_orchestrator.clients.postgres_client import PostgresClient
from comms_orchestrator.repository import CommsRepository

from .auth import AccessKeyStore, ApiKeyAuthenticator
from .config import get_settings
from .errors import AuthenticationError, GatewayError
from .jsonrpc import INTERNAL_ERROR, handle_rpc, rpc_error
from .service import ToolGateway
from .tools import build_registry

logger = structlog.get_logger(__name__)


def build_gateway(postgres: PostgresClient) -> ToolGateway:
    settings = get_settings()
    repository = CommsRepository(postgres)
    registry = build_registry(
        repository,
        ActionRecordService(repository, MessageSender()),
        knowledge_search_url=settings.KNOWLEDGE_SEARCH_URL,
        http_timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    store = AccessKeyStore(postgres, settings.TENANT_COLUMN_VARIANTS)
    return ToolGateway(registry, ApiKeyAuthenticator(store))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the Postgres client and gateway at startup."""
    settings = get_settings()

    logger.info("lifespan.startup")
    postgres = PostgresClient(settings.DATABASE_URL)
    await postgres.connect()

    app.state.postgres = postgres
    app.state.gateway = build_gateway(postgres)

    logger.info("lifespan.ready", tools=app.state.gateway.registry.names)
    yield

    logger.info("lifespan.shutdown")
    await postgres.close()


app = FastAPI(
    title="tool-gateway",
    description="Tenant-scoped tool catalog and execution over REST and JSON-RPC",
    lifespan=lifespan,
)


def _gateway_error(e: GatewayError, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=e.status_code, content={"ok": False, **e.to_dict(), **extra})


@app.get("/health")
async def health():
    settings = get_settings()
    return {"status": "ok", "service": settings.SERVER_NAME, "version": settings.SERVER_VERSION}


@app.get("/tools")
async def list_tools(request: Request, authorization: str | None = Header(default=None)):
    """Catalog of tools the caller's key enables."""
    gateway: ToolGateway = request.app.state.gateway
    try:
        auth = await gateway.authenticate(authorization)
    except GatewayError as e:
        return _gateway_error(e)
    tools = gateway.catalog(auth)
    return {"ok": True, "tools": tools, "count": len(tools)}


@app.post("/execute")
async def execute_tool(request: Request, authorization: str | None = Header(default=None)):
    """Validate and run one tool for the authenticated tenant."""
    gateway: ToolGateway = request.app.state.gateway
    try:
        auth = await gateway.authenticate(authorization)
    except GatewayError as e:
        return _gateway_error(e)
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"ok": False, "error": "Body must be JSON"})
    if not isinstance(body, dict):
        return JSONResponse(status_code=400, content={"ok": False, "error": "Body must be a JSON object"})

    status_code, envelope = await gateway.execute(auth, body)
    return JSONResponse(status_code=status_code, content=envelope)


@app.post("/")
async def json_rpc(request: Request, authorization: str | None = Header(default=None)):
    """JSON-RPC adapter: initialize, tools/list, tools/call."""
    settings = get_settings()
    gateway: ToolGateway = request.app.state.gateway
    try:
        message = await request.json()
    except ValueError:
        return rpc_error(None, INTERNAL_ERROR, "Invalid JSON")
    try:
        return await handle_rpc(
            gateway,
            message,
            authorization,
            settings.SERVER_NAME,
            settings.SERVER_VERSION,
        )
    except AuthenticationError as e:
        return _gateway_error(e)
    except Exception as e:
        logger.exception("gateway.rpc_failed", error=str(e))
        return rpc_error(None, INTERNAL_ERROR, str(e) or "Internal error")
