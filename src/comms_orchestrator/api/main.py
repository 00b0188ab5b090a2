"""FastAPI application for the comms ingress service."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from comms_orchestrator.actions import ActionRecordService, MessageSender
from comms_orchestrator.clients.openai_client import OpenAIClient
from comms_orchestrator.clients.postgres_client import PostgresClient
from comms_orchestrator.pipeline import (
    BatchScheduler,
    CommunicationDispatcher,
    MultiProjectDisambiguator,
    ProjectUpdater,
    PromptRunner,
    ReminderSweep,
    RoleBasedClassifier,
    WebhookNormalizer,
)
from comms_orchestrator.repository import CommsRepository

from .config import get_settings
from .routes.actions import router as actions_router
from .routes.health import router as health_router
from .routes.sweeps import router as sweeps_router
from .routes.webhooks import router as webhooks_router

logger = structlog.get_logger(__name__)


def build_services(app: FastAPI, postgres: PostgresClient, openai: OpenAIClient) -> None:
    """Wire repository, pipeline components and sweeps onto app.state."""
    repository = CommsRepository(postgres)
    prompt_runner = PromptRunner(openai, repository)
    actions = ActionRecordService(repository, MessageSender())
    updater = ProjectUpdater(prompt_runner, repository, actions)
    disambiguator = MultiProjectDisambiguator(prompt_runner, repository, updater)
    scheduler = BatchScheduler(repository, updater, prompt_runner)
    dispatcher = CommunicationDispatcher(
        repository,
        prompt_runner,
        updater,
        disambiguator,
        scheduler,
        RoleBasedClassifier(repository),
    )

    app.state.repository = repository
    app.state.actions = actions
    app.state.scheduler = scheduler
    app.state.reminders = ReminderSweep(repository, updater, prompt_runner)
    app.state.normalizer = WebhookNormalizer(repository, dispatcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize persistent clients at startup, clean up at shutdown."""
    settings = get_settings()

    logger.info("lifespan.startup")

    postgres = PostgresClient(settings.DATABASE_URL)
    await postgres.connect()
    if not await postgres.verify_connectivity():
        logger.warning("lifespan.postgres_connectivity_failed")

    openai = OpenAIClient(api_key=settings.OPENAI_API_KEY)

    app.state.postgres = postgres
    app.state.openai = openai
    build_services(app, postgres, openai)

    logger.info("lifespan.ready")
    yield

    # Shutdown
    logger.info("lifespan.shutdown")
    await openai.close()
    await postgres.close()


app = FastAPI(
    title="comms-orchestrator",
    description="Telephony/SMS webhook ingestion, batching and AI-driven project updates",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(sweeps_router)
app.include_router(actions_router)
