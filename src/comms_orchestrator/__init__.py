"""
Comms Orchestrator

Normalizes telephony and SMS webhooks into canonical communications, batches
and routes them per project, and drives an LLM decision engine that keeps
project summaries current and proposes follow-up actions.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .pipeline import (
    BatchScheduler,
    CommunicationDispatcher,
    DispatcherResult,
    MultiProjectDisambiguator,
    ProjectUpdater,
    PromptRunner,
    ReminderSweep,
    RoleBasedClassifier,
    UpdateResult,
    WebhookNormalizer,
)
from .repository import CommsRepository
from .logging import (
    configure_logging,
    get_logger,
    logging_context,
    PipelineTimer,
)
from .errors import (
    CommsOrchestratorError,
    PipelineError,
    ParseError,
    ValidationError,
    ActionValidationError,
    OpenAIError,
    DatabaseError,
    PartialSuccessResult,
)

__all__ = [
    # Version
    '__version__',
    # Pipeline
    'WebhookNormalizer',
    'CommunicationDispatcher',
    'DispatcherResult',
    'BatchScheduler',
    'MultiProjectDisambiguator',
    'ProjectUpdater',
    'PromptRunner',
    'ReminderSweep',
    'RoleBasedClassifier',
    'UpdateResult',
    # Repository
    'CommsRepository',
    # Logging
    'configure_logging',
    'get_logger',
    'logging_context',
    'PipelineTimer',
    # Errors
    'CommsOrchestratorError',
    'PipelineError',
    'ParseError',
    'ValidationError',
    'ActionValidationError',
    'OpenAIError',
    'DatabaseError',
    'PartialSuccessResult',
]
