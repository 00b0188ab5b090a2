"""
Pipeline components for normalization, routing, batching, disambiguation and updates.
"""

from .batcher import BatchScheduler
from .disambiguator import DisambiguationResult, MultiProjectDisambiguator
from .dispatcher import (
    ROUTE_BATCH,
    ROUTE_DISAMBIGUATE,
    ROUTE_IMMEDIATE,
    ROUTE_UNMATCHED,
    CommunicationDispatcher,
    DispatcherResult,
)
from .formatter import format_batch_transcript, format_communication
from .normalizer import NormalizationResult, WebhookNormalizer
from .project_finder import (
    MultiProjectClassifier,
    ProjectFinder,
    RoleBasedClassifier,
    normalize_phone,
    phone_suffix,
)
from .prompt_runner import PromptRunner
from .reminders import ReminderSweep, activation_criteria
from .updater import ProjectUpdater, ReminderContext, UpdateResult

__all__ = [
    # Ingestion
    'WebhookNormalizer',
    'NormalizationResult',
    # Routing
    'CommunicationDispatcher',
    'DispatcherResult',
    'ROUTE_BATCH',
    'ROUTE_DISAMBIGUATE',
    'ROUTE_IMMEDIATE',
    'ROUTE_UNMATCHED',
    'ProjectFinder',
    'MultiProjectClassifier',
    'RoleBasedClassifier',
    'normalize_phone',
    'phone_suffix',
    # Batching
    'BatchScheduler',
    # Updates
    'PromptRunner',
    'ProjectUpdater',
    'ReminderContext',
    'UpdateResult',
    'MultiProjectDisambiguator',
    'DisambiguationResult',
    'ReminderSweep',
    'activation_criteria',
    # Formatting
    'format_communication',
    'format_batch_transcript',
]
