"""
Exception hierarchy for the communications orchestrator.

Every error carries a message plus a context dict that ends up in the log
event. Library exceptions (openai, SQLAlchemy) are translated at the client
boundary with ``wrap_openai_error`` and ``wrap_database_error``.
"""

from dataclasses import dataclass, field
from typing import Any


class CommsOrchestratorError(Exception):
    """Base exception for all communications orchestrator errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(CommsOrchestratorError):
    """Base class for client-related errors."""

    pass


class OpenAIError(ClientError):
    """Error from OpenAI API calls."""

    pass


class OpenAIRateLimitError(OpenAIError):
    """Rate limit exceeded on OpenAI API."""

    pass


class OpenAIModelError(OpenAIError):
    """Model refused request or returned invalid response."""

    pass


class DatabaseError(ClientError):
    """Error from relational store operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to the database."""

    pass


class DatabaseQueryError(DatabaseError):
    """Error executing a SQL statement."""

    pass


class SchemaMismatchError(DatabaseError):
    """Relation or column missing; the schema differs from what was queried."""

    pass


# =============================================================================
# Parse Errors
# =============================================================================


class ParseError(CommsOrchestratorError):
    """A webhook payload could not be decoded."""

    pass


class UnknownEventError(ParseError):
    """Payload belongs to no recognised event category."""

    pass


class UnsupportedServiceError(ParseError):
    """No parser is registered for the provider."""

    pass


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(CommsOrchestratorError):
    """Base class for pipeline-related errors."""

    pass


class ValidationError(PipelineError):
    """Input validation failed."""

    pass


class ActionValidationError(ValidationError):
    """Action record fields failed validation; no row was written."""

    def __init__(
        self,
        message: str,
        field_errors: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.field_errors = field_errors or {}


class SummaryUpdateError(PipelineError):
    """Stage one (project summary update) failed."""

    pass


class ActionDetectionError(PipelineError):
    """Stage two (action detection) failed."""

    pass


class DisambiguationError(PipelineError):
    """Multi-project disambiguation failed."""

    pass


class BatchError(PipelineError):
    """Error while processing a debounce batch."""

    pass


class NotFoundError(PipelineError):
    """A referenced record does not exist."""

    pass


class InvalidTransitionError(PipelineError):
    """Requested state transition is not allowed from the current state."""

    pass


class AlreadyProcessedError(PipelineError):
    """The raw webhook has already been normalized."""

    pass


# =============================================================================
# Sweep Results
# =============================================================================


@dataclass
class ItemResult:
    item_id: str | None
    success: bool
    error: CommsOrchestratorError | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class PartialSuccessResult:
    """
    Per-item outcome of a batch or reminder sweep.

    One failing batch or project never aborts the sweep; it is recorded here
    and the sweep moves on. ``skipped`` holds items another worker claimed
    first or that a filter excluded.
    """

    succeeded: list[ItemResult] = field(default_factory=list)
    failed: list[ItemResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def add_success(self, item_id: str | None = None, data: dict[str, Any] | None = None) -> None:
        self.succeeded.append(ItemResult(item_id, True, data=data or {}))

    def add_failure(
        self,
        error: CommsOrchestratorError,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.failed.append(ItemResult(item_id, False, error=error, data=data or {}))

    def add_skipped(self, item_id: str) -> None:
        self.skipped.append(item_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'skipped_count': len(self.skipped),
            'total_count': self.total_count,
            'all_succeeded': self.all_succeeded,
            'succeeded_ids': [r.item_id for r in self.succeeded if r.item_id],
            'failed_ids': [r.item_id for r in self.failed if r.item_id],
            'skipped_ids': list(self.skipped),
            'errors': [{'item_id': r.item_id, 'error': str(r.error)} for r in self.failed if r.error],
        }


# =============================================================================
# Library Exception Translation
# =============================================================================

# (markers that must all appear, any-of alternatives, error class, message prefix);
# first matching rule wins, the final entry matches everything
_OPENAI_RULES: list[tuple[tuple[str, ...], tuple[str, ...], type[OpenAIError], str]] = [
    ((), ('rate limit', 'rate_limit'), OpenAIRateLimitError, 'OpenAI rate limit exceeded'),
    ((), ('content policy', 'refused'), OpenAIModelError, 'OpenAI model refused request'),
    ((), (), OpenAIError, 'OpenAI API error'),
]

_DATABASE_RULES: list[tuple[tuple[str, ...], tuple[str, ...], type[DatabaseError], str]] = [
    (('does not exist',), ('relation', 'column'), SchemaMismatchError, 'Database schema mismatch'),
    ((), ('connection', 'connect'), DatabaseConnectionError, 'Database connection failed'),
    ((), (), DatabaseQueryError, 'Database query error'),
]


def _translate(exc: Exception, context: dict[str, Any] | None, rules):
    text = str(exc).lower()
    ctx = dict(context or {})
    ctx.update(original_error=str(exc), error_type=type(exc).__name__)
    required, any_of, error_cls, prefix = next(
        rule
        for rule in rules
        if all(m in text for m in rule[0]) and (not rule[1] or any(m in text for m in rule[1]))
    )
    return error_cls(f'{prefix}: {exc}', context=ctx)


def wrap_openai_error(exc: Exception, context: dict[str, Any] | None = None) -> OpenAIError:
    """Translate an openai SDK exception (rate limit, refusal, other)."""
    return _translate(exc, context, _OPENAI_RULES)


def wrap_database_error(exc: Exception, context: dict[str, Any] | None = None) -> DatabaseError:
    """
    Translate a SQLAlchemy/asyncpg exception.

    A missing relation or column becomes SchemaMismatchError, which the tool
    gateway's key lookup treats as "try the next tenant column" rather than a
    fault.
    """
    return _translate(exc, context, _DATABASE_RULES)
