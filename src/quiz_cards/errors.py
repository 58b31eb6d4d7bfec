"""Error taxonomy shared by the config, service, session and storage layers."""

from __future__ import annotations

__all__ = [
    "QuizError",
    "ConfigurationError",
    "ServiceError",
    "EvaluationError",
    "ValidationError",
    "UnknownQuestion",
    "InvalidTransition",
    "EvaluationPending",
    "HistoryError",
]


class QuizError(RuntimeError):
    """Base class for quiz-cards failures."""


class ConfigurationError(QuizError):
    """Raised when required settings or service credentials are missing."""


class ServiceError(QuizError):
    """Raised when the question/evaluation service call fails.

    ``status`` carries the upstream HTTP status when one was reported and
    ``details`` the raw upstream message, if any.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.details = details

    def __str__(self) -> str:
        base = super().__str__()
        if self.details and self.details not in base:
            return f"{base}: {self.details}"
        return base


class EvaluationError(ServiceError):
    """Open-ended grading failed; the answer may be resubmitted."""

    retryable = True


class ValidationError(QuizError):
    """Generated or imported question data failed structural checks."""


class UnknownQuestion(QuizError):
    """An answer referenced a question id that is not part of the session."""

    def __init__(self, question_id: str) -> None:
        super().__init__(f"Unknown question id '{question_id}'.")
        self.question_id = question_id


class InvalidTransition(QuizError):
    """The requested operation is not allowed in the current state."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            f"Cannot {operation} while the quiz is in the '{state}' state."
        )
        self.operation = operation
        self.state = state


class EvaluationPending(QuizError):
    """An evaluation for the same question is still in flight."""


class HistoryError(QuizError):
    """Raised when history persistence fails."""
