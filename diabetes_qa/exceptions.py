"""
Exception hierarchy for the diabetes assistant.

Every error carries a human-readable message, optional debugging context and
the HTTP status it maps to at the request boundary (400 for caller faults,
500 for provider and internal failures).
"""

from typing import Any


class AssistantError(Exception):
    """Base exception for all assistant errors."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(AssistantError):
    """Raised when required configuration is missing. Fatal at startup."""


class ExtractionError(AssistantError):
    """Raised when the source PDF cannot be read or yields no text."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, details)


class EmbeddingError(AssistantError):
    """Raised when the embedding provider call fails or times out."""


class PersistenceError(AssistantError):
    """Raised when the index artifact cannot be saved or loaded."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        location: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize persistence error.

        Args:
            message: Error message
            operation: Operation that failed (save, load)
            location: Artifact location involved
            details: Additional context
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        if location:
            details["location"] = location
        super().__init__(message, details)


class GenerationError(AssistantError):
    """Raised when the generation provider fails or returns unusable output."""


class NotReadyError(AssistantError):
    """Raised when a query arrives before the index is ready."""

    status_code = 400

    def __init__(self, message: str = "PDF not loaded yet.", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)


class ValidationError(AssistantError):
    """Raised when a request or upload fails validation."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)
