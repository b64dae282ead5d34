"""Core custom exceptions for the application."""

from typing import Any


class EduGenError(Exception):
    """Base exception for generation and persistence errors."""


class ValidationFailed(EduGenError):
    """Raised when a request fails schema validation, before any side effect."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class AuthenticationRequired(EduGenError):
    """Raised when no authenticated principal is available for the request."""


class ProviderError(EduGenError):
    """Wraps any generation-call fault (transport, model, malformed response)."""


class PersistenceError(EduGenError):
    """Raised when a write to the record store or object storage fails."""


class ConfigurationError(EduGenError):
    """Exception for configuration-related errors (e.g., missing templates, invalid settings)."""


def as_provider_error(exc: Exception) -> ProviderError:
    """Return ``exc`` as a ProviderError, chaining the original as its cause."""
    if isinstance(exc, ProviderError):
        return exc
    wrapped = ProviderError(str(exc) or exc.__class__.__name__)
    wrapped.__cause__ = exc
    return wrapped
