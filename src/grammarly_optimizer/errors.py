"""Domain exceptions for the optimizer.

Each exception carries a stable `error_code` so the HTTP layer can map it
without inspecting messages.
"""

from __future__ import annotations


class OptimizerError(Exception):
    """Base class for optimizer domain errors."""

    error_code = "optimizer_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class ConfigurationError(OptimizerError):
    """A backend was selected without the settings it needs."""

    error_code = "configuration_error"


class ProviderError(OptimizerError):
    """Browser automation failed (session, navigation or extraction)."""

    error_code = "provider_error"


class CollaboratorError(OptimizerError):
    """Rewrite, analysis or summary generation failed."""

    error_code = "collaborator_error"
