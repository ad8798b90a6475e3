# callpilot/errors.py
from typing import List

from callpilot.schemas.call import ValidationIssue


class CallPilotError(Exception):
    """Base class for errors the API maps to a user-visible message."""


class CallValidationError(CallPilotError):
    """
    Input failed field-level validation.

    `issues` lists every violated field, so the caller can show them all at
    once instead of one per round-trip.
    """

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        fields = ", ".join(issue.field for issue in issues)
        super().__init__(f"Validation error: {fields}")


class ConfigurationError(CallPilotError):
    """Provider credentials are missing. Not retried automatically."""


class ProviderError(CallPilotError):
    """The voice or AI provider failed (network, auth, rejected request...)."""


class StorageError(CallPilotError):
    """Reading or writing persisted history failed."""


class InvalidTransitionError(CallPilotError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move call from '{current}' to '{target}'")
