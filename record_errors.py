"""Error taxonomy shared by the record store, resolver and scheduler."""

from __future__ import annotations


class RecordStoreError(Exception):
    """Base record store error."""


class BackendUnavailable(RecordStoreError):
    """Raised when the remote store cannot be reached or rejects a query."""


class RecordNotFound(RecordStoreError):
    """Raised when a specific lookup legitimately found nothing."""


class ResolutionFailed(BackendUnavailable):
    """Raised when interview resolution could not reach the store at all."""


class SchedulingValidationError(ValueError):
    """Raised when a scheduling request is missing required attributes."""
