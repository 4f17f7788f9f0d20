"""
Error taxonomy for the mutation engine.

Local precondition failures (NotFoundError, BusyError) are raised before
anything is published. Remote failures (ValidationError, NetworkError,
ConflictError) always trigger a rollback before they reach the caller.
"""

from typing import Any, Optional


class TalentFlowError(Exception):
    """Base class for every error raised by the core."""

    retryable: bool = False

    def __init__(self, message: str, entity_id: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id


class NotFoundError(TalentFlowError):
    """The target entity does not exist. Never retried automatically."""


class BusyError(TalentFlowError):
    """A mutation is already in flight for this entity id."""

    retryable = True

    def __init__(self, entity_id: Any):
        super().__init__(
            f"A change to entity {entity_id} is still being saved. "
            f"Wait for it to finish and try again.",
            entity_id=entity_id,
        )


class RemoteError(TalentFlowError):
    """A failure reported by (or while reaching) the remote authority."""


class ValidationError(RemoteError):
    """A domain rule rejected the mutation. Surfaced verbatim to the user."""


class NetworkError(RemoteError):
    """The remote authority was unreachable or timed out."""

    retryable = True


class ConflictError(RemoteError):
    """
    The authority's view of the entity diverged from ours.

    Callers should refetch the entity before retrying.
    """

    refetch_required = True
