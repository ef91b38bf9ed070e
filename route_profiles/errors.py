"""
Route Profiles - Errors.

============================================================
EXCEPTION HIERARCHY
============================================================
RouteEngineError (base)
├── InvalidArgument    malformed input, rejected before any mutation
├── NotFound           referenced profile/route does not exist
├── NothingToFork      fork requested against an empty resolved view
└── StoreUnavailable   backing store failed, nothing committed (retryable)

============================================================
PROPAGATION
============================================================
Mutations surface every error unchanged. Resolution never
raises NotFound: a dangling profile reference resolves to an
empty list.

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RouteEngineError(Exception):
    """
    Base exception for all route engine errors.

    All exceptions carry:
    - context: for debugging
    - retryable: whether re-issuing the same call may succeed
    - timestamp: when the error occurred
    """

    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class InvalidArgument(RouteEngineError):
    """Malformed input."""

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if argument:
            context["argument"] = argument
        if value is not None:
            context["value"] = str(value)[:100]

        super().__init__(message, context=context, **kwargs)
        self.argument = argument


class NotFound(RouteEngineError):
    """Referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str, **kwargs):
        context = kwargs.pop("context", {})
        context.update({"entity": entity, "entity_id": entity_id})
        super().__init__(f"{entity} not found: {entity_id}", context=context, **kwargs)
        self.entity = entity
        self.entity_id = entity_id


class NothingToFork(RouteEngineError):
    """The consumer's resolved view is empty, no profile was created."""

    def __init__(self, consumer_id: str, source_profile_id: Optional[str], **kwargs):
        super().__init__(
            f"Nothing to fork for consumer {consumer_id} from profile {source_profile_id}",
            context={"consumer_id": consumer_id, "source_profile_id": source_profile_id},
            **kwargs,
        )
        self.consumer_id = consumer_id
        self.source_profile_id = source_profile_id


class StoreUnavailable(RouteEngineError):
    """The backing store failed; no partial state was committed."""

    default_retryable = True

    def __init__(self, operation: str, **kwargs):
        super().__init__(
            f"Backing store unavailable during {operation}",
            **kwargs,
        )
        self.operation = operation
        self.context.setdefault("operation", operation)
