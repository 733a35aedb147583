"""Domain exceptions raised by the passport stores and resolution engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class PassportError(Exception):
    """Base exception for all passport operations."""

    code = "passport_error"


class NotFoundError(PassportError):
    """A referenced client, mapping or override does not exist.

    Attributes:
        entity: kind of record that was looked up
        key: identifier used for the lookup
    """

    code = "not_found"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key!r} not found")


class DuplicateError(PassportError):
    """A uniqueness constraint would be violated by a create operation."""

    code = "duplicate"

    def __init__(self, entity: str, key: Any, message: Optional[str] = None):
        self.entity = entity
        self.key = key
        super().__init__(message or f"{entity} {key!r} already exists")


class DuplicateClientError(DuplicateError):
    """A client with the same public ``client_id`` already exists."""

    def __init__(self, client_id: str):
        super().__init__("client", client_id)


class ValidationError(PassportError):
    """Input rejected before any storage write (unknown role, blank field)."""

    code = "validation_error"

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {"field": self.field} if self.field else {}


class CascadeFailure(PassportError):
    """Deleting a client could not remove its dependent rows.

    The surrounding transaction is rolled back, so the operation can be
    retried as a whole.
    """

    code = "cascade_failure"
    retriable = True

    def __init__(self, client_id: str, message: Optional[str] = None):
        self.client_id = client_id
        super().__init__(
            message or f"Failed to remove rules for client {client_id!r}; retry the delete"
        )


class SecondarySystemUnavailable(PassportError):
    """The secondary identity system is absent for this deployment or call.

    Raised by a bridge to signal capability absence. Resolution skips the
    entity tier instead of failing.
    """

    code = "secondary_unavailable"


__all__ = [
    "PassportError",
    "NotFoundError",
    "DuplicateError",
    "DuplicateClientError",
    "ValidationError",
    "CascadeFailure",
    "SecondarySystemUnavailable",
]
