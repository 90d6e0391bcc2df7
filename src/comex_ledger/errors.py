"""Exception hierarchy shared by the store client and the domain services."""

from typing import Any


class ComexError(Exception):
    """Base exception for COMEX Ledger errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class ValidationError(ComexError):
    """Input rejected before (or instead of) reaching the store."""

    pass


class InvalidTransitionError(ValidationError):
    """Process status change not allowed from the current status."""

    def __init__(self, process_id: str, current: str, target: str):
        super().__init__(
            f"Cannot move process {process_id} from '{current}' to '{target}'",
            details={"process_id": process_id, "current": current, "target": target},
        )
        self.process_id = process_id
        self.current = current
        self.target = target


class NotFoundError(ComexError):
    """Entity deleted or never existed."""

    pass


class ConflictError(ComexError):
    """Uniqueness violation reported by the store."""

    pass


class StoreError(ComexError):
    """Any other entity store failure."""

    pass


class AuthenticationError(StoreError):
    """Store rejected the API key."""

    pass


class RateLimitError(StoreError):
    """Rate limit exceeded."""

    pass
