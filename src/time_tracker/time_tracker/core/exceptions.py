class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when the request carries no verified identity."""


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""

    def __init__(self, message: str = "Access denied", *, cross_tenant: bool = False):
        super().__init__(message)
        self.cross_tenant = cross_tenant


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class ConflictError(DomainError):
    """Raised when an action collides with current state (running timer, leader, duplicate)."""


class InvalidStateError(DomainError):
    """Raised when an entity is not in a state that allows the action."""


class InternalError(DomainError):
    """Raised when a write fails for reasons the caller cannot fix."""
