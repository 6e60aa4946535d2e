"""Custom exceptions for the application."""

from typing import Any, Dict, Optional


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.field = field
        if field:
            self.details["field"] = field


class NotFoundError(ApplicationError):
    """Raised when a requested resource is not found."""
    pass


class AuthenticationError(ApplicationError):
    """Raised when authentication fails."""
    pass


class AuthorizationError(ApplicationError):
    """Raised when authorization fails."""
    pass


class NotOrganizationMemberError(AuthorizationError):
    """Actor has no membership in the resolved organization."""
    pass


class MissingOrganizationRoleError(AuthorizationError):
    """Actor is a member but lacks the required organization role(s)."""
    pass


class ResourceNotLinkedError(AuthorizationError):
    """Shared resource has no access link for the organization."""
    pass


class InsufficientAccessLevelError(AuthorizationError):
    """Access link exists but grants a lower level than required."""
    pass


class ConflictError(ApplicationError):
    """Raised when there's a conflict with existing data."""
    pass


class IllegalStateTransitionError(ConflictError):
    """Requested lifecycle transition is not in the transition table."""
    pass


class SessionNotAcceptingResponsesError(ConflictError):
    """Session state does not allow submitting responses."""
    pass


class DuplicateSlugError(ConflictError):
    """Template slug is already taken."""
    pass


class AlreadyAssignedError(ConflictError):
    """An active assignment with the same tuple already exists."""
    pass
