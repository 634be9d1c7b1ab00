"""
StackQA Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions, one per error category.
How:   Each exception carries a user-safe message and an optional context dict
       (logged, never returned verbatim unless the handler opts in). Global
       handlers registered in main.py translate them into JSON responses.
Who:   Raised by services, dependencies and middleware.

Exception Hierarchy:
    StackQAError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized (sign in, then retry)
    ├── ForbiddenError           → 403 Forbidden (signed in, not allowed)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate email)
    ├── RateLimitExceededError   → 429 Too Many Requests
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class StackQAError(Exception):
    """
    Base exception for all StackQA application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, not part of the message)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StackQAError):
    """
    Client input broke a business rule the schema layer cannot express.

    Examples: description empty after sanitizing, more than five tags after
    de-duplication, an answer with only markup in it.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(StackQAError):
    """
    The caller is anonymous (or presented bad credentials) for an operation
    that needs a signed-in user.

    Raised before any state is touched: a rejected vote leaves both the
    viewer's vote intent and the shared counter as they were.
    """

    def __init__(
        self,
        message: str = "You must be logged in to do that.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(StackQAError):
    """
    The caller is signed in but not permitted, e.g. accepting an answer on
    somebody else's question. Nothing is mutated.
    """

    def __init__(
        self,
        message: str = "You are not allowed to perform this action.",
        action: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if action:
            ctx["action"] = action
        super().__init__(message=message, context=ctx)
        self.action = action


class NotFoundError(StackQAError):
    """
    A requested question, answer or user does not exist.

    SQLAlchemy returns None for missing rows; services convert that into this
    exception so the route layer stays free of existence checks.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(StackQAError):
    """Creating the resource would violate a uniqueness rule (registered email)."""

    def __init__(
        self,
        message: str = "The resource already exists.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(StackQAError):
    """
    A query, insert or update against the store failed unexpectedly.

    The message returned to the client is always generic; the context (error
    type, identifiers) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(StackQAError):
    """
    Client exceeded its request budget within the sliding window.

    `retry_after` is echoed in the Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
