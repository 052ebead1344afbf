"""
Grassroots Hub Backend — Custom Exception Hierarchy
=====================================================

What:  Application-specific exceptions for the error scenarios of the API.
Why:   Targeted handling with the right HTTP status and a message that is safe
       to show, without leaking SQL or stack traces to the client.
How:   Each exception carries a message and an optional context dict.
       Global handlers (registered in main.py) turn them into JSON responses.
Who:   Raised by ranking, repositories, services and auth; caught by handlers.

Exception Hierarchy:
    GrassrootsError (base)
    ├── ValidationError              → 400 Bad Request
    │   └── InvalidRankError         → 400 Bad Request (target rank out of range)
    ├── AuthenticationError          → 401 Unauthorized
    ├── PermissionDeniedError        → 403 Forbidden
    ├── NotFoundError                → 404 Not Found
    ├── ConflictError                → 409 Conflict
    │   └── ConcurrencyConflictError → 409 Conflict (racing mutation, retryable)
    ├── RateLimitExceededError       → 429 Too Many Requests
    └── DatabaseError                → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class GrassrootsError(Exception):
    """
    Base exception for all Grassroots Hub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where a handler opts in)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(GrassrootsError):
    """
    Raised when client input fails a business rule.

    HTTP:    400 Bad Request

    Schema-level problems (wrong types, missing fields) are still reported by
    FastAPI as 422; this covers rules only the service can check, such as an
    update request that carries no fields.
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


class InvalidRankError(ValidationError):
    """
    Raised when a move targets a rank outside [1, n] for the current list size.

    Never clamped: the client is told the valid range and nothing is written.
    """

    def __init__(
        self,
        target_rank: Any = None,
        size: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        if size:
            message = f"Ranking {target_rank} is out of range. Valid positions are 1 to {size}."
        else:
            message = f"Ranking {target_rank} is out of range. The list is empty."
        ctx = context or {}
        ctx.update({"target_rank": target_rank, "min_rank": 1, "max_rank": size})
        super().__init__(message=message, field="new_ranking", context=ctx)
        self.target_rank = target_rank
        self.size = size


class AuthenticationError(GrassrootsError):
    """
    Raised when a request carries no bearer token, or one that fails verification.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(GrassrootsError):
    """
    Raised when an authenticated user lacks the role an endpoint requires.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(GrassrootsError):
    """
    Raised when a requested resource does not exist in the caller's scope.

    HTTP:    404 Not Found

    Records owned by another coach are reported the same way as missing
    records, so ids of other coaches' lists cannot be probed.
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


class ConflictError(GrassrootsError):
    """
    Raised when a write would violate a uniqueness or capacity rule.

    HTTP:    409 Conflict
    When:    Player already on the trial list, trial list full.
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConcurrencyConflictError(ConflictError):
    """
    Raised when another mutation raced on the same trial list.

    What:    The backing transaction hit a lock timeout, deadlock or
             serialization failure.
    Recovery:
        The whole unit of work is retried from scratch (re-read ranks,
        recompute, rewrite). Only when retries are exhausted does this reach
        the client, as a 409 it may retry itself.
    """

    def __init__(
        self,
        list_id: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "The trial list was modified by another request at the same time. "
            "Please retry."
        )
        ctx = context or {}
        if list_id is not None:
            ctx["trial_list_id"] = list_id
        super().__init__(message=message, context=ctx)
        self.list_id = list_id


class DatabaseError(GrassrootsError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The client always receives a generic message; constraint names and SQL
    are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(GrassrootsError):
    """
    Raised when a client exceeds the request rate limit.

    HTTP:    429 Too Many Requests
    Response includes a Retry-After header.
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
