"""
Domain errors raised by the authorization engine and services.

Every error carries a stable code and the HTTP status the API layer maps it
to. Nothing in this package is retried; errors propagate unchanged to the
request boundary where ``tracker_error_handler`` renders them.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class TrackerError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
        }


class InvalidRole(TrackerError, ValueError):
    code = "INVALID_ROLE"
    status_code = 400
    default_message = "Unknown role"

    def __init__(self, label: object):
        self.label = label
        super().__init__(f"Unknown role: {label!r}")


class Unauthorized(TrackerError):
    """The caller has no standing at all on the target resource."""

    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "You are not part of this project"


class Forbidden(TrackerError):
    """The caller has standing but not enough rank."""

    code = "FORBIDDEN"
    status_code = 403
    default_message = "Access denied"

    def __init__(self, message: Optional[str] = None, required_role: Optional[str] = None):
        self.required_role = required_role
        if message is None and required_role is not None:
            message = f"Access denied. Required role: {required_role}"
        super().__init__(message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.required_role is not None:
            body["required_role"] = self.required_role
        return body


class InvalidOperation(TrackerError):
    code = "INVALID_OPERATION"
    status_code = 400
    default_message = "Operation not allowed"


class ValidationFailed(TrackerError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class MemberNotFound(TrackerError):
    code = "MEMBER_NOT_FOUND"
    status_code = 404
    default_message = "Project member not found"


class MemberExists(TrackerError):
    code = "MEMBER_EXISTS"
    status_code = 409
    default_message = "User is already a member of this project"


class UserNotFound(TrackerError):
    code = "USER_NOT_FOUND"
    status_code = 404
    default_message = "User not found or inactive"


class ProjectNotFound(TrackerError):
    code = "PROJECT_NOT_FOUND"
    status_code = 404
    default_message = "Project not found"


class TaskNotFound(TrackerError):
    code = "TASK_NOT_FOUND"
    status_code = 404
    default_message = "Task not found"


class CommentNotFound(TrackerError):
    code = "COMMENT_NOT_FOUND"
    status_code = 404
    default_message = "Comment not found"


class EmailTaken(TrackerError):
    code = "EMAIL_TAKEN"
    status_code = 409
    default_message = "A user with this email already exists"


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    """Render a TrackerError using the API error envelope."""
    if exc.status_code in (401, 403):
        log.info(
            "access.denied",
            path=request.url.path,
            code=exc.code,
            required_role=getattr(exc, "required_role", None),
        )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()},
        headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Body/query validation failures use the same envelope, status 422."""
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "status": 422,
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )
