# forumcore/errors.py
from __future__ import annotations


class ForumError(Exception):
    """
    Base for every failure the forum core reports to its callers.
    The request layer maps `status_code` to the transport and shows `code` + message.
    """
    code = "FORUM_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(ForumError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(ForumError):
    code = "NOT_FOUND"
    status_code = 404


class Forbidden(ForumError):
    code = "FORBIDDEN"
    status_code = 403


class Conflict(ForumError):
    code = "CONFLICT"
    status_code = 409


class StoreTimeout(ForumError):
    code = "TIMEOUT"
    status_code = 504


class StoreUnavailable(ForumError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
