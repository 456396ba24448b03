"""Errors raised by the GitLab API client."""

from typing import Any, Dict, Optional


class GitLabAPIError(Exception):
    """A GitLab API request failed.

    Attributes:
        status_code: HTTP status of the answer, None for network errors
        response_data: Decoded JSON error body, if the server sent one
    """

    default_status: Optional[int] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code if status_code is not None else self.default_status
        self.response_data = response_data


class GitLabAuthenticationError(GitLabAPIError):
    """The token was missing or rejected (401)."""

    default_status = 401


class GitLabPermissionError(GitLabAPIError):
    """The token lacks access to the resource (403)."""

    default_status = 403


class GitLabNotFoundError(GitLabAPIError):
    """The path or id is unknown to the server (404)."""

    default_status = 404


class GitLabRateLimitError(GitLabAPIError):
    """Too many requests (429); ``retry_after`` holds the advised wait in seconds."""

    default_status = 429

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class GitLabValidationError(GitLabAPIError):
    """The server rejected the request payload (400)."""

    default_status = 400


class GitLabConflictError(GitLabValidationError):
    """The resource being created already exists on the server.

    GitLab answers 409 for some duplicates and 400 with a
    ``has already been taken`` message for others; both map here.
    """

    default_status = 409
