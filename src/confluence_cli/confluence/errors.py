"""Typed exception hierarchy for Confluence REST API failures."""

from __future__ import annotations

from typing import Optional

import httpx


class ConfluenceError(Exception):
    """Base exception for every error raised while talking to Confluence."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PageNotFoundError(ConfluenceError):
    """Raised when a referenced page (or parent) does not exist."""


class UnauthorizedError(ConfluenceError):
    """Raised when read or create permission is denied."""


class ConflictError(ConfluenceError):
    """Raised when the remote rejects a duplicate page title."""


class RateLimitedError(ConfluenceError):
    """Raised when the remote throttles the request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = 429,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class UnknownError(ConfluenceError):
    """Any other transport or protocol failure."""


def _response_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("reason")
        if message:
            return str(message)
    text = response.text.strip()
    if text:
        return text[:200]
    return response.reason_phrase or f"HTTP {response.status_code}"


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def error_from_response(response: httpx.Response) -> ConfluenceError:
    """Translate a failed HTTP response into the matching ``ConfluenceError``."""

    status = response.status_code
    detail = _response_message(response)
    message = f"{response.request.method} {response.request.url.path} failed ({status}): {detail}"

    if status == 404:
        return PageNotFoundError(message, status_code=status)
    if status in (401, 403):
        return UnauthorizedError(message, status_code=status)
    if status == 409 or (status == 400 and "already exists" in detail.lower()):
        return ConflictError(message, status_code=status)
    if status == 429:
        return RateLimitedError(
            message,
            status_code=status,
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
        )
    return UnknownError(message, status_code=status)
