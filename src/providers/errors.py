"""
Git Provider Error Taxonomy.

Every provider client raises the errors defined here, whatever SDK or HTTP
library it talks through. Translation happens at the client boundary:
``provider_errors`` wraps SDK calls and ``raise_for_response`` checks raw
HTTP responses. Nothing in this package retries; callers decide what to do
with ``RateLimitedError.retry_after``.
"""

import time
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

import requests
from github import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
)


class GitClientError(Exception):
    """Base class for provider client failures.

    Attributes:
        status (Optional[int]): HTTP status reported by the provider, if any.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthenticationError(GitClientError):
    """Token missing, invalid, expired or revoked."""


class NotFoundError(GitClientError):
    """Repository, branch, commit or hook absent or not accessible."""


class ConflictError(GitClientError):
    """Creation conflicts with existing provider state."""


class TransportError(GitClientError):
    """Network failure or provider-side 5xx."""


class RateLimitedError(GitClientError):
    """Provider throttling (429, exhausted quota, secondary rate limits).

    Attributes:
        retry_after (Optional[float]): Seconds to wait before retrying, if known.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status)
        self.retry_after = retry_after


def _lowered(headers: Optional[Mapping[str, Any]]) -> dict:
    return {str(key).lower(): str(value) for key, value in (headers or {}).items()}


def retry_after_from(headers: Optional[Mapping[str, Any]]) -> Optional[float]:
    """
    Extract the retry-after hint from provider response headers.

    ``Retry-After`` wins; otherwise an exhausted quota yields the time left
    until ``X-RateLimit-Reset``.

    Args:
        headers (Optional[Mapping[str, Any]]): Response headers, any key case.

    Returns:
        Optional[float]: Seconds to wait, None when the provider gave no hint.
    """
    lowered = _lowered(headers)

    retry_after = lowered.get("retry-after", "").strip()
    if retry_after.isdigit():
        return float(retry_after)

    reset_at = lowered.get("x-ratelimit-reset", "").strip()
    if lowered.get("x-ratelimit-remaining") == "0" and reset_at.isdigit():
        return max(0.0, float(reset_at) - time.time())

    return None


def _is_rate_limited(headers: Optional[Mapping[str, Any]], message: str) -> bool:
    lowered = _lowered(headers)
    return lowered.get("x-ratelimit-remaining") == "0" or "rate limit" in message.lower()


def error_for_status(
    status: int, message: str, headers: Optional[Mapping[str, Any]] = None
) -> GitClientError:
    """
    Map a provider HTTP status to the error taxonomy.

    Args:
        status (int): HTTP status code (>= 400).
        message (str): Error description.
        headers (Optional[Mapping[str, Any]]): Response headers.

    Returns:
        GitClientError: The matching error, not raised.
    """
    if status == 401:
        return AuthenticationError(message, status)
    if status == 429 or (status == 403 and _is_rate_limited(headers, message)):
        return RateLimitedError(message, status, retry_after_from(headers))
    if status in (403, 404):
        return NotFoundError(message, status)
    if status in (409, 422):
        return ConflictError(message, status)
    if status >= 500:
        return TransportError(message, status)
    return GitClientError(message, status)


def _github_message(error: GithubException) -> str:
    data = error.data
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"HTTP {error.status}"


def _response_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code}"


@contextmanager
def provider_errors(operation: str) -> Iterator[None]:
    """
    Translate PyGithub and requests exceptions raised inside the block.

    Args:
        operation (str): Short description used as message prefix.

    Raises:
        GitClientError: Translated error, chained to the original exception.
    """
    try:
        yield
    except GitClientError:
        raise
    except BadCredentialsException as e:
        raise AuthenticationError(f"{operation}: {_github_message(e)}", e.status) from e
    except RateLimitExceededException as e:
        raise RateLimitedError(
            f"{operation}: {_github_message(e)}", e.status, retry_after_from(e.headers)
        ) from e
    except GithubException as e:
        raise error_for_status(
            e.status or 0, f"{operation}: {_github_message(e)}", e.headers
        ) from e
    except requests.RequestException as e:
        raise TransportError(f"{operation}: {e}") from e


def raise_for_response(response: requests.Response, operation: str) -> None:
    """
    Raise the matching GitClientError for an unsuccessful raw response.

    Args:
        response (requests.Response): Response to check.
        operation (str): Short description used as message prefix.

    Raises:
        GitClientError: When the status is 400 or above.
    """
    if response.status_code < 400:
        return
    raise error_for_status(
        response.status_code,
        f"{operation}: {_response_message(response)}",
        response.headers,
    )
