"""Retrying HTTP client for the patient API and the reporting endpoint.

One logical request = up to `max_retries + 1` attempts. Responses are
classified as:
  - 2xx      -> JSON payload returned immediately
  - >= 500   -> TransientFetchError (retryable)
  - other    -> TerminalFetchError (logged as a client error)
Transport errors from `requests` count as transient. Whether a terminal
error is retried is controlled by `retry_client_errors`; by default it is,
which matches how the upstream integration has always behaved.
"""
from __future__ import annotations

import random
import time

import requests

from vitals_pipeline.config import (
    MAX_RETRIES,
    RETRY_DELAY_SEC,
    RETRY_BACKOFF,
    RETRY_MAX_DELAY_SEC,
    RETRY_CLIENT_ERRORS,
    SUBMIT_RETRIES,
    REQUEST_TIMEOUT_SEC,
)
from vitals_pipeline.logger import logger


class FetchError(Exception):
    """Base class for a single failed attempt."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Server error (5xx) or transport failure; worth retrying."""


class TerminalFetchError(FetchError):
    """Client error (4xx) or an undecodable success body."""


class FetchFailure(FetchError):
    """Raised once the retry budget is spent; wraps the last attempt's error."""

    def __init__(self, last_error: Exception, attempts: int):
        status = getattr(last_error, "status_code", None)
        super().__init__(str(last_error), status_code=status)
        self.last_error = last_error
        self.attempts = attempts


def build_headers(api_key: str | None) -> dict:
    return {
        "Content-Type": "application/json",
        "x-api-key": api_key,
    }


def compute_delay(attempt: int, base_delay: float = RETRY_DELAY_SEC, backoff: str = RETRY_BACKOFF,
                  max_delay: float = RETRY_MAX_DELAY_SEC) -> float:
    """Seconds to wait after failed `attempt` (1-based)."""
    if backoff == "exponential":
        return min(max_delay, base_delay * (2 ** (attempt - 1))) * (0.5 + random.random())
    return base_delay


def _classify(response):
    status = response.status_code
    if status >= 500:
        raise TransientFetchError(f"Server error! Status: {status}", status_code=status)
    if 200 <= status < 300:
        try:
            return response.json()
        except ValueError as e:
            raise TerminalFetchError(f"Invalid JSON body (status {status}): {e}", status_code=status)
    logger.error("Client error: %s. Stopping.", status)
    raise TerminalFetchError(f"Client error: {status} {response.reason or ''}".rstrip(), status_code=status)


def fetch_with_retry(
    url,
    headers=None,
    params=None,
    max_retries: int = MAX_RETRIES,
    retry_delay: float = RETRY_DELAY_SEC,
    backoff: str = RETRY_BACKOFF,
    max_delay: float = RETRY_MAX_DELAY_SEC,
    retry_client_errors: bool = RETRY_CLIENT_ERRORS,
    timeout: float | None = REQUEST_TIMEOUT_SEC,
    method: str = "GET",
    json_body=None,
    session: requests.Session | None = None,
    sleep=time.sleep,
):
    """Issue one logical request and return its decoded JSON payload.

    Raises FetchFailure(last_error) after `max_retries + 1` failed attempts,
    or after the first attempt on a client error when `retry_client_errors`
    is False.
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")
    if session is None:
        with requests.Session() as own_session:
            return fetch_with_retry(
                url, headers=headers, params=params, max_retries=max_retries,
                retry_delay=retry_delay, backoff=backoff, max_delay=max_delay,
                retry_client_errors=retry_client_errors, timeout=timeout,
                method=method, json_body=json_body, session=own_session, sleep=sleep,
            )

    total_attempts = max_retries + 1
    last_error = None

    for attempt in range(1, total_attempts + 1):
        try:
            try:
                response = session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json_body,
                    timeout=timeout,
                )
            except requests.RequestException as e:
                raise TransientFetchError(f"Request failed: {e}") from e
            return _classify(response)
        except FetchError as e:
            last_error = e
            logger.warning("Attempt %d failed: %s", attempt, e)

            if isinstance(e, TerminalFetchError) and not retry_client_errors:
                logger.error("Not retrying terminal error for %s %s.", method, url)
                raise FetchFailure(e, attempts=attempt) from e

            if attempt < total_attempts:
                delay = compute_delay(attempt, retry_delay, backoff, max_delay)
                logger.info("Waiting %.0fms before next retry...", delay * 1000)
                sleep(delay)

    logger.error("All retry attempts failed.")
    raise FetchFailure(last_error, attempts=total_attempts) from last_error


def post_json(url, body, headers=None, max_retries: int = SUBMIT_RETRIES, **kwargs):
    """POST `body` as JSON through the same classify/retry path as fetches."""
    return fetch_with_retry(
        url,
        headers=headers,
        max_retries=max_retries,
        method="POST",
        json_body=body,
        **kwargs,
    )


__all__ = [
    "FetchError",
    "TransientFetchError",
    "TerminalFetchError",
    "FetchFailure",
    "build_headers",
    "compute_delay",
    "fetch_with_retry",
    "post_json",
]
