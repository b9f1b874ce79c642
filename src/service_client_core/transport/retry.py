"""Retry policy for transient failures.

Transient failures are transport errors (connection resets, timeouts) and
responses whose status is in the retry allow-list (429 and 5xx gateway
errors by default). Only idempotent requests are retried; a request declared
non-idempotent, or a POST/PATCH without a declaration, gets exactly one
attempt.

| Failure | Idempotent request | Non-idempotent request |
|---------|--------------------|------------------------|
| TransportError | retried | raised after one attempt |
| allow-listed status | retried, Retry-After honoured | returned after one attempt |
| other 4xx/5xx | returned | returned |
| AuthError, DecodeError, cancellation | raised | raised |

Example:
    ```python
    from service_client_core.config import RetryOptions
    from service_client_core.transport.retry import RetryPolicy

    policy = RetryPolicy(RetryOptions(max_retries=5, max_backoff=30.0))
    ```
"""

import asyncio
import logging
import random
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx

from service_client_core.config import RetryOptions
from service_client_core.errors.exceptions import TransportError
from service_client_core.transport.pipeline import NextHandler, Policy
from service_client_core.transport.request import Request, redact_url

logger = logging.getLogger(__name__)


class RetryPolicy(Policy):
    """Re-send the rest of the chain with exponential backoff and jitter.

    Every attempt receives a fresh clone of the request, so headers set by
    inner policies on one attempt never leak into the next and the body bytes
    are replayed unchanged.

    Args:
        options: Attempt budget and backoff shape (default RetryOptions()).
    """

    def __init__(self, options: RetryOptions | None = None) -> None:
        self.options = options or RetryOptions()

    async def send(self, request: Request, call_next: NextHandler) -> httpx.Response:
        max_retries = self.options.max_retries if request.is_idempotent else 0
        retries = 0

        while True:
            try:
                response = await call_next(request.clone())
            except TransportError as e:
                if retries >= max_retries:
                    e.attempts = retries + 1
                    raise

                retries += 1
                delay = self._calculate_backoff_delay(retries)
                logger.warning(
                    f"Request {request.method} {redact_url(request.url)} failed with {e}, "
                    f"retrying in {delay:.2f}s (attempt {retries}/{max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            if retries >= max_retries or response.status_code not in self.options.retry_status_codes:
                return response

            retries += 1
            delay = self._parse_retry_after(response)
            if delay is None:
                delay = self._calculate_backoff_delay(retries)

            logger.warning(
                f"Request {request.method} {redact_url(request.url)} failed with {response.status_code}, "
                f"retrying in {delay:.2f}s (attempt {retries}/{max_retries})"
            )
            await response.aclose()
            await asyncio.sleep(delay)

    def _parse_retry_after(self, response: httpx.Response) -> float | None:
        """Parse a Retry-After header into a delay capped at max_backoff.

        Supports both formats:
        - Delay-seconds: "120"
        - HTTP-date: "Wed, 21 Oct 2015 07:28:00 GMT"

        Returns:
            Delay in seconds, or None if the header is missing, invalid or in the past
        """
        retry_after = response.headers.get("Retry-After")
        if not retry_after:
            return None

        try:
            delay = float(int(retry_after))
        except ValueError:
            try:
                retry_date = parsedate_to_datetime(retry_after)
            except (ValueError, TypeError):
                return None
            if retry_date.tzinfo is None:
                retry_date = retry_date.replace(tzinfo=UTC)
            delay = (retry_date - datetime.now(UTC)).total_seconds()

        # Protect against negative values (clock skew)
        if delay < 0:
            return None
        return min(delay, self.options.max_backoff)

    def _calculate_backoff_delay(self, retry_number: int) -> float:
        """Exponential backoff for retry ``retry_number`` (1-indexed), with jitter.

        With the defaults the base sequence is 0.8, 1.6, 3.2 seconds.
        """
        options = self.options
        delay = min(options.initial_backoff * options.backoff_factor ** (retry_number - 1), options.max_backoff)
        if options.jitter:
            delay += random.uniform(0, options.jitter * delay)
        return min(delay, options.max_backoff)
