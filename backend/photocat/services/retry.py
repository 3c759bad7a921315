"""
Photocat Backend — Write-Conflict Retry Policy
================================================

What:  Bounded retry combinator for record writes that lose a race.
How:   Tenacity AsyncRetrying configured with a maximum attempt count, a
       fixed pause and a predicate that only retries WriteConflictError.
       Any other exception escapes on the first attempt.

Usage:
    async for attempt in write_conflict_retrying(max_attempts=3, delay=0.1):
        with attempt:
            record = await record_store.update(record_id, fields, image)

    After the last failed attempt the final WriteConflictError is re-raised
    unchanged (reraise=True), which the API maps to HTTP 409.
"""

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from photocat.exceptions import WriteConflictError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (WriteConflictError,)


def write_conflict_retrying(max_attempts: int = 3, delay: float = 0.1) -> AsyncRetrying:
    """
    Build the retry controller for one logical write.

    Args:
        max_attempts: Total attempts including the first one
        delay:        Seconds to wait between attempts (fixed)
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    return AsyncRetrying(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
