"""
Photocat Backend — Write-Conflict Retry Tests
===============================================

What:  The tenacity-based retry controller used for record writes.
"""

import pytest

from photocat.exceptions import DatabaseError, WriteConflictError
from photocat.services.retry import write_conflict_retrying


async def run_with_retry(operation, max_attempts=3):
    async for attempt in write_conflict_retrying(max_attempts=max_attempts, delay=0):
        with attempt:
            return await operation()


class TestWriteConflictRetrying:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await run_with_retry(operation) == "ok"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_recovers_within_budget(self):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise WriteConflictError()
            return "ok"

        assert await run_with_retry(operation) == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = []

        async def operation():
            calls.append(1)
            raise WriteConflictError()

        with pytest.raises(WriteConflictError, match="Write conflict"):
            await run_with_retry(operation)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        calls = []

        async def operation():
            calls.append(1)
            raise DatabaseError()

        with pytest.raises(DatabaseError):
            await run_with_retry(operation)
        assert len(calls) == 1

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            write_conflict_retrying(max_attempts=0)
