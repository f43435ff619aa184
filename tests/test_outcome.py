"""
Tests for best-effort outcomes.
"""

import asyncio

import pytest

from hirescope.outcome import Outcome, attempt


def test_successful_attempt_keeps_value():
    async def produce():
        return 42

    outcome = asyncio.run(attempt(produce()))
    assert outcome.ok
    assert outcome.or_default(0) == 42
    assert outcome.describe() == "ok"


def test_failed_attempt_collapses_to_default():
    async def fail():
        raise RuntimeError("network down")

    outcome = asyncio.run(attempt(fail()))
    assert not outcome.ok
    assert outcome.or_default(0) == 0
    assert outcome.describe() == "network down"


def test_describe_falls_back_to_exception_type():
    assert Outcome(error=TimeoutError()).describe() == "TimeoutError"


def test_cancellation_is_not_captured():
    async def run():
        async def slow():
            await asyncio.sleep(10)

        task = asyncio.ensure_future(attempt(slow()))
        await asyncio.sleep(0)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run())
