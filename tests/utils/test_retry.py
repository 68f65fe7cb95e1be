# tests/utils/test_retry.py
import pytest

from chess_review.utils.retry import retry_with_backoff


def _flaky(failures, error, result="ok"):
    """Builds a coroutine function that raises `error` for its first `failures` calls."""
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) <= failures:
            raise error
        return result

    return operation, calls


@pytest.mark.asyncio
async def test_retries_transient_errors_until_success():
    operation, calls = _flaky(2, ConnectionError("locked"))
    wrapped = retry_with_backoff(attempts=3, initial_backoff_s=0.001)(operation)

    assert await wrapped() == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gives_up_after_the_last_attempt():
    operation, calls = _flaky(10, ConnectionError("locked"))
    wrapped = retry_with_backoff(attempts=2, initial_backoff_s=0.001)(operation)

    with pytest.raises(ConnectionError):
        await wrapped()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    operation, calls = _flaky(10, KeyError("nope"))
    wrapped = retry_with_backoff(attempts=5, initial_backoff_s=0.001)(operation)

    with pytest.raises(KeyError):
        await wrapped()
    assert len(calls) == 1
