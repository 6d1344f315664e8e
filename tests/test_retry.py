from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from components.core.exceptions import RetryExhaustedError, ValidationError
from components.core.retry import is_retryable, with_retry


def lost_connection():
    return OperationalError("SELECT 1", {}, Exception("Lost connection to MySQL server"))


def test_is_retryable():
    assert is_retryable(lost_connection())
    assert is_retryable(TimeoutError())
    assert not is_retryable(ValueError())
    assert not is_retryable(ValidationError("bad"))


@pytest.mark.asyncio
async def test_with_retry_recovers():
    operation = AsyncMock(side_effect=[lost_connection(), "rows"])

    assert await with_retry(operation, attempts=2, delay=0) == "rows"
    assert operation.await_count == 2


@pytest.mark.asyncio
async def test_with_retry_gives_up():
    operation = AsyncMock(side_effect=lost_connection())

    with pytest.raises(RetryExhaustedError) as error:
        await with_retry(operation, attempts=2, delay=0, label="load sale")

    assert operation.await_count == 3
    assert "load sale" in str(error.value)
    assert error.value.status_code == 503


@pytest.mark.asyncio
async def test_with_retry_does_not_retry_terminal_errors():
    operation = AsyncMock(side_effect=ValidationError("nope"))

    with pytest.raises(ValidationError):
        await with_retry(operation, attempts=5, delay=0)

    assert operation.await_count == 1
