import pytest

from fakes import FakeAPIError
from insight.retry import with_retry


class Flaky:
    def __init__(self, *errors: BaseException, result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.mark.asyncio
async def test_transient_failures_are_retried_with_backoff(sleep, sleeps):
    fn = Flaky(FakeAPIError(429), FakeAPIError(503))

    assert await with_retry(fn, max_retries=3, base_delay=1.0, sleep=sleep) == "ok"
    assert fn.calls == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_non_transient_error_is_raised_immediately(sleep, sleeps):
    error = FakeAPIError(400, "bad request")
    fn = Flaky(error)

    with pytest.raises(FakeAPIError) as exc_info:
        await with_retry(fn, max_retries=3, sleep=sleep)
    assert exc_info.value is error
    assert fn.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_gives_up_after_max_retries_with_last_error(sleep, sleeps):
    last = FakeAPIError(500, "still down")
    fn = Flaky(FakeAPIError(500), FakeAPIError(500), last)

    with pytest.raises(FakeAPIError) as exc_info:
        await with_retry(fn, max_retries=2, base_delay=0.5, sleep=sleep)
    assert exc_info.value is last
    assert fn.calls == 3
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_zero_retries_calls_once(sleep, sleeps):
    fn = Flaky(FakeAPIError(429))

    with pytest.raises(FakeAPIError):
        await with_retry(fn, max_retries=0, sleep=sleep)
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_errors_without_status_are_not_retried(sleep):
    fn = Flaky(ValueError("boom"))

    with pytest.raises(ValueError):
        await with_retry(fn, sleep=sleep)
    assert fn.calls == 1
