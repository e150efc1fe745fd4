"""
Tests for the deadline wrapper.

A wrapped call should:
1. Forward the underlying outcome when it settles in time
2. Raise TimeoutExpiredError, or stay pending, when the deadline wins
3. Never settle twice and never cancel the underlying call
"""

import asyncio
import functools
import gc

import pytest

from batcave import (
    DEFAULT_TIMEOUT_MS,
    BatcaveError,
    TimeoutExpiredError,
    TimeoutPolicy,
    deadline,
    new_queue,
    wrap_with_timeout,
)


async def slow_fn() -> str:
    await asyncio.sleep(0.2)
    return "done"


async def fast_fn() -> int:
    await asyncio.sleep(0.01)
    return 42


@pytest.fixture
def deadline_timers(monkeypatch):
    """
    Fixture that records the deadline timers armed on the running loop.

    Call it from inside the test to start recording.
    """

    def install():
        loop = asyncio.get_running_loop()
        original = loop.call_later
        timers = []

        def call_later(delay, callback, *args, **kwargs):
            handle = original(delay, callback, *args, **kwargs)
            if getattr(callback, "__name__", None) == "expire":
                timers.append(handle)
            return handle

        monkeypatch.setattr(loop, "call_later", call_later)
        return timers

    return install


@pytest.mark.asyncio
async def test_fast_call_resolves_with_its_value():
    """Test that a call finishing before the deadline returns its own result."""
    wrapped = wrap_with_timeout(fast_fn, 50)

    assert await wrapped() == 42


@pytest.mark.asyncio
async def test_slow_call_raises_timeout_expired():
    """Test that a call overrunning the deadline raises TimeoutExpiredError."""
    wrapped = wrap_with_timeout(slow_fn, 50)

    with pytest.raises(TimeoutExpiredError) as exc_info:
        await wrapped()

    error = exc_info.value
    assert error.function_name == "slow_fn"
    assert error.timeout_ms == 50
    assert "slow_fn" in str(error)
    assert "50ms" in str(error)
    assert isinstance(error, TimeoutError)
    assert isinstance(error, BatcaveError)


@pytest.mark.asyncio
async def test_slow_call_stays_pending_without_reject():
    """Test that reject_on_timeout=False leaves the wrapped call unsettled."""
    wrapped = wrap_with_timeout(slow_fn, 50, reject_on_timeout=False)
    call = asyncio.ensure_future(wrapped())

    await asyncio.sleep(0.1)
    assert not call.done()

    # The late "done" result must be discarded as well
    await asyncio.sleep(0.15)
    assert not call.done()

    call.cancel()
    with pytest.raises(asyncio.CancelledError):
        await call


@pytest.mark.asyncio
async def test_errors_before_deadline_are_forwarded():
    """Test that a failure inside the deadline surfaces unchanged."""

    async def failing():
        await asyncio.sleep(0.01)
        raise ValueError("Task failed")

    with pytest.raises(ValueError, match="Task failed"):
        await wrap_with_timeout(failing, 100)()


@pytest.mark.asyncio
async def test_synchronous_raise_propagates():
    """Test that func raising before returning an awaitable is not swallowed."""

    def broken():
        raise KeyError("no coroutine for you")

    with pytest.raises(KeyError):
        await wrap_with_timeout(broken, 100)()


@pytest.mark.asyncio
async def test_late_failure_after_deadline_is_discarded():
    """Test that an error settling after the deadline does not replace the timeout."""
    finished = asyncio.Event()

    async def late_failure():
        try:
            await asyncio.sleep(0.05)
            raise ValueError("too late")
        finally:
            finished.set()

    with pytest.raises(TimeoutExpiredError):
        await wrap_with_timeout(late_failure, 10)()

    await asyncio.wait_for(finished.wait(), 1.0)


@pytest.mark.asyncio
async def test_underlying_call_keeps_running_after_timeout():
    """Test that the deadline abandons the call instead of cancelling it."""
    completed = asyncio.Event()

    async def keeps_going():
        await asyncio.sleep(0.05)
        completed.set()
        return "finished anyway"

    with pytest.raises(TimeoutExpiredError):
        await wrap_with_timeout(keeps_going, 10)()

    assert not completed.is_set()
    gc.collect()
    await asyncio.wait_for(completed.wait(), 1.0)


@pytest.mark.asyncio
async def test_arguments_are_forwarded():
    """Test that the wrapper keeps the call signature of func."""

    async def add(a: int, b: int, *, scale: int = 1) -> int:
        await asyncio.sleep(0)
        return (a + b) * scale

    wrapped = wrap_with_timeout(add, 100)

    assert await wrapped(1, 2) == 3
    assert await wrapped(1, 2, scale=10) == 30
    assert wrapped.__name__ == "add"


@pytest.mark.asyncio
async def test_each_invocation_gets_its_own_deadline():
    """Test that calls through one wrapper race independently."""

    async def sleep_for(delay: float) -> float:
        await asyncio.sleep(delay)
        return delay

    wrapped = wrap_with_timeout(sleep_for, 50)
    results = await asyncio.gather(
        wrapped(0.01),
        wrapped(0.2),
        wrapped(0.02),
        return_exceptions=True,
    )

    assert results[0] == 0.01
    assert isinstance(results[1], TimeoutExpiredError)
    assert results[2] == 0.02


@pytest.mark.asyncio
async def test_anonymous_function_name():
    """Test that callables without a __name__ are reported as anonymous."""
    wrapped = wrap_with_timeout(functools.partial(asyncio.sleep, 0.2), 10)

    with pytest.raises(TimeoutExpiredError) as exc_info:
        await wrapped()

    assert exc_info.value.function_name == "<anonymous>"


@pytest.mark.asyncio
async def test_cancelling_the_caller_does_not_cancel_the_call():
    """Test that a cancelled wrapped call leaves the underlying call running."""
    completed = asyncio.Event()

    async def background():
        await asyncio.sleep(0.03)
        completed.set()

    call = asyncio.ensure_future(wrap_with_timeout(background, 1000)())
    await asyncio.sleep(0.01)
    call.cancel()

    with pytest.raises(asyncio.CancelledError):
        await call
    await asyncio.wait_for(completed.wait(), 1.0)


@pytest.mark.asyncio
async def test_deadline_decorator():
    """Test the decorator form of wrap_with_timeout."""

    @deadline(20)
    async def too_slow():
        await asyncio.sleep(0.2)

    @deadline(200)
    async def quick():
        return "quick"

    assert await quick() == "quick"
    with pytest.raises(TimeoutExpiredError, match="too_slow"):
        await too_slow()


@pytest.mark.asyncio
async def test_wraps_tasks_run_through_the_queue():
    """Test that the wrapper composes with queue handles."""
    queue = new_queue(1)

    def submit(delay: float):
        async def task():
            await asyncio.sleep(delay)
            return delay

        return queue.push(task)

    bounded_submit = wrap_with_timeout(submit, 50)

    assert await bounded_submit(0.01) == 0.01
    with pytest.raises(TimeoutExpiredError, match="submit"):
        await bounded_submit(0.2)


def test_policy_defaults_and_validation():
    """Test TimeoutPolicy defaults and argument checks."""
    policy = TimeoutPolicy()
    assert policy.timeout_ms == DEFAULT_TIMEOUT_MS == 5000
    assert policy.reject_on_timeout is True
    assert policy.seconds == 5.0

    with pytest.raises(ValueError):
        TimeoutPolicy(-1)
    with pytest.raises(TypeError):
        TimeoutPolicy("fast")
    with pytest.raises(ValueError):
        wrap_with_timeout(fast_fn, -5)
    with pytest.raises(ValueError):
        deadline(-5)


@pytest.mark.asyncio
async def test_timer_cancelled_after_fast_success(deadline_timers):
    """Test that the deadline timer is disarmed when the call wins the race."""
    timers = deadline_timers()

    assert await wrap_with_timeout(fast_fn, 50)() == 42

    assert len(timers) == 1
    assert timers[0].cancelled()


@pytest.mark.asyncio
async def test_timer_cancelled_after_fast_failure(deadline_timers):
    """Test that the deadline timer is disarmed when the call fails in time."""
    timers = deadline_timers()

    async def failing():
        await asyncio.sleep(0.01)
        raise ValueError("Task failed")

    with pytest.raises(ValueError):
        await wrap_with_timeout(failing, 50)()

    assert len(timers) == 1
    assert timers[0].cancelled()


@pytest.mark.asyncio
async def test_timer_cancelled_after_synchronous_raise(deadline_timers):
    """Test that the deadline timer is disarmed when func raises before returning."""
    timers = deadline_timers()

    def broken():
        raise KeyError("no coroutine for you")

    with pytest.raises(KeyError):
        await wrap_with_timeout(broken, 50)()

    assert len(timers) == 1
    assert timers[0].cancelled()


@pytest.mark.asyncio
async def test_timer_cancelled_when_caller_is_cancelled(deadline_timers):
    """Test that the deadline timer is disarmed when the waiting caller goes away."""
    timers = deadline_timers()

    call = asyncio.ensure_future(wrap_with_timeout(slow_fn, 1000)())
    await asyncio.sleep(0.01)
    assert len(timers) == 1
    assert not timers[0].cancelled()

    call.cancel()
    with pytest.raises(asyncio.CancelledError):
        await call

    assert timers[0].cancelled()
