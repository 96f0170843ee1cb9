"""
Rate limiter spacing tests.
"""
import asyncio
import time

from shiprecon.utils.rate_limiter import RateLimiter, shipstation_limiter, shopify_limiter, ups_limiter

from fakes import run


def test_first_call_is_not_delayed():
    limiter = RateLimiter(1.0)

    async def go():
        start = time.monotonic()
        await limiter.wait()
        return time.monotonic() - start

    assert run(go()) < 0.5


def test_sequential_calls_are_spaced():
    limiter = RateLimiter(0.05)

    async def go():
        start = time.monotonic()
        for _ in range(3):
            await limiter.wait()
        return time.monotonic() - start

    # first passes immediately, the next two wait one interval each
    assert run(go()) >= 0.09


def test_concurrent_waiters_are_spaced_in_arrival_order():
    limiter = RateLimiter(0.05)
    passed = []

    async def waiter(i):
        await limiter.wait()
        passed.append((i, time.monotonic()))

    async def go():
        await asyncio.gather(*(waiter(i) for i in range(4)))

    run(go())

    assert [i for i, _ in passed] == [0, 1, 2, 3]
    gaps = [b - a for (_, a), (_, b) in zip(passed, passed[1:])]
    assert all(gap >= 0.04 for gap in gaps)


def test_limiters_are_independent():
    slow = RateLimiter(2.0)
    fast = RateLimiter(0.0)

    async def go():
        await slow.wait()
        start = time.monotonic()
        await fast.wait()
        return time.monotonic() - start

    assert run(go()) < 0.5


def test_limiter_reusable_across_event_loops():
    limiter = RateLimiter(0.0)
    run(limiter.wait())
    run(limiter.wait())
    assert limiter.last_call > 0


def test_process_limiters_configured_per_api():
    assert shipstation_limiter.min_interval == 1.5
    assert shopify_limiter.min_interval == 0.55
    assert ups_limiter.min_interval == 0.15
