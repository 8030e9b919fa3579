# tests/test_rate_limiter.py
import pytest

from mlshub.adapters.clients.rate_limit import FixedWindowRateLimiter


@pytest.mark.asyncio
async def test_tight_loop_never_exceeds_limit_per_window(clock, fake_sleep, limiter):
    limiter.register("acme", 5)

    admitted_at: list[float] = []
    for _ in range(12):
        await limiter.acquire("acme")
        admitted_at.append(clock())

    # first 5 immediately, then the loop waits out each window
    assert admitted_at[:5] == [1000.0] * 5
    assert len(fake_sleep.calls) == 2
    assert fake_sleep.calls[0] == pytest.approx(60.0)

    for start in admitted_at:
        in_window = [t for t in admitted_at if start <= t < start + 60.0]
        assert len(in_window) <= 5


@pytest.mark.asyncio
async def test_fixed_window_boundary_admits_double_burst(clock, fake_sleep, limiter):
    """Accepted property of a fixed window: 2x limit across the boundary."""
    limiter.register("acme", 3)

    clock.advance(59.0)
    for _ in range(3):
        await limiter.acquire("acme")

    clock.advance(1.0)
    for _ in range(3):
        await limiter.acquire("acme")

    # 6 admitted within ~1s, none of them waited
    assert fake_sleep.calls == []
    assert limiter.snapshot("acme")["requestCount"] == 3


@pytest.mark.asyncio
async def test_unregistered_provider_is_not_throttled(fake_sleep, limiter):
    for _ in range(1000):
        await limiter.acquire("nobody")
    assert fake_sleep.calls == []
    assert limiter.is_registered("nobody") is False


@pytest.mark.asyncio
async def test_unregister_drops_the_window(limiter):
    limiter.register("acme", 1)
    await limiter.acquire("acme")
    limiter.unregister("acme")
    limiter.unregister("acme")

    assert limiter.snapshot("acme") is None
    await limiter.acquire("acme")


@pytest.mark.asyncio
async def test_windows_are_per_provider(fake_sleep, limiter):
    limiter.register("a", 1)
    limiter.register("b", 1)

    await limiter.acquire("a")
    await limiter.acquire("b")
    assert fake_sleep.calls == []

    await limiter.acquire("a")
    assert len(fake_sleep.calls) == 1


@pytest.mark.asyncio
async def test_default_clock_smoke():
    limiter = FixedWindowRateLimiter()
    limiter.register("x", 2)
    await limiter.acquire("x")
    await limiter.acquire("x")
    assert limiter.snapshot("x")["requestCount"] == 2
