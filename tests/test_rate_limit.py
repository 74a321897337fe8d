import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from demo_chat_gate.services.rate_limit import RateLimiter, RateLimitRule


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


def test_first_request_opens_window(limiter):
    result = limiter.check("198.51.100.1", RateLimitRule(max_requests=5, window_seconds=60))
    assert result.allowed
    assert result.remaining == 4
    assert result.reset_at == 60


def test_denies_after_max_requests(limiter):
    rule = RateLimitRule(max_requests=3, window_seconds=60)
    results = [limiter.check("client", rule) for _ in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]


def test_documented_timeline(limiter, clock):
    rule = RateLimitRule(max_requests=2, window_seconds=1.0)
    ip = "203.0.113.5"

    first = limiter.check(ip, rule)
    assert (first.allowed, first.remaining) == (True, 1)

    clock.now = 0.1
    second = limiter.check(ip, rule)
    assert (second.allowed, second.remaining) == (True, 0)

    clock.now = 0.5
    denied = limiter.check(ip, rule)
    assert (denied.allowed, denied.remaining, denied.reset_at) == (False, 0, 1.0)

    clock.now = 1.001
    fresh = limiter.check(ip, rule)
    assert (fresh.allowed, fresh.remaining) == (True, 1)
    assert fresh.reset_at == pytest.approx(2.001)


def test_denial_leaves_entry_untouched(limiter, clock):
    rule = RateLimitRule(max_requests=1, window_seconds=10)
    limiter.check("client", rule)
    clock.now = 5
    limiter.check("client", rule)
    limiter.check("client", rule)
    entry = limiter.get("client")
    assert entry.count == 1
    assert entry.reset_at == 10


def test_window_resets_exactly_at_reset_time(limiter, clock):
    rule = RateLimitRule(max_requests=1, window_seconds=10)
    limiter.check("client", rule)
    clock.now = 10
    result = limiter.check("client", rule)
    assert result.allowed
    assert result.remaining == 0
    assert limiter.get("client").count == 1


def test_burst_across_window_boundary_is_admitted(limiter, clock):
    # Fixed windows let up to twice the limit through around a boundary
    rule = RateLimitRule(max_requests=5, window_seconds=1.0)
    limiter.check("client", rule)
    clock.now = 0.99
    late = [limiter.check("client", rule).allowed for _ in range(4)]
    clock.now = 1.0
    early = [limiter.check("client", rule).allowed for _ in range(5)]
    assert all(late) and all(early)
    assert not limiter.check("client", rule).allowed


def test_identifiers_are_isolated(limiter):
    rule = RateLimitRule(max_requests=1, window_seconds=60)
    assert limiter.check("a", rule).allowed
    assert not limiter.check("a", rule).allowed
    result = limiter.check("b", rule)
    assert result.allowed
    assert result.remaining == 0
    assert limiter.get("a").count == 1


def test_sweep_removes_only_expired_entries(limiter, clock):
    short = RateLimitRule(max_requests=10, window_seconds=1)
    long = RateLimitRule(max_requests=10, window_seconds=100)
    limiter.check("stale", short)
    limiter.check("live", long)
    limiter.check("live", long)

    clock.now = 1
    assert limiter.sweep() == 1
    assert limiter.get("stale") is None
    assert limiter.get("live").count == 2
    assert len(limiter) == 1


def test_sweep_accepts_explicit_time(limiter):
    limiter.check("client", RateLimitRule(max_requests=1, window_seconds=30))
    assert limiter.sweep(now=29) == 0
    assert limiter.sweep(now=30) == 1
    assert len(limiter) == 0


def test_check_ignores_expired_entry_without_sweep(limiter, clock):
    rule = RateLimitRule(max_requests=1, window_seconds=1)
    limiter.check("client", rule)
    clock.now = 2
    assert limiter.check("client", rule).allowed


def test_get_returns_copy(limiter):
    limiter.check("client", RateLimitRule(max_requests=3, window_seconds=60))
    entry = limiter.get("client")
    entry.count = 99
    assert limiter.get("client").count == 1


@pytest.mark.parametrize("max_requests, window", [(0, 60), (-1, 60), (1, 0), (1, -5)])
def test_rule_rejects_non_positive_values(max_requests, window):
    with pytest.raises(ValueError):
        RateLimitRule(max_requests=max_requests, window_seconds=window)


def test_concurrent_checks_never_over_admit():
    limiter = RateLimiter()
    rule = RateLimitRule(max_requests=50, window_seconds=3600)
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: limiter.check("client", rule), range(400)))
    assert sum(r.allowed for r in results) == 50
    assert limiter.get("client").count == 50


@pytest.mark.asyncio
async def test_sweeper_runs_in_background(limiter, clock):
    limiter.check("client", RateLimitRule(max_requests=1, window_seconds=1))
    clock.now = 5
    limiter.start_sweeper(0.01)
    assert limiter.sweeping
    for _ in range(50):
        if not len(limiter):
            break
        await asyncio.sleep(0.01)
    assert len(limiter) == 0
    await limiter.stop_sweeper()
    assert not limiter.sweeping


@pytest.mark.asyncio
async def test_sweeper_start_is_idempotent_and_stop_is_safe(limiter):
    await limiter.stop_sweeper()
    limiter.start_sweeper(60)
    task = limiter._sweeper
    limiter.start_sweeper(60)
    assert limiter._sweeper is task
    await limiter.stop_sweeper()
    assert task.cancelled()


def test_sweeper_requires_positive_interval(limiter):
    with pytest.raises(ValueError):
        limiter.start_sweeper(0)
