from moedinha.core.rate_limit import SlidingWindowLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_limiter_blocks_after_limit_until_window_passes() -> None:
    clock = _Clock()
    limiter = SlidingWindowLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.allow("10.0.0.1:/api/v1/alerts") is True
    assert limiter.allow("10.0.0.1:/api/v1/alerts") is True
    assert limiter.allow("10.0.0.1:/api/v1/alerts") is False
    assert limiter.allow("10.0.0.2:/api/v1/alerts") is True

    clock.now = 61
    assert limiter.allow("10.0.0.1:/api/v1/alerts") is True


def test_limiter_drops_idle_clients() -> None:
    clock = _Clock()
    limiter = SlidingWindowLimiter(limit=5, window_seconds=60, clock=clock)
    for host in range(50):
        limiter.allow(f"10.0.0.{host}:/healthz")
    assert len(limiter) == 50

    clock.now = 120
    limiter.allow("10.0.1.1:/healthz")

    assert len(limiter) == 1
