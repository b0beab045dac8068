from fastapi.testclient import TestClient

from conftest import make_config
from job_orchestrator.main import create_app
from job_orchestrator.ratelimit import TokenBucket


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_bucket_allows_burst_then_refuses():
    clock = FakeClock()
    bucket = TokenBucket(capacity=3, refill_rate=1, clock=clock)

    assert [bucket.allow() for _ in range(4)] == [True, True, True, False]


def test_bucket_refills_over_time():
    clock = FakeClock()
    bucket = TokenBucket(capacity=2, refill_rate=2, clock=clock)
    bucket.allow()
    bucket.allow()
    assert not bucket.allow()

    clock.now += 0.5
    assert bucket.allow()
    assert not bucket.allow()


def test_bucket_never_exceeds_capacity():
    clock = FakeClock()
    bucket = TokenBucket(capacity=2, refill_rate=10, clock=clock)

    clock.now += 60
    bucket.allow()

    assert bucket.tokens == 1


def test_middleware_returns_429_when_exhausted():
    app = create_app(engine=object(), cfg=make_config(rate_limit_capacity=1, rate_limit_refill=0))

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        refused = client.get("/health")

    assert refused.status_code == 429
    assert refused.json()["error"]["type"] == "rate_limit_exceeded"
