import asyncio

import httpx
import pytest

from job_orchestrator.errors import TransportError
from job_orchestrator.policy_client import TICKET_SAFETY_MARGIN, TICKET_TTL, PolicyClient


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TicketService:
    def __init__(self, code=200):
        self.code = code
        self.issued = 0

    async def handler(self, request):
        # Let concurrent callers pile up on the refresh
        await asyncio.sleep(0.01)
        self.issued += 1
        return httpx.Response(200, json={
            "code": self.code,
            "message": "ok" if self.code == 200 else "bad credentials",
            "data": {"appid": "app", "ticket": f"t-{self.issued}"},
        })


def make_client(service, clock):
    return PolicyClient(
        "http://policy.test", "login", "key", "svc",
        transport=httpx.MockTransport(service.handler),
        clock=clock,
    )


def test_concurrent_requests_share_one_refresh():
    service = TicketService()
    client = make_client(service, FakeClock())

    async def run():
        return await asyncio.gather(*(client.get_ticket() for _ in range(10)))

    tickets = asyncio.run(run())

    assert service.issued == 1
    assert {t.ticket for t in tickets} == {"t-1"}


def test_ticket_reused_until_safety_margin():
    service = TicketService()
    clock = FakeClock()
    client = make_client(service, clock)

    async def run():
        first = await client.get_ticket()
        clock.now += TICKET_TTL - TICKET_SAFETY_MARGIN - 1
        still_valid = await client.get_ticket()
        clock.now += 2
        refreshed = await client.get_ticket()
        return first, still_valid, refreshed

    first, still_valid, refreshed = asyncio.run(run())

    assert first.ticket == still_valid.ticket == "t-1"
    assert refreshed.ticket == "t-2"
    assert service.issued == 2


def test_refused_ticket_raises():
    client = make_client(TicketService(code=401), FakeClock())

    with pytest.raises(TransportError, match="bad credentials"):
        asyncio.run(client.get_ticket())
