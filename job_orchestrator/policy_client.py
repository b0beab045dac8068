"""Policy consultation service client (ticket authenticated)."""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .config import Config
from .errors import TransportError
from .retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)

TICKET_TTL = 3600.0
# Tickets this close to expiry are refreshed before use
TICKET_SAFETY_MARGIN = 300.0

# Request type for policy consultation
POLICY_REQUEST_TYPE = "1"
TEXT_MESSAGE_TYPE = "1"


# ============================================================================
# Wire Models
# ============================================================================

class TicketData(BaseModel):
    appid: str = ""
    privateKey: str = ""
    sm4Key: str = ""
    ticket: str = ""


class TicketResponse(BaseModel):
    code: int = 0
    message: str = ""
    data: Optional[TicketData] = None


class PolicyChatData(BaseModel):
    chatId: str = ""
    conversationId: str = ""
    stream: bool = False
    realName: bool = False
    message: str
    megType: str = TEXT_MESSAGE_TYPE
    aac001: str = ""
    aac147: str = ""
    aac003: str = ""
    reqtype: str = POLICY_REQUEST_TYPE


class PolicyReply(BaseModel):
    chatId: str = ""
    message: str = ""
    conversationId: str = ""
    megType: str = ""
    data: Any = None


class PolicyChatResponse(BaseModel):
    code: int = 0
    message: str = ""
    data: Optional[PolicyReply] = None


# ============================================================================
# Client
# ============================================================================

class PolicyClient:
    """
    Client for the policy consultation service.

    Every chat call carries a ticket from the access endpoint. Tickets live
    an hour and are shared by all requests; a refresh happens once even when
    many requests find the ticket stale at the same time.
    """

    def __init__(
        self,
        base_url: str,
        login_name: str,
        user_key: str,
        service_id: str,
        timeout: float = 60.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.login_name = login_name
        self.user_key = user_key
        self.service_id = service_id
        self.retry = retry or RetryPolicy(attempts=1)
        self.clock = clock

        self._ticket: Optional[TicketData] = None
        self._expires_at = 0.0
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "PolicyClient":
        return cls(
            base_url=cfg.policy_base_url,
            login_name=cfg.policy_login_name,
            user_key=cfg.policy_user_key,
            service_id=cfg.policy_service_id,
            timeout=cfg.policy_timeout,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    def _valid_ticket(self) -> Optional[TicketData]:
        if self._ticket is not None and self.clock() < self._expires_at - TICKET_SAFETY_MARGIN:
            return self._ticket
        return None

    async def get_ticket(self) -> TicketData:
        ticket = self._valid_ticket()
        if ticket is not None:
            return ticket

        async with self._refresh_lock:
            # Another request may have refreshed while we waited
            ticket = self._valid_ticket()
            if ticket is not None:
                return ticket

            ticket = await self._fetch_ticket()
            self._ticket = ticket
            self._expires_at = self.clock() + TICKET_TTL
            logger.info("Policy ticket refreshed")
            return ticket

    async def _fetch_ticket(self) -> TicketData:
        payload = {"loginname": self.login_name, "userkey": self.user_key}
        resp = await send_with_retry(
            lambda: self.client.post(f"{self.base_url}/api/aiServer/getAccessUserInfo", json=payload),
            self.retry,
            "Policy ticket",
        )
        if resp.status_code != 200:
            raise TransportError(f"Policy ticket returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            result = TicketResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise TransportError(f"Undecodable policy ticket response: {e}") from e

        if result.code != 200:
            raise TransportError(f"Policy ticket refused: {result.message}")
        if result.data is None:
            raise TransportError("Policy ticket response carried no data")
        return result.data

    async def chat(self, data: PolicyChatData) -> PolicyReply:
        """Send one consultation message and return the service's reply."""
        ticket = await self.get_ticket()
        payload = {
            "appid": ticket.appid,
            "ticket": ticket.ticket,
            "data": data.model_dump(),
        }

        logger.info(f"Policy chat: chatId={data.chatId or '-'}, realName={data.realName}")

        resp = await send_with_retry(
            lambda: self.client.post(
                f"{self.base_url}/api/aiServer/aichat/stream-ai/{self.service_id}",
                json=payload,
            ),
            self.retry,
            "Policy chat",
        )
        if resp.status_code != 200:
            raise TransportError(f"Policy chat returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            result = PolicyChatResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise TransportError(f"Undecodable policy chat response: {e}") from e

        if result.code != 200:
            raise TransportError(f"Policy chat failed: {result.message}")
        return result.data or PolicyReply()
