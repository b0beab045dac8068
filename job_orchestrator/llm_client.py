"""OpenAI-compatible LLM backend client."""

import logging
from typing import AsyncIterator, Optional

import httpx
from pydantic import ValidationError

from .config import Config
from .errors import TransportError
from .models import ChatCompletionChunk, ChatCompletionResponse, LLMRequest
from .retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Async client for an OpenAI-compatible chat completions backend.

    Handles:
    - Buffered completions, retried on network errors, 5xx and 429
    - Streamed completions (SSE ``data:`` lines until ``[DONE]``), never retried
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 300.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            headers=headers,
            transport=transport,
        )
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryPolicy(attempts=3, base_delay=1.0)

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "LLMClient":
        return cls(
            base_url=cfg.llm_base_url,
            api_key=cfg.llm_api_key,
            timeout=cfg.llm_timeout,
            retry=RetryPolicy(attempts=cfg.llm_max_retries, base_delay=1.0),
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def complete(self, request: LLMRequest) -> ChatCompletionResponse:
        """Non-streaming chat completion."""
        payload = request.payload()
        payload["stream"] = False

        logger.info(f"LLM completion: model={request.model}, messages={len(request.messages)}")

        resp = await send_with_retry(
            lambda: self.client.post(self.completions_url, json=payload),
            self.retry,
            "LLM backend",
        )
        if resp.status_code != 200:
            logger.error(f"LLM HTTP error: {resp.status_code}")
            raise TransportError(f"LLM backend returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return ChatCompletionResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise TransportError(f"Undecodable LLM response: {e}") from e

    async def stream(self, request: LLMRequest) -> AsyncIterator[ChatCompletionChunk]:
        """
        Streaming chat completion.

        Yields one ChatCompletionChunk per ``data:`` line. Any failure,
        including a line that does not decode, raises TransportError.
        """
        payload = request.payload()
        payload["stream"] = True

        logger.info(f"LLM stream: model={request.model}, messages={len(request.messages)}, "
                    f"tool_choice={request.tool_choice}")

        try:
            async with self.client.stream(
                "POST",
                self.completions_url,
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    logger.error(f"LLM HTTP error: {response.status_code}")
                    raise TransportError(
                        f"LLM backend returned HTTP {response.status_code}: "
                        f"{body[:200].decode('utf-8', 'replace')}"
                    )

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue

                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        return

                    try:
                        chunk = ChatCompletionChunk.model_validate_json(data)
                    except ValidationError as e:
                        raise TransportError(f"Undecodable stream chunk: {data[:100]}") from e

                    yield chunk

        except httpx.HTTPError as e:
            logger.error(f"LLM stream error: {e}")
            raise TransportError(f"LLM stream failed: {e}") from e
