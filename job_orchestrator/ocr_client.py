"""OCR service client (documents and images by URL)."""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from .config import Config
from .errors import TransportError
from .retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)


class OCRResponse(BaseModel):
    code: int = 0
    data: str = ""
    cost_time_ms: float = 0.0
    msg: str = ""


class OCRClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryPolicy(attempts=1)

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "OCRClient":
        return cls(base_url=cfg.ocr_base_url, timeout=cfg.ocr_timeout, transport=transport)

    async def close(self):
        await self.client.aclose()

    async def parse_url(self, url: str) -> str:
        """Extract the text of the file at ``url``."""
        logger.info(f"OCR request: {url}")

        resp = await send_with_retry(
            lambda: self.client.post(f"{self.base_url}/ocr/url", json={"url": url}),
            self.retry,
            "OCR service",
        )
        if resp.status_code != 200:
            raise TransportError(f"OCR service returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            result = OCRResponse.model_validate_json(resp.content)
        except ValidationError as e:
            raise TransportError(f"Undecodable OCR response: {e}") from e

        logger.info(f"OCR result: code={result.code}, cost={result.cost_time_ms:.2f}ms, "
                    f"chars={len(result.data)}")

        if result.code != 200:
            raise TransportError(f"OCR failed: {result.msg or f'code {result.code}'}")
        return result.data
