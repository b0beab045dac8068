"""Amap place search client."""

import logging
from typing import Optional, Tuple

import httpx

from .config import Config
from .errors import TransportError
from .retry import RetryPolicy, send_with_retry

logger = logging.getLogger(__name__)

# Amap POI type code for place names and addresses
PLACE_NAME_TYPES = "190000"


class AmapClient:
    """Resolves place names in one city to coordinates."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        city: str,
        timeout: float = 10.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.city = city
        self.retry = retry or RetryPolicy(attempts=2, base_delay=0.5)

    @classmethod
    def from_config(cls, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AmapClient":
        return cls(
            base_url=cfg.amap_base_url,
            api_key=cfg.amap_api_key,
            city=cfg.city_name,
            timeout=cfg.amap_timeout,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def search_place(self, keywords: str) -> dict:
        params = {
            "key": self.api_key,
            "keywords": keywords,
            "types": PLACE_NAME_TYPES,
            "city": self.city,
            "output": "JSON",
        }
        resp = await send_with_retry(
            lambda: self.client.get(f"{self.base_url}/place/text", params=params),
            self.retry,
            "Amap",
        )
        if resp.status_code != 200:
            raise TransportError(f"Amap returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"Undecodable Amap response: {e}") from e

        if str(data.get("status")) != "1":
            raise TransportError(f"Amap error: {data.get('info', 'unknown')}")
        return data

    async def locate(self, keywords: str) -> Optional[Tuple[str, str]]:
        """
        Coordinates of the best match as ``(latitude, longitude)``.

        Returns None when nothing matches. Amap reports locations as
        ``"lng,lat"``.
        """
        data = await self.search_place(keywords)
        pois = data.get("pois") or []
        if not pois:
            logger.info(f"No place found for {keywords!r}")
            return None

        location = pois[0].get("location", "")
        parts = location.split(",") if isinstance(location, str) else []
        if len(parts) != 2:
            raise TransportError(f"Unparseable Amap location: {location!r}")

        longitude, latitude = parts[0].strip(), parts[1].strip()
        logger.info(f"Located {keywords!r} at lat={latitude}, lng={longitude}")
        return latitude, longitude
