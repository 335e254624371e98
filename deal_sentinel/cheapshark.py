"""
CheapShark API client.

CheapShark aggregates deals across storefronts and needs no API key.  Only two
endpoints are used:

* ``GET /games?title=...&limit=N`` – candidate games for a free-text title,
  each with ``gameID``, ``external`` (display name), ``cheapest`` and
  ``cheapestDealID``.
* ``GET /games?id=...`` – the current deals for one game; each deal carries a
  ``price``.

Every failure (network, HTTP status, unparseable body) is raised as
`UpstreamError` so callers only deal with one exception type.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .config import cfg
from .errors import UpstreamError

logger = logging.getLogger(__name__)

REDIRECT_URL = "https://www.cheapshark.com/redirect?dealID={deal_id}"


def deal_url(deal_id: Optional[str]) -> str:
    return REDIRECT_URL.format(deal_id=deal_id) if deal_id else ""


class CheapSharkClient:
    """Thin async wrapper around the CheapShark REST API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.base_url = (base_url or cfg.cheapshark_base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or cfg.http_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()

    async def __aenter__(self) -> "CheapSharkClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.get(url, params=params) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    logger.warning("CheapShark returned %s for %s: %s", resp.status, path, text[:200])
                    raise UpstreamError(f"HTTP error {resp.status}", status=resp.status)
                return await resp.json(content_type=None)
        except UpstreamError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise UpstreamError(f"request failed: {exc or type(exc).__name__}") from exc
        except ValueError as exc:
            raise UpstreamError("malformed response from CheapShark") from exc

    async def search_games(self, title: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return the raw candidate list for a title search."""
        data = await self._get_json("/games", {"title": title, "limit": limit or cfg.upstream_limit})
        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamError("malformed search payload")
        return data

    async def game_deals(self, game_id: str) -> List[Dict[str, Any]]:
        """Return the current deals for a CheapShark game id (empty when unknown)."""
        data = await self._get_json("/games", {"id": game_id})
        # unknown ids come back as an empty list
        if not data:
            return []
        if not isinstance(data, dict):
            raise UpstreamError("malformed game payload")
        deals = data.get("deals") or []
        if not isinstance(deals, list) or not all(isinstance(d, dict) for d in deals):
            raise UpstreamError("malformed deals list")
        return deals
