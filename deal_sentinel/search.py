"""
Game search and result formatting.

Turns CheapShark's raw candidate list into display-ready `SearchResult`
values.  No state is kept between calls.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .cheapshark import deal_url
from .config import cfg
from .errors import UpstreamError, ValidationError
from .models import SearchResult
from .util import money

logger = logging.getLogger(__name__)

BEST_PRICE_LABEL = "Best price available"


def _parse_price(value: Any, what: str) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise UpstreamError(f"unparseable {what}: {value!r}") from exc
    if price < 0:
        raise UpstreamError(f"negative {what}: {value!r}")
    return price


def price_label(price: float) -> str:
    return money(price) if price > 0 else "Free"


def shop_label(price: float, normal: Optional[float]) -> str:
    if normal is not None and price < normal:
        return f"On Sale! (was {money(normal)})"
    return BEST_PRICE_LABEL


def format_result(raw: Dict[str, Any]) -> SearchResult:
    """Build a `SearchResult` from one CheapShark search candidate."""
    if not isinstance(raw, dict) or not raw.get("gameID"):
        raise UpstreamError("search candidate without gameID")
    cheapest = _parse_price(raw.get("cheapest"), "cheapest price")
    normal_raw = raw.get("normalPrice")
    normal = _parse_price(normal_raw, "normal price") if normal_raw not in (None, "") else cheapest
    return SearchResult(
        id=str(raw["gameID"]),
        title=str(raw.get("external") or raw.get("internalName") or raw["gameID"]),
        price=price_label(cheapest),
        price_value=cheapest,
        shop=shop_label(cheapest, normal),
        url=deal_url(raw.get("cheapestDealID")),
    )


async def search_games(client, query: str, limit: Optional[int] = None) -> List[SearchResult]:
    """Search by free text and return at most `limit` formatted results.

    Raises `ValidationError` for a blank query and `UpstreamError` when the
    API call fails or returns a payload that can't be formatted.
    """
    query = (query or "").strip()
    if not query:
        raise ValidationError("Enter a game title to search for.")
    limit = limit or cfg.search_limit
    candidates = await client.search_games(query, cfg.upstream_limit)
    results = [format_result(c) for c in candidates[:limit]]
    logger.info("search %r -> %d result(s)", query, len(results))
    return results
