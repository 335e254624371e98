"""
Alert rule definitions for DealSentinel.

A tracked game alerts on the transition into "at or below target": the new
price must be at or under the target *and* strictly under the price stored
from the previous poll.  A price that sits flat below target after the first
alert stays quiet until it moves down again.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


def deal_price(deal: Dict[str, Any]) -> Optional[float]:
    """Price of one deal, or None when the deal carries no usable price."""
    if not isinstance(deal, dict):
        return None
    raw = deal.get("price", deal.get("salePrice"))
    try:
        price = float(raw)
    except (TypeError, ValueError):
        return None
    return price if price >= 0 else None


def best_price(deals: Iterable[Dict[str, Any]]) -> Optional[float]:
    """Minimum price across deals; None if no deal has a price."""
    prices = [p for p in (deal_price(d) for d in deals) if p is not None]
    return min(prices) if prices else None


def should_alert(new_price: float, target_price: float, stored_price: float) -> bool:
    return new_price <= target_price and new_price < stored_price
