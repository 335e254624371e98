"""
Data types shared by the search and tracking components.

`SearchResult` is produced fresh for every search and never mutated.
`TrackedGame` is the persisted record; its dict form (see `to_dict`) is what
ends up in the key-value store, keyed by game id.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SearchResult:
    id: str
    title: str
    price: str            # "$19.99" or "Free"
    price_value: float
    shop: str             # "On Sale! (was $29.99)" or "Best price available"
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SearchResult":
        return cls(
            id=str(raw["id"]),
            title=str(raw["title"]),
            price=str(raw.get("price") or ""),
            price_value=float(raw["price_value"]),
            shop=str(raw.get("shop") or ""),
            url=str(raw.get("url") or ""),
        )


@dataclass
class TrackedGame:
    id: str
    title: str
    current_price: float
    target_price: float
    url: str
    added_at: str
    last_checked: Optional[str] = None
    last_error: Optional[str] = None
    shop: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TrackedGame":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in raw.items() if k in known}
        data["current_price"] = float(data["current_price"])
        data["target_price"] = float(data["target_price"])
        return cls(**data)


@dataclass(frozen=True)
class PriceAlert:
    game_id: str
    title: str
    old_price: float
    new_price: float
    target_price: float
    url: str = ""


@dataclass
class RefreshReport:
    """Outcome of one refresh cycle."""

    checked: int = 0
    failed: int = 0
    alerts: List[PriceAlert] = field(default_factory=list)
    skipped: bool = False

    @property
    def succeeded(self) -> int:
        return self.checked - self.failed
