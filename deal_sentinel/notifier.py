"""
Notification subsystem for DealSentinel.

Every sink exposes one coroutine, ``notify(title, message, priority)``.  It is
fire-and-forget: delivery problems are logged and never raised to the caller.

- `DiscordNotifier` posts an embed to a Discord webhook.
- `LogNotifier` only writes to the log (used when no webhook is configured).

Priority 2 is a price-drop alert and always goes out.  Anything lower is held
back during quiet hours (``QUIET_HOURS``, e.g. "23:00-07:00", evaluated in
``TIMEZONE``).
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import pytz

from .config import cfg

logger = logging.getLogger(__name__)

ALERT_PRIORITY = 2

_COLORS = {0: 0x2B3137, 1: 0x00BFFF, 2: 0xFFD700}


def _parse_quiet_window(q: str) -> Optional[Tuple[dt.time, dt.time]]:
    """
    Accepts "HH:MM-HH:MM" (e.g., "23:00-07:00"), returns (start, end) as time objects.
    Returns None if parsing fails or q empty.
    """
    if not q or "-" not in q:
        return None
    try:
        left, right = q.split("-", 1)
        hh1, mm1 = [int(x) for x in left.strip().split(":")]
        hh2, mm2 = [int(x) for x in right.strip().split(":")]
        return (dt.time(hour=hh1, minute=mm1), dt.time(hour=hh2, minute=mm2))
    except ValueError:
        return None


def _now_local() -> dt.datetime:
    return dt.datetime.now(pytz.timezone(cfg.timezone))


def in_quiet_hours(quiet_hours: Optional[str] = None, now: Optional[dt.time] = None) -> bool:
    """Return True if `now` (default: local time) is within the quiet window."""
    window = _parse_quiet_window(cfg.quiet_hours if quiet_hours is None else quiet_hours)
    if not window:
        return False
    start, end = window
    now = now or _now_local().time()
    if start < end:
        return start <= now <= end
    # overnight window (e.g., 23:00-07:00)
    return now >= start or now <= end


class LogNotifier:
    """Write notifications to the log."""

    def __init__(self, quiet_hours: Optional[str] = None) -> None:
        self.quiet_hours = quiet_hours

    def _suppressed(self, priority: int) -> bool:
        return priority < ALERT_PRIORITY and in_quiet_hours(self.quiet_hours)

    async def notify(self, title: str, message: str, priority: int = 0) -> None:
        if self._suppressed(priority):
            logger.debug("quiet hours, holding back: %s", title)
            return
        logger.info("[notify p%s] %s: %s", priority, title, message)

    async def close(self) -> None:
        return None


class DiscordNotifier(LogNotifier):
    """Send notifications to a Discord channel via webhook."""

    def __init__(self, webhook_url: str, quiet_hours: Optional[str] = None) -> None:
        super().__init__(quiet_hours)
        self.webhook_url = webhook_url
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()

    async def send(self, content: str = "", embeds: Optional[List[Dict[str, Any]]] = None) -> None:
        """Post a generic message to Discord."""
        session = await self._ensure_session()
        payload: Dict[str, Any] = {"content": content}
        if embeds:
            payload["embeds"] = embeds
        try:
            # ?wait=true makes Discord answer 200 with a body instead of 204
            async with session.post(f"{self.webhook_url}?wait=true", json=payload) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    logger.warning("Discord webhook returned %s: %s", resp.status, text)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to send Discord message: %s", exc)

    async def notify(self, title: str, message: str, priority: int = 0) -> None:
        if self._suppressed(priority):
            logger.debug("quiet hours, holding back: %s", title)
            return
        embed = {
            "title": title[:256],
            "description": message[:4096],
            "timestamp": _now_local().isoformat(),
            "color": _COLORS.get(priority, _COLORS[0]),
        }
        await self.send(embeds=[embed])


def make_notifier():
    if cfg.discord_webhook:
        return DiscordNotifier(cfg.discord_webhook)
    logger.info("DISCORD_WEBHOOK_URL not set; notifications go to the log only")
    return LogNotifier()
