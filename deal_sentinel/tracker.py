"""
Price tracking and alert evaluation.

`PriceTracker` owns the tracked-game collection.  Every change follows the
same three steps – load the full collection from the repository, mutate it in
memory, save it back – under one `asyncio.Lock`, so a refresh cycle and a
track/remove request never interleave their read-modify-write.

A refresh polls each game by its CheapShark id, one game at a time.  A failure
for one game is written to that game's ``last_error`` and the cycle moves on;
the collection is saved once at the end of the cycle.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable, List, Optional

from .errors import UpstreamError, ValidationError
from .models import PriceAlert, RefreshReport, SearchResult, TrackedGame
from .notifier import ALERT_PRIORITY
from .rules import best_price, should_alert
from .storage import AlertLog, TrackedGameRepository
from .util import money, now_ts

logger = logging.getLogger(__name__)

ALERT_TITLE = "Price Drop Alert!"


def _validate_target(target_price) -> float:
    try:
        target = float(target_price)
    except (TypeError, ValueError):
        raise ValidationError("Please enter a valid target price!") from None
    if not (math.isfinite(target) and target > 0):
        raise ValidationError("Please enter a valid target price!")
    return target


def _validate_seed_price(price_value) -> float:
    try:
        price = float(price_value)
    except (TypeError, ValueError):
        raise ValidationError("Search result has no valid price.") from None
    if not (math.isfinite(price) and price >= 0):
        raise ValidationError("Search result has no valid price.")
    return price


class PriceTracker:
    """Maintain tracked games and decide when to raise a price-drop alert."""

    def __init__(
        self,
        repository: TrackedGameRepository,
        client,
        notifier,
        alert_log: Optional[AlertLog] = None,
        clock: Callable[[], str] = now_ts,
    ) -> None:
        self.repository = repository
        self.client = client
        self.notifier = notifier
        self.alert_log = alert_log
        self.clock = clock
        self.scheduler = None
        self._lock = asyncio.Lock()
        self._refreshing = False

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    async def add_tracked(self, result: SearchResult, target_price) -> TrackedGame:
        target = _validate_target(target_price)
        seed = _validate_seed_price(result.price_value)
        async with self._lock:
            games = self.repository.load()
            game = TrackedGame(
                id=result.id,
                title=result.title,
                current_price=seed,
                target_price=target,
                url=result.url,
                added_at=self.clock(),
                shop=result.shop or None,
            )
            games[game.id] = game
            self.repository.save(games)
        logger.info("Tracking %s (%s) at target %s", game.title, game.id, money(target))
        if self.scheduler is not None:
            self.scheduler.arm()
        return game

    async def remove_tracked(self, game_id: str) -> bool:
        async with self._lock:
            games = self.repository.load()
            if games.pop(game_id, None) is None:
                return False
            self.repository.save(games)
        logger.info("Stopped tracking %s", game_id)
        return True

    def list_tracked(self) -> List[TrackedGame]:
        return list(self.repository.load().values())

    async def refresh_all(self) -> RefreshReport:
        """Poll every tracked game once, alert on new drops, save the batch."""
        async with self._lock:
            self._refreshing = True
            try:
                games = self.repository.load()
                report = RefreshReport()
                for game in games.values():
                    report.checked += 1
                    alert = await self._refresh_one(game)
                    if game.last_error:
                        report.failed += 1
                    if alert is not None:
                        report.alerts.append(alert)
                self.repository.save(games)
            finally:
                self._refreshing = False
        logger.info(
            "Price check completed: %d checked, %d failed, %d alert(s)",
            report.checked, report.failed, len(report.alerts),
        )
        for alert in report.alerts:
            await self._send_alert(alert)
        return report

    async def _refresh_one(self, game: TrackedGame) -> Optional[PriceAlert]:
        try:
            deals = await self.client.game_deals(game.id)
            new_price = best_price(deals)
            if new_price is None:
                raise UpstreamError("no deals returned")
        except UpstreamError as exc:
            logger.warning("Error checking price for %s: %s", game.title, exc)
            game.last_checked = self.clock()
            game.last_error = str(exc)
            return None

        alert = None
        if should_alert(new_price, game.target_price, game.current_price):
            alert = PriceAlert(
                game_id=game.id,
                title=game.title,
                old_price=game.current_price,
                new_price=new_price,
                target_price=game.target_price,
                url=game.url,
            )
            logger.info("Price drop: %s - %s", game.title, money(new_price))
        game.current_price = new_price
        game.last_checked = self.clock()
        game.last_error = None
        return alert

    async def _send_alert(self, alert: PriceAlert) -> None:
        message = f"{alert.title} is now {money(alert.new_price)} (was {money(alert.old_price)})"
        if alert.url:
            message += f"\n{alert.url}"
        if self.alert_log is not None:
            try:
                self.alert_log.record(alert, self.clock())
            except OSError:
                logger.exception("Could not write alert log")
        await self.notifier.notify(ALERT_TITLE, message, ALERT_PRIORITY)
