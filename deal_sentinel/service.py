"""
Request/response boundary shared by every DealSentinel surface.

The web app, the CLI menu and the Discord bot all talk to one
`DealTrackerService`, which wires the CheapShark client, the tracker, the
poll scheduler and the notifier together.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from .cheapshark import CheapSharkClient
from .errors import UpstreamError, ValidationError
from .models import RefreshReport, SearchResult, TrackedGame
from .notifier import make_notifier
from .scheduler import PollScheduler
from .search import search_games
from .storage import AlertLog, TrackedGameRepository, make_store
from .tracker import PriceTracker

logger = logging.getLogger(__name__)

SEARCH_FAILED = "Search failed. Please try again."


class DealTrackerService:
    def __init__(self, client, tracker: PriceTracker, scheduler: PollScheduler, notifier) -> None:
        self.client = client
        self.tracker = tracker
        self.scheduler = scheduler
        self.notifier = notifier

    async def search(self, query: str) -> Dict[str, Any]:
        try:
            results = await search_games(self.client, query)
        except ValidationError as exc:
            return {"error": str(exc)}
        except UpstreamError as exc:
            logger.warning("Search error for %r: %s", query, exc)
            return {"error": SEARCH_FAILED}
        return {"results": [r.to_dict() for r in results]}

    async def track(self, result: Union[SearchResult, Dict[str, Any]], target_price) -> TrackedGame:
        if not isinstance(result, SearchResult):
            try:
                result = SearchResult.from_dict(result)
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"Not a valid search result: {exc}") from exc
        return await self.tracker.add_tracked(result, target_price)

    async def remove(self, game_id: str) -> Dict[str, Any]:
        await self.tracker.remove_tracked(game_id)
        return {"ok": True}

    def list_tracked(self) -> List[TrackedGame]:
        return self.tracker.list_tracked()

    async def check_now(self) -> RefreshReport:
        return await self.scheduler.run_now()

    async def start(self) -> None:
        """Arm the poller; its first cycle runs straight away."""
        if not self.tracker.repository.exists():
            logger.info("First run: no tracked games stored yet")
            self.tracker.repository.save({})
        count = len(self.list_tracked())
        await self.notifier.notify("DealSentinel online", f"Watching {count} game(s) for price drops.", 0)
        self.scheduler.start()

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.client.close()
        await self.notifier.close()


def build_service(store=None, client=None, notifier=None, alert_log: Optional[AlertLog] = None) -> DealTrackerService:
    """Assemble a service from config, overriding any collaborator given."""
    client = client or CheapSharkClient()
    notifier = notifier or make_notifier()
    repository = TrackedGameRepository(store if store is not None else make_store())
    tracker = PriceTracker(repository, client, notifier, alert_log=alert_log or AlertLog())
    scheduler = PollScheduler.for_tracker(tracker)
    return DealTrackerService(client, tracker, scheduler, notifier)
