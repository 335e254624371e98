"""
Entry point for the headless DealSentinel poller.

This script reads configuration from environment variables (and `.env`),
builds the service and keeps the price checks running until interrupted.
A check runs immediately at start-up, then every ``POLL_MINUTES``.

You can run this module directly:
    python -m deal_sentinel.main

Environment variables:
* `DISCORD_WEBHOOK_URL` – Discord webhook for alerts (optional; log only without it)
* `POLL_MINUTES` – minutes between price checks (default 60)
* `STORE_BACKEND` – json, sqlite or memory (default json)
* `DATA_DIR` – where the store and alert log live (default ./data)
"""
from __future__ import annotations

import asyncio
import logging

from .config import cfg
from .service import build_service

logging.basicConfig(level=cfg.log_level)
logger = logging.getLogger(__name__)


async def async_main() -> None:
    service = build_service()
    try:
        await service.start()
        logger.info("DealSentinel running; checking prices every %s minute(s)", cfg.poll_minutes)
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await service.close()


def main() -> None:
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
