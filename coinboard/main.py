"""Entrypoint: builds the fetch pipeline and runs one warm-up refresh.

``build_service`` is the composition root used by the dashboard; the
schedulers and the cache it creates live for the whole process.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from . import config
from .cache_store import CacheStore
from .coingecko import CoinGeckoClient
from .fetcher import ResourceFetcher
from .geckoterminal import GeckoTerminalClient
from .logger import setup_logging
from .market import MarketService
from .retry import RetryScheduler
from .scheduler import RequestScheduler
from .storage import JsonFileStore, MemoryStore
from .watchlist import Watchlist

logger = logging.getLogger(__name__)


def build_service(settings: config.Settings | None = None) -> MarketService:
    s = settings or config.settings
    store = JsonFileStore(s.CACHE_FILE) if s.CACHE_FILE else MemoryStore()
    cache = CacheStore(store)
    retries = RetryScheduler()

    # One lane per upstream: each API enforces its own rate limit.
    gecko_fetcher = ResourceFetcher(
        cache,
        RequestScheduler(s.REQUEST_INTERVAL_S, name="coingecko"),
        retries,
        retry_delay_s=s.RETRY_DELAY_S,
        max_retries=s.MAX_RETRIES,
    )
    terminal_fetcher = ResourceFetcher(
        cache,
        RequestScheduler(s.REQUEST_INTERVAL_S, name="geckoterminal"),
        retries,
        retry_delay_s=s.RETRY_DELAY_S,
        max_retries=s.MAX_RETRIES,
    )

    watchlist = Watchlist(store)
    watchlist.load()

    return MarketService(
        gecko=CoinGeckoClient(
            s.COINGECKO_BASE_URL, s.VS_CURRENCY, s.LOCALIZATION, s.HTTP_TIMEOUT_S
        ),
        gecko_fetcher=gecko_fetcher,
        terminal=GeckoTerminalClient(s.GECKOTERMINAL_BASE_URL, s.HTTP_TIMEOUT_S),
        terminal_fetcher=terminal_fetcher,
        watchlist=watchlist,
        cache_ttl_s=s.CACHE_TTL_S,
        chart_ttl_s=s.CHART_TTL_S,
    )


async def warm_up(service: MarketService, coins_file: str | None = None) -> None:
    """Import the coins file if the watchlist is empty, then refresh everything."""
    if coins_file and not len(service.watchlist) and Path(coins_file).exists():
        try:
            added = service.watchlist.load_file(coins_file)
            logger.info("Imported %d coins from %s", added, coins_file)
        except Exception:
            logger.exception("Failed to import %s", coins_file)

    top = await service.top_coins()
    logger.info("Top coins: %s", top.status)

    summary = await service.refresh_all()
    if summary.failed:
        logger.warning("No data yet for: %s", ", ".join(summary.failed))

    # One-shot run: timers armed above would outlive the event loop.
    service.gecko_fetcher.retries.cancel_all()


def run() -> None:
    setup_logging()
    logger.info("Starting coinboard")
    service = build_service()
    asyncio.run(warm_up(service, config.settings.COINS_FILE))


if __name__ == "__main__":
    run()
