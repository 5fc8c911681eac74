"""Market data service: what the dashboard pages call.

Every method returns a ``FetchResult`` (or a summary built from them) and
never raises for upstream trouble; rate limits and outages surface as stale
or ``retrying`` results.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from .cache_store import make_key
from .coingecko import CoinGeckoClient, validate_period
from .errors import CoinNotFoundError, UnsupportedResourceError
from .fetcher import ResourceFetcher
from .geckoterminal import GeckoTerminalClient, network_info
from .models.coin import TrackedCoin
from .models.fetch_result import FetchResult
from .watchlist import Watchlist

logger = logging.getLogger(__name__)


@dataclass
class RefreshSummary:
    total: int = 0
    updated: int = 0
    failed: list[str] = field(default_factory=list)
    skipped: bool = False


class MarketService:
    def __init__(
        self,
        gecko: CoinGeckoClient,
        gecko_fetcher: ResourceFetcher,
        terminal: GeckoTerminalClient,
        terminal_fetcher: ResourceFetcher,
        watchlist: Watchlist,
        cache_ttl_s: float = 5 * 60,
        chart_ttl_s: float = 5 * 60,
    ) -> None:
        self.gecko = gecko
        self.gecko_fetcher = gecko_fetcher
        self.terminal = terminal
        self.terminal_fetcher = terminal_fetcher
        self.watchlist = watchlist
        self.cache_ttl_s = cache_ttl_s
        self.chart_ttl_s = chart_ttl_s
        self._active_chart: dict[str, str] = {}
        self._updating = False
        terminal_fetcher.add_listener(self._on_token_result)

    # --- CoinGecko --------------------------------------------------------

    def _markets_key(self) -> str:
        return make_key("markets", self.gecko.vs_currency, 100)

    async def top_coins(self, refresh: bool = False) -> FetchResult:
        """Top 100 coins by market cap."""

        async def _load():
            return await asyncio.to_thread(self.gecko.markets, 100, 1)

        key = self._markets_key()
        if refresh:
            return await self.gecko_fetcher.refresh(key, _load)
        return await self.gecko_fetcher.fetch(key, _load, self.cache_ttl_s)

    async def coin_details(self, coin_id: str, refresh: bool = False) -> FetchResult:
        async def _load():
            return await asyncio.to_thread(self.gecko.coin_details, coin_id)

        key = make_key("details", coin_id, self.gecko.vs_currency)
        if refresh:
            return await self.gecko_fetcher.refresh(key, _load)
        return await self.gecko_fetcher.fetch(key, _load, self.cache_ttl_s)

    async def price_chart(
        self, coin_id: str, days: str | int = "1", refresh: bool = False
    ) -> FetchResult:
        """Price series for the chart; switching period drops the old period's retry."""
        try:
            period = validate_period(days)
        except UnsupportedResourceError as exc:
            return FetchResult.unsupported(str(exc))

        key = make_key("chart", coin_id, f"{self.gecko.vs_currency}:{period}")
        previous = self._active_chart.get(coin_id)
        if previous and previous != key:
            self.gecko_fetcher.retries.cancel(previous)
        self._active_chart[coin_id] = key

        async def _load():
            return await asyncio.to_thread(self.gecko.market_chart, coin_id, period)

        if refresh:
            return await self.gecko_fetcher.refresh(key, _load)
        return await self.gecko_fetcher.fetch(key, _load, self.chart_ttl_s)

    # --- GeckoTerminal ----------------------------------------------------

    @staticmethod
    def _token_key(kind: str, coin: TrackedCoin) -> str:
        return make_key(kind, coin.network, coin.contract)

    async def token_snapshot(self, coin: TrackedCoin, refresh: bool = False) -> FetchResult:
        try:
            network_info(coin.network)
        except UnsupportedResourceError as exc:
            return FetchResult.unsupported(str(exc))

        async def _load():
            return await self.terminal.token_snapshot(coin.network, coin.contract)

        key = self._token_key("token", coin)
        if refresh:
            result = await self.terminal_fetcher.refresh(key, _load)
        else:
            result = await self.terminal_fetcher.fetch(key, _load, self.cache_ttl_s)
        self._apply_snapshot(coin, result)
        return result

    def _apply_snapshot(self, coin: TrackedCoin, result: FetchResult) -> None:
        if not result.available or not isinstance(result.value, dict):
            return
        try:
            self.watchlist.apply_market_data(coin.id, result.value)
        except CoinNotFoundError:
            logger.debug("%s was removed while its data was loading", coin.symbol)

    def _on_token_result(self, key: str, result: FetchResult) -> None:
        """Copy a snapshot that arrived through a background retry into the watchlist."""
        for coin in self.watchlist:
            if self._token_key("token", coin) == key:
                self._apply_snapshot(coin, result)
                return

    async def token_history(self, coin: TrackedCoin, refresh: bool = False) -> FetchResult:
        try:
            network_info(coin.network)
        except UnsupportedResourceError as exc:
            return FetchResult.unsupported(str(exc))

        async def _load():
            return await self.terminal.price_history(coin.network, coin.contract)

        key = self._token_key("history", coin)
        if refresh:
            return await self.terminal_fetcher.refresh(key, _load)
        return await self.terminal_fetcher.fetch(key, _load, self.chart_ttl_s)

    # --- Watchlist --------------------------------------------------------

    async def add_coin(
        self, name: str, symbol: str, contract: str, network: str, **details: object
    ) -> tuple[TrackedCoin, FetchResult]:
        """Track a coin and fetch its first snapshot.

        Raises:
            UnsupportedResourceError: Unknown network.
            InvalidContractError: Contract is not an address on that network.
            DuplicateCoinError: Contract already tracked on that network.
        """
        coin = self.watchlist.add(name, symbol, contract, network, **details)
        result = await self.token_snapshot(coin)
        if not result.available:
            logger.warning("Added %s but no market data yet: %s", coin.symbol, result.error)
        return coin, result

    def remove_coin(self, coin_id: int) -> TrackedCoin:
        coin = self.watchlist.remove(coin_id)
        self.terminal_fetcher.invalidate(self._token_key("token", coin))
        self.terminal_fetcher.invalidate(self._token_key("history", coin))
        return coin

    async def refresh_coin(self, coin_id: int) -> FetchResult:
        """Manual refresh of one tracked coin, bypassing the cache TTL."""
        coin = self.watchlist.get(coin_id)
        return await self.token_snapshot(coin, refresh=True)

    async def refresh_all(self) -> RefreshSummary:
        """Refresh every tracked coin, least recently updated first.

        Only one run at a time; a second call while one is running returns
        a summary with ``skipped`` set.
        """
        if self._updating:
            logger.info("Refresh already in progress")
            return RefreshSummary(skipped=True)
        self._updating = True
        try:
            coins = self.watchlist.refresh_order()
            results = await asyncio.gather(*(self.token_snapshot(c) for c in coins))
            summary = RefreshSummary(total=len(coins))
            for coin, result in zip(coins, results):
                if result.available:
                    summary.updated += 1
                else:
                    summary.failed.append(coin.symbol)
            logger.info("Data refreshed: %d/%d coins", summary.updated, summary.total)
            return summary
        finally:
            self._updating = False


__all__ = ["MarketService", "RefreshSummary"]
