"""CoinGecko market API helpers."""

from __future__ import annotations

import logging
from typing import Any, TypedDict

import requests

from .errors import RateLimitedError, UnsupportedResourceError, UpstreamError

__all__ = [
    "CoinGeckoClient",
    "CHART_PERIODS",
    "MarketRow",
    "extract_market_rows",
    "summarize_details",
    "extract_chart_prices",
    "validate_period",
]

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Periods offered by the chart controls, in days.
CHART_PERIODS = ("1", "7", "30", "365", "max")


class MarketRow(TypedDict, total=False):
    """One coin of the /coins/markets listing."""

    id: str
    name: str
    symbol: str
    image: str
    current_price: float | None
    price_change_percentage_24h: float | None
    market_cap: float | None
    total_volume: float | None
    market_cap_rank: int | None


def validate_period(days: str | int) -> str:
    period = str(days).strip().lower()
    if period not in CHART_PERIODS:
        raise UnsupportedResourceError(
            f"Unsupported chart period {days!r}; expected one of {', '.join(CHART_PERIODS)}"
        )
    return period


class CoinGeckoClient:
    """Blocking client; callers run it in a worker thread."""

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        vs_currency: str = "brl",
        localization: str = "pt",
        timeout: float = 12.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.vs_currency = vs_currency
        self.localization = localization
        self.timeout = timeout

    def _fetch(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"User-Agent": _USER_AGENT, "Accept": "application/json"}
        try:
            resp = requests.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"CoinGecko request failed: {e}") from e
        if resp.status_code == 429:
            raise RateLimitedError.from_headers("CoinGecko rate limit exceeded", resp.headers)
        if not resp.ok:
            snippet = resp.text[:500].replace("\n", " ")
            raise UpstreamError(
                f"CoinGecko HTTP {resp.status_code}: {snippet}", resp.status_code
            )
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(f"CoinGecko returned invalid JSON: {e}") from e

    def markets(self, per_page: int = 100, page: int = 1) -> list[MarketRow]:
        data = self._fetch(
            "/coins/markets",
            {
                "vs_currency": self.vs_currency,
                "order": "market_cap_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": "false",
                "price_change_percentage": "24h",
            },
        )
        return extract_market_rows(data)

    def coin_details(self, coin_id: str) -> dict[str, Any]:
        data = self._fetch(
            f"/coins/{coin_id}",
            {
                "localization": "true",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
        )
        return summarize_details(data, self.vs_currency, self.localization)

    def market_chart(self, coin_id: str, days: str | int) -> list[list[float]]:
        period = validate_period(days)
        data = self._fetch(
            f"/coins/{coin_id}/market_chart",
            {"vs_currency": self.vs_currency, "days": period},
        )
        return extract_chart_prices(data)


def _num(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_market_rows(data: Any) -> list[MarketRow]:
    if not isinstance(data, list):
        raise UpstreamError("CoinGecko markets payload is not a list")
    rows: list[MarketRow] = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("id"):
            continue
        rows.append(
            {
                "id": entry["id"],
                "name": entry.get("name") or entry["id"],
                "symbol": (entry.get("symbol") or "").upper(),
                "image": entry.get("image") or "",
                "current_price": _num(entry.get("current_price")),
                "price_change_percentage_24h": _num(
                    entry.get("price_change_percentage_24h")
                ),
                "market_cap": _num(entry.get("market_cap")),
                "total_volume": _num(entry.get("total_volume")),
                "market_cap_rank": entry.get("market_cap_rank"),
            }
        )
    return rows


def summarize_details(
    coin: Any, vs_currency: str = "brl", localization: str = "pt"
) -> dict[str, Any]:
    """Flatten a /coins/{id} payload into the fields the detail page shows.

    Amounts are picked in ``vs_currency``. The description prefers
    ``localization`` and falls back to English.
    """
    if not isinstance(coin, dict) or "id" not in coin:
        raise UpstreamError("CoinGecko coin payload is missing 'id'")
    market = coin.get("market_data") or {}

    def in_currency(field: str) -> float | None:
        values = market.get(field) or {}
        return _num(values.get(vs_currency)) if isinstance(values, dict) else None

    change_24h = in_currency("price_change_percentage_24h_in_currency")
    if change_24h is None:
        change_24h = _num(market.get("price_change_percentage_24h"))

    description = coin.get("description") or {}
    links = coin.get("links") or {}
    homepage = [h for h in (links.get("homepage") or []) if h]
    github = [g for g in ((links.get("repos_url") or {}).get("github") or []) if g]
    twitter = links.get("twitter_screen_name")
    telegram = links.get("telegram_channel_identifier")

    return {
        "id": coin["id"],
        "name": coin.get("name") or coin["id"],
        "symbol": (coin.get("symbol") or "").upper(),
        "image": (coin.get("image") or {}).get("large") or "",
        "price": in_currency("current_price"),
        "price_change_24h": change_24h,
        "market_cap": in_currency("market_cap"),
        "total_volume": in_currency("total_volume"),
        "circulating_supply": _num(market.get("circulating_supply")),
        "total_supply": _num(market.get("total_supply")),
        "market_cap_rank": market.get("market_cap_rank"),
        "ath": in_currency("ath"),
        "ath_change": in_currency("ath_change_percentage"),
        "description": description.get(localization) or description.get("en") or "",
        "links": {
            "website": homepage[0] if homepage else "",
            "twitter": f"https://twitter.com/{twitter}" if twitter else "",
            "reddit": links.get("subreddit_url") or "",
            "telegram": f"https://t.me/{telegram}" if telegram else "",
            "github": github[0] if github else "",
        },
    }


def extract_chart_prices(data: Any) -> list[list[float]]:
    """Return ``[timestamp_ms, price]`` pairs, dropping malformed points."""
    if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
        raise UpstreamError("CoinGecko chart payload has no 'prices' list")
    points: list[list[float]] = []
    for point in data["prices"]:
        if not isinstance(point, (list, tuple)) or len(point) < 2:
            continue
        ts, price = _num(point[0]), _num(point[1])
        if ts is None or price is None:
            continue
        points.append([ts, price])
    return points
