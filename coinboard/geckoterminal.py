"""Async GeckoTerminal client for on-chain tokens tracked by contract."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from .errors import (
    InvalidContractError,
    RateLimitedError,
    UnsupportedResourceError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

DEFAULT_LOGO = "https://via.placeholder.com/64?text=LOGO"


@dataclass(frozen=True)
class NetworkInfo:
    api_path: str
    name: str
    contract_length: int
    prefix: str


NETWORKS: dict[str, NetworkInfo] = {
    "eth": NetworkInfo("eth", "Ethereum", 42, "0x"),
    "bsc": NetworkInfo("bsc", "Binance Smart Chain", 42, "0x"),
    "polygon": NetworkInfo("polygon", "Polygon", 42, "0x"),
    "avax": NetworkInfo("avalanche", "Avalanche", 42, "0x"),
    "arbitrum": NetworkInfo("arbitrum", "Arbitrum", 42, "0x"),
    "optimism": NetworkInfo("optimism", "Optimism", 42, "0x"),
    "solana": NetworkInfo("solana", "Solana", 44, ""),
}


def network_info(network: str) -> NetworkInfo:
    info = NETWORKS.get((network or "").strip().lower())
    if info is None:
        raise UnsupportedResourceError(f'Network "{network}" is not supported')
    return info


# Base58 mints (Solana) are 32 to 44 characters; EVM addresses are fixed size.
_MIN_BASE58_LENGTH = 32
_HEX_ADDRESS = re.compile(r"^0x[0-9a-f]+$")
_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")


def normalize_contract(network: str, contract: str) -> str:
    """Validate ``contract`` against ``network`` and return its stored form.

    Hex addresses are case-insensitive and get lower-cased. Base58
    addresses are case-sensitive and are only stripped.

    Raises:
        UnsupportedResourceError: Unknown network.
        InvalidContractError: Address does not fit the network's format.
    """
    net = network_info(network)
    address = (contract or "").strip()
    if net.prefix:
        lowered = address.lower()
        if (
            not lowered.startswith(net.prefix)
            or len(lowered) != net.contract_length
            or not _HEX_ADDRESS.match(lowered)
        ):
            raise InvalidContractError(
                f"{address!r} is not a valid {net.name} contract address"
            )
        return lowered
    if not (
        _MIN_BASE58_LENGTH <= len(address) <= net.contract_length
        and _BASE58_ADDRESS.match(address)
    ):
        raise InvalidContractError(f"{address!r} is not a valid {net.name} contract address")
    return address


class GeckoTerminalClient:
    """Async client for the GeckoTerminal public API.

    ``transport`` is passed through to ``httpx.AsyncClient`` (tests use
    ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = "https://api.geckoterminal.com/api/v2",
        timeout: float = 12.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get(self, client: httpx.AsyncClient, path: str, params: dict | None = None) -> Any:
        try:
            response = await client.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"GeckoTerminal request failed: {e}") from e
        if response.status_code == 429:
            raise RateLimitedError.from_headers(
                f"HTTP 429 from GeckoTerminal for {path}", response.headers
            )
        if response.is_error:
            raise UpstreamError(
                f"HTTP {response.status_code} from GeckoTerminal for {path}",
                response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"GeckoTerminal returned invalid JSON: {e}") from e

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def token_snapshot(self, network: str, contract: str) -> dict[str, Any]:
        """Fetch token info and its top pool, merged into one snapshot.

        Both calls run inside a single queued operation, as one logical
        request of the dashboard.
        """
        net = network_info(network)
        base = f"/networks/{net.api_path}/tokens/{contract}"
        async with self._client() as client:
            info = await self._get(client, f"{base}/info")
            pools = await self._get(client, f"{base}/pools")
        return parse_token_snapshot(info, pools)

    async def price_history(
        self, network: str, contract: str, limit: int = 30
    ) -> list[dict[str, Any]]:
        """Daily closing prices of the token's most liquid pool.

        Returns an empty list when the token has no pool or no OHLCV data.
        """
        net = network_info(network)
        async with self._client() as client:
            pools = await self._get(client, f"/networks/{net.api_path}/tokens/{contract}/pools")
            pool_id = top_pool_address(pools)
            if not pool_id:
                return []
            ohlcv = await self._get(
                client,
                f"/networks/{net.api_path}/pools/{pool_id}/ohlcv/day",
                {"aggregate": 1, "limit": limit},
            )
        return parse_ohlcv(ohlcv)


def _float(value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    return out if math.isfinite(out) else 0.0


def top_pool_address(pools: Any) -> str | None:
    data = (pools or {}).get("data") if isinstance(pools, dict) else None
    if not data or not isinstance(data, list):
        return None
    pool_id = (data[0] or {}).get("id") or ""
    # Pool ids look like "<network>_<address>"
    _, _, address = pool_id.partition("_")
    return address or None


def parse_token_snapshot(info: Any, pools: Any) -> dict[str, Any]:
    if not isinstance(info, dict) or not isinstance(pools, dict):
        raise UpstreamError("GeckoTerminal token payload is not an object")
    out: dict[str, Any] = {}

    attrs = (info.get("data") or {}).get("attributes")
    if isinstance(attrs, dict):
        twitter = attrs.get("twitter_handle")
        telegram = attrs.get("telegram_handle")
        websites = attrs.get("websites") or []
        image = attrs.get("image") or {}
        out["holders"] = int(_float((attrs.get("holders") or {}).get("count")))
        out["description"] = attrs.get("description") or ""
        out["website"] = websites[0] if websites else ""
        out["logo"] = attrs.get("image_url") or image.get("large") or DEFAULT_LOGO
        out["socials"] = {
            "twitter": f"https://twitter.com/{twitter}" if twitter else "",
            "telegram": f"https://t.me/{telegram}" if telegram else "",
            "discord": attrs.get("discord_url") or "",
        }

    data = pools.get("data")
    pool = data[0] if isinstance(data, list) and data else None
    pool_attrs = (pool or {}).get("attributes")
    if isinstance(pool_attrs, dict):
        changes = pool_attrs.get("price_change_percentage") or {}
        volume = pool_attrs.get("volume_usd") or {}
        out["price"] = _float(pool_attrs.get("base_token_price_usd"))
        out["price_change_24h"] = _float(changes.get("h24"))
        out["price_change_7d"] = _float(changes.get("d7") or changes.get("h7"))
        out["volume_24h"] = _float(volume.get("h24"))
        out["liquidity"] = _float(
            pool_attrs.get("reserve_in_usd") or pool_attrs.get("total_reserve_in_usd")
        )
    else:
        logger.debug("No pool with price data in GeckoTerminal payload")

    out["last_updated"] = datetime.now(timezone.utc).isoformat()
    return out


def parse_ohlcv(data: Any) -> list[dict[str, Any]]:
    """Turn ``[ts, open, high, low, close, volume]`` rows into close prices."""
    if not isinstance(data, dict):
        return []
    attrs = (data.get("data") or {}).get("attributes") or {}
    rows = attrs.get("ohlcv")
    if not isinstance(rows, list):
        return []
    points: list[dict[str, Any]] = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            continue
        try:
            ts = float(row[0])
            price = float(row[4])
        except (TypeError, ValueError):
            continue
        if not math.isfinite(price):
            continue
        points.append(
            {
                "date": datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(),
                "price": price,
            }
        )
    return points


__all__ = [
    "GeckoTerminalClient",
    "NetworkInfo",
    "NETWORKS",
    "network_info",
    "normalize_contract",
    "parse_token_snapshot",
    "parse_ohlcv",
    "top_pool_address",
    "DEFAULT_LOGO",
]
