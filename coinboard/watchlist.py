"""Tracked coins: add/delete, search and the table orderings."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .errors import CoinNotFoundError, DuplicateCoinError, UnsupportedResourceError
from .geckoterminal import normalize_contract
from .models.coin import TrackedCoin, canonical_contract
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

WATCHLIST_KEY = "watchlist"
TRENDING_LIMIT = 50
NEW_LISTINGS_LIMIT = 20

# Accept the camelCase keys used by hand-written coins.json files.
_LEGACY_KEYS = {
    "dateAdded": "date_added",
    "priceChange24h": "price_change_24h",
    "priceChange7d": "price_change_7d",
    "volume24h": "volume_24h",
    "lastUpdated": "last_updated",
}


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _network_key(network: object) -> str:
    return str(network or "").strip().lower()


def _parse_ts(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


class Watchlist:
    """Ordered collection of tracked coins, newest first, persisted as JSON."""

    def __init__(
        self, store: KeyValueStore, clock: Callable[[], float] = time.time
    ) -> None:
        self._store = store
        self._clock = clock
        self.coins: list[TrackedCoin] = []

    def __len__(self) -> int:
        return len(self.coins)

    def __iter__(self):
        return iter(list(self.coins))

    def load(self) -> None:
        """Load persisted coins from the store."""
        raw = self._store.read(WATCHLIST_KEY)
        if raw is None:
            return
        try:
            self.coins = [TrackedCoin.from_dict(c) for c in json.loads(raw)]
            logger.info("Loaded %d tracked coins", len(self.coins))
        except Exception:
            logger.exception("Discarding unreadable watchlist")
            self.coins = []

    def load_file(self, path: str | Path) -> int:
        """Import coins from a ``{"coins": [...]}`` file, skipping duplicates.

        Returns:
            Number of coins added.

        Raises:
            ValueError: If the file does not hold a ``coins`` list.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not isinstance(data.get("coins"), list):
            raise ValueError(f'{path}: expected "coins" to be a list')
        added = 0
        for raw in data["coins"]:
            if not isinstance(raw, dict):
                continue
            entry = {_LEGACY_KEYS.get(k, k): v for k, v in raw.items()}
            entry.setdefault("id", self._new_id())
            entry.setdefault("date_added", _utcnow_iso())
            try:
                entry["network"] = _network_key(entry.get("network"))
                entry["contract"] = normalize_contract(
                    entry["network"], str(entry.get("contract") or "")
                )
                coin = TrackedCoin.from_dict(entry)
            except (TypeError, ValueError, UnsupportedResourceError) as exc:
                logger.warning("Skipping malformed coin %r: %s", raw.get("symbol"), exc)
                continue
            if self._find_duplicate(coin.contract, coin.network) or self._by_id(coin.id):
                continue
            self.coins.append(coin)
            added += 1
        self._save()
        return added

    def _save(self) -> None:
        self._store.write(
            WATCHLIST_KEY, json.dumps([c.to_dict() for c in self.coins])
        )

    def _new_id(self) -> int:
        new_id = int(self._clock() * 1000)
        while self._by_id(new_id):
            new_id += 1
        return new_id

    def _by_id(self, coin_id: int) -> TrackedCoin | None:
        for coin in self.coins:
            if coin.id == coin_id:
                return coin
        return None

    def _find_duplicate(self, contract: str, network: str) -> TrackedCoin | None:
        contract = canonical_contract(contract)
        network = _network_key(network)
        for coin in self.coins:
            if coin.contract == contract and coin.network == network:
                return coin
        return None

    def get(self, coin_id: int) -> TrackedCoin:
        coin = self._by_id(coin_id)
        if coin is None:
            raise CoinNotFoundError(coin_id)
        return coin

    def add(
        self,
        name: str,
        symbol: str,
        contract: str,
        network: str,
        **details: object,
    ) -> TrackedCoin:
        """Track a new coin; it goes to the front of the list.

        Raises:
            UnsupportedResourceError: If ``network`` is unknown.
            InvalidContractError: If ``contract`` is not an address on ``network``.
            DuplicateCoinError: If the contract is already tracked on that network.
        """
        network = _network_key(network)
        contract = normalize_contract(network, contract)
        if self._find_duplicate(contract, network):
            raise DuplicateCoinError(f"{symbol} is already tracked on {network}")
        coin = TrackedCoin.from_dict(
            {
                **details,
                "id": self._new_id(),
                "name": name.strip(),
                "symbol": symbol.strip().upper(),
                "contract": contract,
                "network": network,
                "date_added": _utcnow_iso(),
            }
        )
        self.coins.insert(0, coin)
        self._save()
        logger.info("Tracking %s (%s on %s)", coin.symbol, coin.contract, coin.network)
        return coin

    def remove(self, coin_id: int) -> TrackedCoin:
        coin = self.get(coin_id)
        self.coins.remove(coin)
        self._save()
        logger.info("Stopped tracking %s", coin.symbol)
        return coin

    def search(self, query: str | None) -> list[TrackedCoin]:
        q = (query or "").strip().lower()
        if not q:
            return list(self.coins)
        return [
            c
            for c in self.coins
            if q in c.name.lower() or q in c.symbol.lower() or q in c.contract.lower()
        ]

    def trending(self, limit: int = TRENDING_LIMIT) -> list[TrackedCoin]:
        ranked = sorted(
            (c for c in self.coins if c.volume_24h > 0),
            key=lambda c: c.volume_24h,
            reverse=True,
        )
        return ranked[: max(0, limit)]

    def new_listings(self, limit: int = NEW_LISTINGS_LIMIT) -> list[TrackedCoin]:
        ranked = sorted(self.coins, key=lambda c: _parse_ts(c.date_added), reverse=True)
        return ranked[: max(0, limit)]

    def refresh_order(self) -> list[TrackedCoin]:
        """Coins never updated first, then least recently updated."""
        return sorted(self.coins, key=lambda c: _parse_ts(c.last_updated))

    def apply_market_data(self, coin_id: int, data: dict[str, object]) -> TrackedCoin:
        coin = self.get(coin_id)
        for key, value in data.items():
            if key == "socials" and isinstance(value, dict):
                coin.socials.update({k: str(v) for k, v in value.items() if v})
            elif key in ("description", "website", "logo") and not value:
                continue
            elif hasattr(coin, key) and key not in ("id", "contract", "network"):
                setattr(coin, key, value)
        self._save()
        return coin


__all__ = ["Watchlist", "WATCHLIST_KEY"]
