import json

import pytest

from coinboard.errors import (
    CoinNotFoundError,
    DuplicateCoinError,
    InvalidContractError,
    UnsupportedResourceError,
)
from coinboard.storage import MemoryStore
from coinboard.watchlist import WATCHLIST_KEY, Watchlist

from conftest import FakeClock

PEPE = "0x6982508145454CE325dDbE47a25d4ec3d2311933"
SHIB = "0x95aD61b0a150d79219dCF64E1E6Cc01f0B64C4cE"
BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


@pytest.fixture
def watchlist() -> Watchlist:
    return Watchlist(MemoryStore(), clock=FakeClock(start=1700000000.0))


def test_add_puts_newest_first_and_persists(watchlist) -> None:
    pepe = watchlist.add("Pepe", "pepe", PEPE, "eth")
    shib = watchlist.add("Shiba Inu", "shib", SHIB, "eth", website="https://shib.io")

    assert [c.symbol for c in watchlist.coins] == ["SHIB", "PEPE"]
    assert pepe.contract == PEPE.lower()
    assert pepe.id != shib.id
    assert shib.website == "https://shib.io"

    reloaded = Watchlist(watchlist._store)
    reloaded.load()
    assert [c.id for c in reloaded.coins] == [shib.id, pepe.id]


def test_add_rejects_duplicate_contract_on_same_network(watchlist) -> None:
    watchlist.add("Pepe", "PEPE", PEPE, "eth")

    with pytest.raises(DuplicateCoinError):
        watchlist.add("Pepe again", "PEPE", PEPE.lower(), "eth")

    # same contract on another chain is a different token
    watchlist.add("Pepe", "PEPE", PEPE, "bsc")
    assert len(watchlist) == 2


def test_add_rejects_unknown_network(watchlist) -> None:
    with pytest.raises(UnsupportedResourceError):
        watchlist.add("Tron thing", "TRX", "T9yD14Nj9j7xAB4dbGeiX9h8unkKHxuWwb", "tron")
    assert len(watchlist) == 0


def test_remove_and_get(watchlist) -> None:
    coin = watchlist.add("Bonk", "BONK", BONK, "solana")

    assert watchlist.get(coin.id) is coin
    assert watchlist.remove(coin.id) is coin
    with pytest.raises(CoinNotFoundError):
        watchlist.get(coin.id)
    with pytest.raises(CoinNotFoundError):
        watchlist.remove(coin.id)


def test_search_matches_name_symbol_and_contract(watchlist) -> None:
    watchlist.add("Pepe", "PEPE", PEPE, "eth")
    watchlist.add("Bonk", "BONK", BONK, "solana")

    assert [c.symbol for c in watchlist.search("pep")] == ["PEPE"]
    assert [c.symbol for c in watchlist.search("bonk")] == ["BONK"]
    assert [c.symbol for c in watchlist.search("0x6982")] == ["PEPE"]
    assert len(watchlist.search("  ")) == 2


def test_trending_orders_by_volume_and_skips_empty(watchlist) -> None:
    pepe = watchlist.add("Pepe", "PEPE", PEPE, "eth")
    shib = watchlist.add("Shiba Inu", "SHIB", SHIB, "eth")
    watchlist.add("Bonk", "BONK", BONK, "solana")
    watchlist.apply_market_data(pepe.id, {"volume_24h": 10.0})
    watchlist.apply_market_data(shib.id, {"volume_24h": 99.0})

    assert [c.symbol for c in watchlist.trending()] == ["SHIB", "PEPE"]
    assert [c.symbol for c in watchlist.trending(limit=1)] == ["SHIB"]


def test_new_listings_orders_by_date_added(watchlist) -> None:
    older = watchlist.add("Pepe", "PEPE", PEPE, "eth")
    newer = watchlist.add("Bonk", "BONK", BONK, "solana")
    older.date_added = "2024-01-01T00:00:00+00:00"
    newer.date_added = "2024-06-01T00:00:00Z"

    assert [c.symbol for c in watchlist.new_listings()] == ["BONK", "PEPE"]


def test_refresh_order_puts_never_updated_first(watchlist) -> None:
    a = watchlist.add("A", "A", PEPE, "eth")
    b = watchlist.add("B", "B", SHIB, "eth")
    c = watchlist.add("C", "C", BONK, "solana")
    watchlist.apply_market_data(a.id, {"last_updated": "2024-05-02T00:00:00+00:00"})
    watchlist.apply_market_data(c.id, {"last_updated": "2024-05-01T00:00:00+00:00"})

    assert [coin.symbol for coin in watchlist.refresh_order()] == [b.symbol, c.symbol, a.symbol]


def test_apply_market_data_keeps_identity_and_existing_text(watchlist) -> None:
    coin = watchlist.add(
        "Pepe", "PEPE", PEPE, "eth", description="Frog", socials={"reddit": "r/pepe"}
    )

    watchlist.apply_market_data(
        coin.id,
        {
            "price": 0.00001,
            "description": "",
            "contract": "0xdeadbeef",
            "socials": {"twitter": "https://twitter.com/pepe", "telegram": ""},
        },
    )

    assert coin.price == 0.00001
    assert coin.description == "Frog"
    assert coin.contract == PEPE.lower()
    assert coin.socials["twitter"] == "https://twitter.com/pepe"
    assert coin.socials["reddit"] == "r/pepe"


def test_load_file_imports_camel_case_and_skips_duplicates(watchlist, tmp_path) -> None:
    watchlist.add("Pepe", "PEPE", PEPE, "eth")
    path = tmp_path / "coins.json"
    path.write_text(
        json.dumps(
            {
                "coins": [
                    {"name": "Pepe", "symbol": "PEPE", "contract": PEPE, "network": "eth"},
                    {
                        "id": 7,
                        "name": "Bonk",
                        "symbol": "BONK",
                        "contract": BONK,
                        "network": "solana",
                        "dateAdded": "2024-01-01T00:00:00Z",
                        "volume24h": 5.0,
                    },
                    {"symbol": "BROKEN"},
                    "not a coin",
                ]
            }
        )
    )

    assert watchlist.load_file(path) == 1

    bonk = watchlist.get(7)
    assert bonk.date_added == "2024-01-01T00:00:00Z"
    assert bonk.volume_24h == 5.0
    assert len(watchlist) == 2


def test_load_file_requires_coins_list(watchlist, tmp_path) -> None:
    path = tmp_path / "coins.json"
    path.write_text(json.dumps({"coins": {}}))

    with pytest.raises(ValueError, match="coins"):
        watchlist.load_file(path)


def test_unreadable_saved_watchlist_is_discarded() -> None:
    watchlist = Watchlist(MemoryStore({WATCHLIST_KEY: "[{"}))
    watchlist.load()
    assert watchlist.coins == []


def test_duplicate_check_normalizes_network_and_contract(watchlist) -> None:
    watchlist.add("Pepe", "PEPE", PEPE, "eth")

    with pytest.raises(DuplicateCoinError):
        watchlist.add("Pepe", "PEPE", PEPE, "ETH")
    with pytest.raises(DuplicateCoinError):
        watchlist.add("Pepe", "PEPE", f"  {PEPE}\n", " eth ")
    assert len(watchlist) == 1
    assert watchlist.coins[0].network == "eth"


def test_solana_contract_keeps_its_case(watchlist) -> None:
    coin = watchlist.add("Bonk", "BONK", f" {BONK} ", "Solana")

    assert coin.contract == BONK
    assert coin.network == "solana"
    # base58 is case-sensitive: a different casing is a different mint
    assert watchlist._find_duplicate(BONK.lower(), "solana") is None
    assert watchlist.search(BONK.lower()[:8]) == [coin]

    reloaded = Watchlist(watchlist._store)
    reloaded.load()
    assert reloaded.coins[0].contract == BONK


def test_add_rejects_malformed_contract(watchlist) -> None:
    with pytest.raises(InvalidContractError):
        watchlist.add("Short", "SHORT", "0x1234", "eth")
    with pytest.raises(InvalidContractError):
        watchlist.add("Not hex", "NOPE", "0x" + "z" * 40, "bsc")
    with pytest.raises(InvalidContractError):
        watchlist.add("Evm on solana", "EVM", PEPE, "solana")
    assert len(watchlist) == 0
