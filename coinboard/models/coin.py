"""Tracked coin dataclass."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields

SOCIAL_KEYS = (
    "twitter",
    "telegram",
    "discord",
    "reddit",
    "facebook",
    "bitcointalk",
    "github",
    "medium",
    "youtube",
)

# Fields overwritten by market data; everything else is user supplied.
MARKET_FIELDS = (
    "price",
    "price_change_24h",
    "price_change_7d",
    "volume_24h",
    "liquidity",
    "holders",
    "last_updated",
)


def _empty_socials() -> dict[str, str]:
    return {k: "" for k in SOCIAL_KEYS}


@dataclass
class TrackedCoin:
    id: int
    name: str
    symbol: str
    contract: str
    network: str
    date_added: str
    website: str = ""
    logo: str = ""
    description: str = ""
    socials: dict[str, str] = field(default_factory=_empty_socials)
    price: float = 0.0
    price_change_24h: float = 0.0
    price_change_7d: float = 0.0
    volume_24h: float = 0.0
    liquidity: float = 0.0
    holders: int = 0
    last_updated: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "TrackedCoin":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        socials = _empty_socials()
        socials.update({k: str(v or "") for k, v in (data.get("socials") or {}).items()})
        kwargs["socials"] = socials
        kwargs["contract"] = canonical_contract(str(data.get("contract") or ""))
        return cls(**kwargs)


def canonical_contract(contract: str) -> str:
    """Hex addresses compare case-insensitively; base58 ones do not."""
    contract = contract.strip()
    if contract[:2].lower() == "0x":
        return contract.lower()
    return contract
