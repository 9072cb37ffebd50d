# ec_index/models/observation.py

"""Price observation model shared by every collector."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Platform(str, Enum):
    """Marketplaces an observation can come from."""

    AMAZON = "amazon"
    EBAY = "ebay"
    IDEALO = "idealo"
    GEIZHALS = "geizhals"
    CHECK24 = "check24"
    OTTO = "otto"
    MEDIAMARKT = "mediamarkt"
    SATURN = "saturn"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        """Human-readable platform name used in export series."""
        return _DISPLAY_NAMES[self]

    @property
    def color(self) -> str:
        """Fixed chart color for this platform."""
        return _COLORS[self]


_DISPLAY_NAMES: dict[Platform, str] = {
    Platform.AMAZON: "Amazon",
    Platform.EBAY: "eBay",
    Platform.IDEALO: "Idealo",
    Platform.GEIZHALS: "Geizhals",
    Platform.CHECK24: "Check24",
    Platform.OTTO: "Otto",
    Platform.MEDIAMARKT: "MediaMarkt",
    Platform.SATURN: "Saturn",
    Platform.OTHER: "Other",
}

_COLORS: dict[Platform, str] = {
    Platform.AMAZON: "#FF9900",
    Platform.EBAY: "#E53238",
    Platform.IDEALO: "#0066CC",
    Platform.GEIZHALS: "#1E3A5F",
    Platform.CHECK24: "#063773",
    Platform.OTTO: "#C41230",
    Platform.MEDIAMARKT: "#DF0000",
    Platform.SATURN: "#004F9F",
    Platform.OTHER: "#6B7280",
}


class Condition(str, Enum):
    """Item condition as normalised across marketplaces."""

    NEW = "new"
    REFURBISHED = "refurbished"
    USED = "used"


@dataclass(frozen=True)
class PriceObservation:
    """One fetched or scraped price record for a single listing."""

    product_id: str
    platform: Platform
    price: float
    url: str = ""
    title: str = ""
    currency: str = "EUR"
    original_price: float | None = None
    shipping: float | None = None
    seller: str | None = None
    seller_rating: float | None = None
    seller_review_count: int | None = None
    rating: float | None = None
    review_count: int | None = None
    condition: Condition = Condition.NEW
    in_stock: bool = True
    collected_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.price < 0:
            msg = f"price must be >= 0, got {self.price}"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict."""
        data = asdict(self)
        data["platform"] = self.platform.value
        data["condition"] = self.condition.value
        data["collected_at"] = self.collected_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PriceObservation":
        """Rebuild an observation from its ``to_dict`` form."""
        values = dict(data)
        values["platform"] = Platform(values["platform"])
        values["condition"] = Condition(
            values.get("condition", Condition.NEW.value)
        )
        values["collected_at"] = datetime.fromisoformat(
            values["collected_at"]
        )
        return cls(**values)
