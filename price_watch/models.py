"""Data models for purchases and price checks."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """Account that owns purchases."""

    id: str
    email: str | None
    created_at: datetime | None = None


@dataclass
class PurchaseRecord:
    """A purchase the user registered, as stored."""

    id: str
    user_id: str
    sku: str
    paid_price: float
    purchase_date: datetime
    title: str | None = None
    watched: bool = True
    last_price: float | None = None
    last_checked: datetime | None = None


@dataclass
class ProductInfo:
    """Catalog entry for one sku."""

    sku: str
    title: str
    sale_price: float | None = None
    regular_price: float | None = None
    url: str | None = None

    @property
    def current_price(self) -> float | None:
        """Sale price when present, else regular price, else unknown."""
        if self.sale_price is not None:
            return self.sale_price
        return self.regular_price

    def as_dict(self) -> dict:
        return {
            "sku": self.sku,
            "title": self.title,
            "salePrice": self.sale_price,
            "regularPrice": self.regular_price,
            "url": self.url,
        }


@dataclass
class PriceCheckResult:
    """Outcome of checking one purchase. Never persisted."""

    id: str
    sku: str
    title: str | None
    paid_price: float
    current_price: float | None = None
    price_drop: float = 0.0

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "title": self.title,
            "paidPrice": self.paid_price,
            "currentPrice": self.current_price,
            "priceDrop": self.price_drop,
        }


@dataclass
class DropInfo(PriceCheckResult):
    """A price check result with a drop, plus days left to claim it."""

    days_left: int = 0


@dataclass
class PurchaseView:
    """Purchase with its derived watch-window fields, computed at read time."""

    id: str
    sku: str
    title: str | None
    paid_price: float
    purchase_date: datetime
    watched: bool
    last_price: float | None
    last_checked: datetime | None
    is_watched_now: bool
    expires_at: datetime
    days_left: int

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "title": self.title,
            "paidPrice": self.paid_price,
            "purchaseDate": self.purchase_date.isoformat(),
            "watched": self.watched,
            "lastPrice": self.last_price,
            "lastChecked": self.last_checked.isoformat() if self.last_checked else None,
            "isWatchedNow": self.is_watched_now,
            "expiresAt": self.expires_at.isoformat(),
            "daysLeft": self.days_left,
        }


@dataclass
class CheckRun:
    """Everything one engine run produced for a user."""

    checked_at: datetime
    results: list[PriceCheckResult] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "checkedAt": self.checked_at.isoformat(),
            "results": [r.as_dict() for r in self.results],
        }


@dataclass
class Notification:
    """Rendered price-drop message."""

    subject: str
    text: str
    html: str


@dataclass
class MailEnvelope:
    """What the mail transport needs to deliver one message."""

    sender: str
    to: str
    subject: str
    text: str
    html: str
