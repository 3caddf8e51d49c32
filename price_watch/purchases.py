"""On-demand operations on a user's purchases."""

import logging
import math
from datetime import date, datetime, time, timezone

from price_watch.eligibility import WINDOW_DAYS, days_left, expires_at, is_watched_now
from price_watch.engine import PriceCheckEngine, as_utc
from price_watch.errors import ValidationError
from price_watch.fetchers.bestbuy import BestBuyClient
from price_watch.models import ProductInfo, PurchaseRecord, PurchaseView
from price_watch.storage import PurchaseStore

logger = logging.getLogger(__name__)


def parse_sku(value) -> str:
    sku = str(value).strip() if value is not None else ""
    if not sku:
        raise ValidationError("sku is required")
    return sku


def parse_price(value, name: str = "paid_price") -> float:
    """Accept numbers or numeric strings like '$1,299.99'; reject negatives."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "")
    try:
        price = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(price) or price < 0:
        raise ValidationError(f"{name} must be a non-negative number")
    return price


def parse_date(value) -> datetime:
    """Dates, datetimes or ISO-8601 strings; plain dates mean midnight UTC."""
    if isinstance(value, str):
        try:
            value = value.strip()
            if value.endswith(("Z", "z")):
                value = value[:-1] + "+00:00"
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"purchase_date is not an ISO date: {value!r}") from e
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise ValidationError("purchase_date is required")


def to_view(record: PurchaseRecord, now: datetime, window_days: int = WINDOW_DAYS) -> PurchaseView:
    return PurchaseView(
        id=record.id,
        sku=record.sku,
        title=record.title,
        paid_price=record.paid_price,
        purchase_date=record.purchase_date,
        watched=record.watched,
        last_price=record.last_price,
        last_checked=record.last_checked,
        is_watched_now=is_watched_now(record, now, window_days),
        expires_at=expires_at(record, window_days),
        days_left=days_left(record, now, window_days),
    )


class PurchaseService:
    """Create, edit, list and price-check one user's purchases."""

    def __init__(
        self,
        store: PurchaseStore,
        source: BestBuyClient,
        engine: PriceCheckEngine,
        window_days: int = WINDOW_DAYS,
    ):
        self.store = store
        self.source = source
        self.engine = engine
        self.window_days = window_days

    def lookup_sku(self, sku) -> ProductInfo | None:
        """Catalog lookup used to pre-fill a new purchase."""
        return self.source.fetch_by_sku(parse_sku(sku))

    def create_purchase(
        self,
        user_id: str,
        sku,
        paid_price=None,
        purchase_date=None,
        title: str | None = None,
        watched: bool = True,
        prefill: bool = False,
    ) -> PurchaseRecord:
        """
        Validate and store a new purchase.

        With ``prefill`` a missing title or price is taken from the catalog.
        Nothing is written if any field is invalid.
        """
        sku = parse_sku(sku)
        purchase_date = parse_date(purchase_date if purchase_date is not None else datetime.now(timezone.utc))
        title = title.strip() if title and title.strip() else None

        if prefill and (title is None or paid_price is None):
            product = self.source.fetch_by_sku(sku)
            if product is None:
                logger.info("No catalog entry for sku %s, nothing to pre-fill", sku)
            else:
                title = title or product.title
                if paid_price is None:
                    paid_price = product.current_price

        price = parse_price(paid_price)
        if self.store.get_user(user_id) is None:
            raise ValidationError(f"unknown user {user_id}")

        return self.store.add_purchase(
            user_id=user_id,
            sku=sku,
            paid_price=price,
            purchase_date=purchase_date,
            title=title,
            watched=bool(watched),
        )

    def _owned(self, user_id: str, purchase_id: str) -> PurchaseRecord:
        record = self.store.get_purchase(purchase_id)
        if record is None or record.user_id != user_id:
            raise ValidationError(f"purchase {purchase_id} not found")
        return record

    def update_purchase(self, user_id: str, purchase_id: str, /, **fields) -> PurchaseRecord:
        self._owned(user_id, purchase_id)

        clean = {}
        for name, value in fields.items():
            if name == "sku":
                clean[name] = parse_sku(value)
            elif name == "paid_price":
                clean[name] = parse_price(value, name)
            elif name == "last_price":
                clean[name] = None if value is None else parse_price(value, name)
            elif name == "purchase_date":
                clean[name] = parse_date(value)
            elif name == "title":
                clean[name] = value.strip() if value and value.strip() else None
            elif name == "watched":
                clean[name] = bool(value)
            else:
                raise ValidationError(f"field {name!r} cannot be edited")

        return self.store.update_purchase(purchase_id, **clean)

    def delete_purchase(self, user_id: str, purchase_id: str) -> None:
        self._owned(user_id, purchase_id)
        self.store.delete_purchase(purchase_id)

    def list_purchases(self, user_id: str, now: datetime | None = None) -> list[PurchaseView]:
        now = as_utc(now)
        return [to_view(r, now, self.window_days) for r in self.store.list_purchases(user_id)]

    def check_prices(self, user_id: str, now: datetime | None = None) -> dict:
        """
        Run a price check now and return the response payload.

        ``{"checkedAt", "results", "purchases"}`` where purchases are the
        refreshed views. A missing catalog key raises ConfigurationError.
        """
        run = self.engine.run_for_user(user_id, now)
        payload = run.as_dict()
        payload["purchases"] = [v.as_dict() for v in self.list_purchases(user_id, run.checked_at)]
        return payload
