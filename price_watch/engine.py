"""Price check engine: re-check watched purchases against the catalog."""

import logging
import threading
from datetime import datetime, timezone

from price_watch.eligibility import WINDOW_DAYS, days_left, is_eligible, window_cutoff
from price_watch.errors import ConfigurationError, UpstreamError
from price_watch.fetchers.bestbuy import BestBuyClient
from price_watch.models import CheckRun, DropInfo, PriceCheckResult, PurchaseRecord
from price_watch.pacing import Pacer
from price_watch.storage import PurchaseStore

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime:
    """Current UTC time when value is None; naive values are taken as UTC."""
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def price_drop(paid_price: float, current_price: float | None) -> float:
    """Paid minus current when current is strictly lower, else 0."""
    if current_price is None or current_price >= paid_price:
        return 0.0
    return round(paid_price - current_price, 2)


def _no_data(record: PurchaseRecord) -> PriceCheckResult:
    return PriceCheckResult(
        id=record.id,
        sku=record.sku,
        title=record.title,
        paid_price=record.paid_price,
    )


class PriceCheckEngine:
    """
    Check every eligible purchase of a user, one catalog call at a time.

    Each checked record ends the run with last_checked set to the run's
    timestamp, whatever the catalog answered, so a batch of N eligible
    records always yields N results.
    """

    def __init__(
        self,
        store: PurchaseStore,
        source: BestBuyClient,
        pacer: Pacer,
        window_days: int = WINDOW_DAYS,
    ):
        self.store = store
        self.source = source
        self.pacer = pacer
        self.window_days = window_days

    def eligible_records(self, user_id: str, now: datetime) -> list[PurchaseRecord]:
        """Coarse storage query, then the exact in-memory window check."""
        candidates = self.store.find_watched_since(user_id, window_cutoff(now, self.window_days))
        return [r for r in candidates if is_eligible(r, now, self.window_days)]

    def run_for_user(
        self,
        user_id: str,
        now: datetime | None = None,
        cancel: threading.Event | None = None,
    ) -> CheckRun:
        """
        Re-check a user's eligible purchases.

        Raises ConfigurationError before touching any record when the catalog
        has no credential. Catalog failures for a single record never escape.
        If ``cancel`` is set between records, the remaining ones are left
        unchecked and the results so far are returned.
        """
        now = as_utc(now)
        run = CheckRun(checked_at=now)

        records = self.eligible_records(user_id, now)
        if not records:
            logger.debug("No eligible purchases for user %s", user_id)
            return run

        self.source.ensure_configured()
        logger.info("Checking %d purchase(s) for user %s", len(records), user_id)

        for record in records:
            if cancel is not None and cancel.is_set():
                logger.info(
                    "Price check for user %s cancelled after %d of %d purchase(s)",
                    user_id, len(run.results), len(records),
                )
                break
            run.results.append(self._check_record(record, now))

        return run

    def _check_record(self, record: PurchaseRecord, now: datetime) -> PriceCheckResult:
        self.pacer.wait()
        try:
            product = self.source.fetch_by_sku(record.sku)
        except UpstreamError as e:
            logger.warning("Price check failed for sku %s: %s", record.sku, e)
            self.store.record_check(record.id, now)
            return _no_data(record)
        except ConfigurationError:
            raise
        except Exception:
            logger.exception("Unexpected error checking sku %s", record.sku)
            self.store.record_check(record.id, now)
            return _no_data(record)

        if product is None:
            self.store.record_check(record.id, now)
            return _no_data(record)

        current = product.current_price
        self.store.record_check(record.id, now, last_price=current)
        logger.debug("sku %s: paid $%.2f, current %s", record.sku, record.paid_price, current)
        return PriceCheckResult(
            id=record.id,
            sku=record.sku,
            title=record.title or product.title,
            paid_price=record.paid_price,
            current_price=current,
            price_drop=price_drop(record.paid_price, current),
        )

    def drops_for(self, run: CheckRun, user_id: str) -> list[DropInfo]:
        """
        Results with a positive drop, each with its days left to claim.

        Days left are counted from the purchase date at the run's timestamp.
        """
        drops = []
        for result in run.results:
            if result.price_drop <= 0:
                continue
            record = self.store.get_purchase(result.id)
            if record is None or record.user_id != user_id:
                # deleted between check and notification
                continue
            drops.append(
                DropInfo(
                    id=result.id,
                    sku=result.sku,
                    title=result.title,
                    paid_price=result.paid_price,
                    current_price=result.current_price,
                    price_drop=result.price_drop,
                    days_left=days_left(record, run.checked_at, self.window_days),
                )
            )
        return drops
