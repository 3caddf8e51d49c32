import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add repository root to sys.path to allow importing 'price_watch'
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from price_watch.config import Settings  # noqa: E402
from price_watch.engine import PriceCheckEngine  # noqa: E402
from price_watch.errors import ConfigurationError, DeliveryError  # noqa: E402
from price_watch.pacing import Pacer  # noqa: E402
from price_watch.storage import PurchaseStore  # noqa: E402

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self):
        self.t = 1000.0
        self.sleeps = []

    def __call__(self):
        return self.t

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.t += seconds


class FakeSource:
    """Catalog stand-in: per-sku ProductInfo, None (404) or an exception to raise."""

    def __init__(self, responses=None, configured=True):
        self.responses = dict(responses or {})
        self.configured = configured
        self.calls = []

    def ensure_configured(self):
        if not self.configured:
            raise ConfigurationError("Missing BESTBUY_API_KEY")

    def fetch_by_sku(self, sku):
        self.ensure_configured()
        self.calls.append(sku)
        outcome = self.responses.get(sku)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeMailer:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send_mail(self, envelope):
        if self.fail:
            raise DeliveryError("smtp down")
        self.sent.append(envelope)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def settings(tmp_path):
    return Settings(
        bestbuy_api_key="test-key",
        db_path=tmp_path / "test.db",
        smtp_user="alerts@example.com",
        smtp_pass="secret",
    )


@pytest.fixture
def store(settings):
    s = PurchaseStore(settings.db_path)
    s.init_db()
    return s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pacer(clock):
    return Pacer(0.75, clock=clock, sleep=clock.sleep)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def engine(store, source, pacer):
    return PriceCheckEngine(store, source, pacer)


@pytest.fixture
def mailer():
    return FakeMailer()
