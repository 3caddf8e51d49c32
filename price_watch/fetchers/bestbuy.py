"""Best Buy Products API client."""

import logging
from urllib.parse import quote

import requests

from price_watch.config import Settings
from price_watch.errors import ConfigurationError, UpstreamError
from price_watch.models import ProductInfo

logger = logging.getLogger(__name__)

SHOW_FIELDS = "sku,name,salePrice,regularPrice,url"


def _price(value) -> float | None:
    """Catalog prices are JSON numbers; anything else counts as missing."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _product_from_data(data: dict, sku: str) -> ProductInfo:
    """Build ProductInfo from an API response."""
    url = data.get("url")
    return ProductInfo(
        sku=sku,
        title=data.get("name") or f"SKU {sku}",
        sale_price=_price(data.get("salePrice")),
        regular_price=_price(data.get("regularPrice")),
        url=url if isinstance(url, str) else None,
    )


class BestBuyClient:
    """
    Look up current product info by sku.

    One request per call and no retries: pacing is the caller's job.
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.api_key = settings.bestbuy_api_key
        self.api_base = settings.bestbuy_api_base.rstrip("/")
        self.timeout = settings.request_timeout
        self.session = session or requests.Session()
        if not self.api_key:
            logger.warning(
                "BESTBUY_API_KEY is not set. Best Buy sku lookup will not work until it is added to .env"
            )

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Missing BESTBUY_API_KEY")

    def fetch_by_sku(self, sku: str) -> ProductInfo | None:
        """
        Fetch one product.

        Returns None when Best Buy reports the sku does not exist (404).
        Raises UpstreamError for any other non-2xx status, a network
        failure or timeout, or a body that is not JSON.
        """
        self.ensure_configured()
        sku = str(sku).strip()
        url = f"{self.api_base}/products/{quote(sku, safe='')}.json"
        params = {"apiKey": self.api_key, "show": SHOW_FIELDS}

        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"Best Buy request failed for sku {sku}: {e}") from e

        if resp.status_code == 404:
            logger.info("Best Buy sku %s not found (404)", sku)
            return None
        if not 200 <= resp.status_code < 300:
            raise UpstreamError(
                f"Best Buy API error for sku {sku}: {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"Best Buy returned invalid JSON for sku {sku}") from e
        if not isinstance(data, dict):
            raise UpstreamError(f"Best Buy returned unexpected payload for sku {sku}")

        return _product_from_data(data, sku)
