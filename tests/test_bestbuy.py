import pytest
import requests

from price_watch.config import Settings
from price_watch.errors import ConfigurationError, UpstreamError
from price_watch.fetchers.bestbuy import BestBuyClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, raise_on_json=False):
        self.status_code = status_code
        self._payload = payload
        self._raise_on_json = raise_on_json

    def json(self):
        if self._raise_on_json:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


def make_client(session, api_key="test-key"):
    return BestBuyClient(Settings(bestbuy_api_key=api_key, request_timeout=4.0), session=session)


def test_fetch_builds_product_from_catalog_fields():
    session = FakeSession(FakeResponse(payload={
        "sku": 6505727, "name": "Headphones", "salePrice": 79.99,
        "regularPrice": 99.99, "url": "https://bestbuy.example/p/6505727",
    }))
    product = make_client(session).fetch_by_sku(" 6505727 ")

    assert product.sku == "6505727"
    assert product.title == "Headphones"
    assert product.sale_price == 79.99
    assert product.regular_price == 99.99
    assert product.url == "https://bestbuy.example/p/6505727"
    assert product.current_price == 79.99

    sent = session.requests[0]
    assert sent["url"] == "https://api.bestbuy.com/v1/products/6505727.json"
    assert sent["params"]["apiKey"] == "test-key"
    assert sent["timeout"] == 4.0


def test_missing_name_and_bad_prices_fall_back():
    session = FakeSession(FakeResponse(payload={"salePrice": "cheap", "regularPrice": 50, "url": 7}))
    product = make_client(session).fetch_by_sku("42")

    assert product.title == "SKU 42"
    assert product.sale_price is None
    assert product.regular_price == 50.0
    assert product.url is None
    assert product.current_price == 50.0


def test_no_prices_means_unknown_current_price():
    session = FakeSession(FakeResponse(payload={"name": "Gift card"}))
    assert make_client(session).fetch_by_sku("1").current_price is None


def test_404_is_not_found_not_an_error():
    assert make_client(FakeSession(FakeResponse(status_code=404))).fetch_by_sku("999") is None


@pytest.mark.parametrize("status", [400, 403, 500, 503])
def test_other_statuses_raise_upstream_error(status):
    with pytest.raises(UpstreamError) as exc:
        make_client(FakeSession(FakeResponse(status_code=status))).fetch_by_sku("1")
    assert exc.value.status_code == status


def test_timeout_is_an_upstream_error():
    session = FakeSession(error=requests.Timeout("read timed out"))
    with pytest.raises(UpstreamError):
        make_client(session).fetch_by_sku("1")


def test_invalid_json_is_an_upstream_error():
    session = FakeSession(FakeResponse(raise_on_json=True))
    with pytest.raises(UpstreamError):
        make_client(session).fetch_by_sku("1")


def test_missing_key_fails_closed_without_network():
    session = FakeSession(FakeResponse(payload={}))
    client = make_client(session, api_key=None)
    with pytest.raises(ConfigurationError):
        client.fetch_by_sku("1")
    assert session.requests == []


def test_sku_is_url_quoted():
    session = FakeSession(FakeResponse(status_code=404))
    make_client(session).fetch_by_sku("12/34")
    assert session.requests[0]["url"].endswith("/products/12%2F34.json")
