"""Catalog clients for current price data."""

from price_watch.fetchers.bestbuy import BestBuyClient

__all__ = ["BestBuyClient"]
