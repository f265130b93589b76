"""Fetching and parsing listing pages."""

from price_monitor.fetchers.http import Fetcher
from price_monitor.fetchers.retry import RetryPolicy
from price_monitor.fetchers.scraper import Scraper

__all__ = ["Fetcher", "RetryPolicy", "Scraper"]
