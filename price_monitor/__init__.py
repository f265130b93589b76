"""Listing price monitor: scrape, compare, alert."""
