"""
NewsQueue Ingestion Module
=========================

Source access components.

This module handles:
- RSS index parsing with feedparser
- Detail extraction from item pages with BeautifulSoup
"""

from .extractor import FeedExtractor, DetailRule, SCIENCE_DAILY_RULES, extract_details

__all__ = [
    "FeedExtractor",
    "DetailRule",
    "SCIENCE_DAILY_RULES",
    "extract_details",
]
