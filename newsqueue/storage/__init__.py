"""
NewsQueue Storage Layer
======================

Repository pattern implementations for data access abstraction.

This module provides:
- Content store with link-level deduplication
- Per-subscriber delivery queue
- Subscriber directory and source catalogue
"""

from .content_store import ContentStore
from .delivery_queue import DeliveryQueue
from .subscriber_repository import SubscriberRepository, SourceCatalog

__all__ = [
    "ContentStore",
    "DeliveryQueue",
    "SubscriberRepository",
    "SourceCatalog",
]
