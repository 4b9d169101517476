"""
NewsQueue - Scheduled Content Ingestion
=======================================

Per-subscriber recurring ingestion of published content with link-level
deduplication and a read/unread delivery queue.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Storage: content store, delivery queue, subscriber directory
- Scheduling: task registry with one recurring task per subscriber
- Delivery: Telegram notifications
"""

__version__ = "1.0.0"
__author__ = "NewsQueue Development Team"
__description__ = "Scheduled per-subscriber content ingestion and delivery queue"

# Core imports for easy access
from .config.settings import NewsQueueSettings, load_settings
from .context import AppContext
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import NewsQueueError

__all__ = [
    "NewsQueueSettings",
    "load_settings",
    "AppContext",
    "configure_application_logging",
    "get_logger_for_component",
    "NewsQueueError",
]
