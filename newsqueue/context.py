"""
Application Context
===================

Builds and owns every long-lived component of a NewsQueue process. Components
receive their collaborators from here; nothing is looked up globally.
"""

from typing import Optional

from .config.settings import NewsQueueSettings
from .core.ports import Extractor, Notifier
from .database.connection import DatabaseConnection
from .database.schema import DatabaseSchema
from .delivery.notifier import LoggingNotifier, TelegramNotifier
from .ingestion.extractor import FeedExtractor
from .processing.pipeline import IngestionPipeline
from .scheduler.coordinator import ScheduleCoordinator
from .scheduler.task_registry import TaskRegistry
from .storage.content_store import ContentStore
from .storage.delivery_queue import DeliveryQueue
from .storage.subscriber_repository import SourceCatalog, SubscriberRepository
from .utils.logging import get_logger_for_component


class AppContext:
    """Wiring of database, repositories, pipeline, registry and coordinator."""

    def __init__(
        self,
        settings: NewsQueueSettings,
        extractor: Optional[Extractor] = None,
        notifier: Optional[Notifier] = None,
        dry_run: bool = False,
    ):
        """Create the schema if needed and wire all components.

        Args:
            settings: Loaded application settings
            extractor: Source access; defaults to ``FeedExtractor``
            notifier: Outbound delivery; defaults to Telegram, or logging on dry runs
            dry_run: Log notifications instead of sending them
        """
        self.settings = settings
        self.logger = get_logger_for_component("context")

        DatabaseSchema(settings.database.path).create_tables()
        self.db = DatabaseConnection(
            settings.database.path,
            pool_size=settings.database.pool_size,
            busy_timeout=settings.database.busy_timeout,
        )

        self.delivery_queue = DeliveryQueue(self.db)
        self.content_store = ContentStore(self.db, self.delivery_queue)
        self.subscribers = SubscriberRepository(self.db)
        self.sources = SourceCatalog(self.db)

        self.extractor = extractor or FeedExtractor(settings.extraction)
        if notifier is None:
            notifier = LoggingNotifier() if dry_run else TelegramNotifier(settings.telegram)
        self.notifier = notifier

        self.pipeline = IngestionPipeline(
            self.extractor, self.content_store, self.delivery_queue, self.notifier,
            announce_start=settings.scheduler.announce_start,
        )
        self.registry = TaskRegistry(
            self.pipeline.run_cycle,
            max_workers=settings.scheduler.max_workers,
            seconds_per_minute=settings.scheduler.seconds_per_minute,
        )
        self.coordinator = ScheduleCoordinator(
            self.registry, self.subscribers, self.subscribers, self.delivery_queue
        )

        self.logger.info(f"Application context ready (database: {settings.database.path})")

    def close(self) -> None:
        """Stop all tasks and release the database pool. Safe to call twice."""
        self.registry.shutdown()
        close_extractor = getattr(self.extractor, "close", None)
        if callable(close_extractor):
            close_extractor()
        self.db.close_all_connections()

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
