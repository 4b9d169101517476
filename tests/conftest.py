"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for NewsQueue tests.

Every database fixture uses a temporary file: the connection pool hands out
several connections, and each ``:memory:`` connection would see its own
empty database.
"""

import pytest
import tempfile
import threading
import time
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["NEWSQUEUE_TELEGRAM__BOT_TOKEN"] = (
    "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11_test"
)
os.environ["NEWSQUEUE_DEBUG"] = "true"


SOURCE_S = "https://www.sciencedaily.com/rss/top/science.xml"
SOURCE_T = "https://www.sciencedaily.com/rss/top/health.xml"


# ============================================================================
# Test Doubles
# ============================================================================


class FakeExtractor:
    """In-memory extractor with per-source indexes and injectable failures."""

    def __init__(self):
        self.indexes: Dict[str, list] = {}
        self.details: Dict[str, Dict[str, str]] = {}
        self.failing_links = set()
        self.index_error: Optional[Exception] = None
        self.detail_calls: List[str] = []
        self.lock = threading.Lock()

    def add_entries(self, source_ref: str, *links: str) -> None:
        from newsqueue.database.models import IndexEntry

        entries = self.indexes.setdefault(source_ref, [])
        for link in links:
            entries.append(IndexEntry(title=f"Title of {link.rsplit('/', 1)[-1]}", link=link, summary="Summary"))
            self.details.setdefault(link, {"full_story": f"Story behind {link}"})

    def list_index(self, source_ref: str):
        if self.index_error is not None:
            raise self.index_error
        return list(self.indexes.get(source_ref, []))

    def fetch_detail(self, link: str) -> Dict[str, str]:
        from newsqueue.utils.exceptions import ExtractionError

        with self.lock:
            self.detail_calls.append(link)
        if link in self.failing_links:
            raise ExtractionError(f"Detail page unavailable: {link}", url=link)
        return dict(self.details.get(link, {}))


class RecordingNotifier:
    """Notifier that records messages and can be told to fail."""

    def __init__(self):
        self.messages: List[tuple] = []
        self.error: Optional[Exception] = None
        self.lock = threading.Lock()

    def notify(self, subscriber_id: str, text: str) -> None:
        if self.error is not None:
            raise self.error
        with self.lock:
            self.messages.append((subscriber_id, text))

    def messages_for(self, subscriber_id: str) -> List[str]:
        with self.lock:
            return [text for sid, text in self.messages if sid == subscriber_id]


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Create a temporary database file with the full schema."""
    from newsqueue.database.schema import DatabaseSchema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    DatabaseSchema(db_path).create_tables()

    yield db_path

    # Cleanup, including WAL side files
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from newsqueue.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=4)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def delivery_queue(db_connection):
    from newsqueue.storage.delivery_queue import DeliveryQueue

    return DeliveryQueue(db_connection)


@pytest.fixture
def content_store(db_connection, delivery_queue):
    from newsqueue.storage.content_store import ContentStore

    return ContentStore(db_connection, delivery_queue)


@pytest.fixture
def subscriber_repo(db_connection):
    from newsqueue.storage.subscriber_repository import SubscriberRepository

    return SubscriberRepository(db_connection)


@pytest.fixture
def source_catalog(db_connection):
    from newsqueue.storage.subscriber_repository import SourceCatalog

    return SourceCatalog(db_connection)


@pytest.fixture
def add_subscriber(subscriber_repo):
    """Factory registering a subscriber with a complete configuration."""
    from newsqueue.database.models import SubscriberUpdate

    def _add(subscriber_id: str, source_ref: Optional[str] = SOURCE_S, interval_minutes: Optional[int] = 30):
        fields = {}
        if source_ref is not None:
            fields["source_ref"] = source_ref
        if interval_minutes is not None:
            fields["interval_minutes"] = interval_minutes
        return subscriber_repo.apply(SubscriberUpdate(subscriber_id=subscriber_id, **fields))

    return _add


@pytest.fixture
def make_item():
    """Factory building content items."""
    from newsqueue.database.models import ContentItem, utc_now

    def _make(link: str, source_ref: str = SOURCE_S, fetched_at=None, **kwargs):
        return ContentItem(
            link=link,
            title=kwargs.pop("title", f"Item {link.rsplit('/', 1)[-1]}"),
            summary=kwargs.pop("summary", "Summary"),
            details=kwargs.pop("details", {"full_story": "Full story"}),
            source_ref=source_ref,
            fetched_at=fetched_at or utc_now(),
            **kwargs,
        )

    return _make


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def pipeline(fake_extractor, content_store, delivery_queue, notifier):
    from newsqueue.processing.pipeline import IngestionPipeline

    return IngestionPipeline(fake_extractor, content_store, delivery_queue, notifier)


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate, timeout: float = 5.0, interval: float = 0.005) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
