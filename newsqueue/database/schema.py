"""
NewsQueue Database Schema
=========================

SQLite schema with the uniqueness constraints the ingestion core relies on:
- subscribers: registration and polling configuration per subscriber
- feed_sources: catalogue of sources subscribers can pick from
- content_items: deduplicated content, unique per canonical link
- delivery_status: per-subscriber read flags, unique per (subscriber, item)
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

TABLES = ("delivery_status", "content_items", "feed_sources", "subscribers")


class DatabaseSchema:
    """Database schema manager for the NewsQueue SQLite database."""

    def __init__(self, db_path: str = "data/newsqueue.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables with proper schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            # Create tables in dependency order
            self._create_subscribers_table(conn)
            self._create_feed_sources_table(conn)
            self._create_content_items_table(conn)
            self._create_delivery_status_table(conn)

            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_subscribers_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS subscribers (
                subscriber_id TEXT PRIMARY KEY,
                source_ref TEXT,
                interval_minutes INTEGER CHECK (interval_minutes IS NULL OR interval_minutes > 0),
                language TEXT,
                age_group TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_feed_sources_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feed_sources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                link TEXT NOT NULL UNIQUE
            )
        """
        )

    def _create_content_items_table(self, conn: sqlite3.Connection) -> None:
        """Create content_items table; the link constraint is what deduplicates."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS content_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                link TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL DEFAULT '',
                summary TEXT NOT NULL DEFAULT '',
                details TEXT NOT NULL DEFAULT '{}',  -- JSON object of extracted fields
                source_ref TEXT NOT NULL,
                fetched_at TEXT NOT NULL
            )
        """
        )

    def _create_delivery_status_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS delivery_status (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subscriber_id TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                read BOOLEAN NOT NULL DEFAULT FALSE,
                FOREIGN KEY (subscriber_id) REFERENCES subscribers(subscriber_id) ON DELETE CASCADE,
                FOREIGN KEY (item_id) REFERENCES content_items(id) ON DELETE CASCADE,
                UNIQUE(subscriber_id, item_id)
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_subscribers_source ON subscribers(source_ref)",
            "CREATE INDEX IF NOT EXISTS idx_content_items_fetched ON content_items(fetched_at, id)",
            "CREATE INDEX IF NOT EXISTS idx_content_items_source ON content_items(source_ref)",
            "CREATE INDEX IF NOT EXISTS idx_delivery_unread ON delivery_status(subscriber_id, read)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def verify_schema(self) -> bool:
        """Verify that every expected table exists."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """
                )
                tables = {row[0] for row in cursor.fetchall()}

            missing = set(TABLES) - tables
            if missing:
                logger.error(f"Missing tables: {sorted(missing)}")
                return False

            logger.info("Database schema verification passed")
            return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False

