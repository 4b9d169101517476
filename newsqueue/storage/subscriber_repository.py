"""
Subscriber Repository
=====================

Subscriber directory and source catalogue. Subscribers are written only
through validated ``SubscriberUpdate`` records; every updatable field maps to
a fixed column.
"""

import sqlite3
from typing import List, Optional

from ..database.models import Subscriber, SubscriberConfig, SubscriberUpdate, FeedSource
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ValidationError, ErrorCode
from ..utils.validators import URLValidator, validate_file_path


UPDATE_COLUMNS = {
    "source_ref": "source_ref",
    "interval_minutes": "interval_minutes",
    "language": "language",
    "age_group": "age_group",
}


class SubscriberRepository:
    """Repository for subscriber registration and polling configuration."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize subscriber repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("subscriber_repository")

    def get(self, subscriber_id: str) -> Optional[Subscriber]:
        row = self.db.execute_one(
            "SELECT * FROM subscribers WHERE subscriber_id = ?", (subscriber_id,)
        )
        return Subscriber.from_db_row(row) if row else None

    def ensure(self, subscriber_id: str) -> Subscriber:
        """Register a subscriber with no configuration if not yet known."""
        self.db.execute_update(
            "INSERT OR IGNORE INTO subscribers (subscriber_id) VALUES (?)", (subscriber_id,)
        )
        return self.get(subscriber_id)

    def apply(self, update: SubscriberUpdate) -> Subscriber:
        """Persist the fields set on ``update``, creating the subscriber if needed.

        Args:
            update: Validated partial update

        Returns:
            The subscriber as stored after the update

        Raises:
            DatabaseError: If the write fails
        """
        changes = update.changes()
        columns = [UPDATE_COLUMNS[name] for name in changes]

        if columns:
            placeholders = ", ".join("?" for _ in columns)
            assignments = ", ".join(f"{column} = excluded.{column}" for column in columns)
            query = (
                f"INSERT INTO subscribers (subscriber_id, {', '.join(columns)}) "
                f"VALUES (?, {placeholders}) "
                f"ON CONFLICT(subscriber_id) DO UPDATE SET {assignments}"
            )
            params = (update.subscriber_id, *changes.values())
        else:
            query = "INSERT OR IGNORE INTO subscribers (subscriber_id) VALUES (?)"
            params = (update.subscriber_id,)

        try:
            self.db.execute_update(query, params)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to update subscriber {update.subscriber_id}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        self.logger.info(f"Updated subscriber {update.subscriber_id}: {sorted(changes)}")
        return self.get(update.subscriber_id)

    def config_of(self, subscriber_id: str) -> Optional[SubscriberConfig]:
        """Scheduling configuration of a subscriber, or None while incomplete."""
        subscriber = self.get(subscriber_id)
        return subscriber.config() if subscriber else None

    def subscribers_of(self, source_ref: str) -> List[str]:
        """IDs of subscribers whose source is exactly ``source_ref``."""
        rows = self.db.execute_query(
            "SELECT subscriber_id FROM subscribers WHERE source_ref = ? ORDER BY subscriber_id",
            (source_ref,)
        )
        return [row["subscriber_id"] for row in rows]

    def list_all(self) -> List[Subscriber]:
        rows = self.db.execute_query("SELECT * FROM subscribers ORDER BY subscriber_id")
        return [Subscriber.from_db_row(row) for row in rows]

    def list_complete(self) -> List[Subscriber]:
        """Subscribers with both a source and an interval configured."""
        rows = self.db.execute_query(
            """
            SELECT * FROM subscribers
            WHERE source_ref IS NOT NULL AND interval_minutes IS NOT NULL
            ORDER BY subscriber_id
            """
        )
        return [Subscriber.from_db_row(row) for row in rows]

    def delete(self, subscriber_id: str) -> bool:
        deleted = self.db.execute_update(
            "DELETE FROM subscribers WHERE subscriber_id = ?", (subscriber_id,)
        )
        return deleted > 0


class SourceCatalog:
    """Repository for the catalogue of sources subscribers pick from."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("source_catalog")

    def add(self, link: str) -> FeedSource:
        """Add a source link to the catalogue; existing entries are kept.

        Raises:
            ValidationError: If the link is not an http(s) URL
        """
        link = URLValidator.validate_source_url(link)
        name = URLValidator.source_name(link)

        self.db.execute_update(
            "INSERT OR IGNORE INTO feed_sources (name, link) VALUES (?, ?)", (name, link)
        )
        row = self.db.execute_one("SELECT * FROM feed_sources WHERE link = ?", (link,))
        if row is None:
            raise ValidationError(
                f"Source name '{name}' is already used by another link",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="link"
            )
        return FeedSource(**dict(row))

    def load_from_file(self, path: str) -> int:
        """Load one source link per line; blank lines and ``#`` comments are skipped.

        Returns:
            Number of catalogue entries after loading
        """
        file_path = validate_file_path(path, must_exist=True)

        with open(file_path, encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    self.add(line)
                except ValidationError as e:
                    self.logger.warning(f"Skipping source line {line!r}: {e}")

        total = len(self.list_sources())
        self.logger.info(f"Source catalogue holds {total} entries after loading {file_path}")
        return total

    def list_sources(self) -> List[FeedSource]:
        rows = self.db.execute_query("SELECT * FROM feed_sources ORDER BY name")
        return [FeedSource(**dict(row)) for row in rows]

    def names(self) -> List[str]:
        return [source.name for source in self.list_sources()]

    def link_for(self, name: str) -> Optional[str]:
        row = self.db.execute_one("SELECT link FROM feed_sources WHERE name = ?", (name,))
        return row["link"] if row else None
