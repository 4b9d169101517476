"""
Delivery Queue
==============

Per-subscriber read/unread queue layered on the shared content store. Every
row of ``delivery_status`` links one subscriber to one content item; rows are
created by fan-out when an item is first stored and removed only by
``clear``.
"""

import sqlite3

from ..database.models import ContentItem, UnreadResult
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


FAN_OUT_SQL = """
    INSERT OR IGNORE INTO delivery_status (subscriber_id, item_id, read)
    SELECT subscriber_id, ?, 0 FROM subscribers WHERE source_ref = ?
"""

# Oldest unread item first, lowest id on equal timestamps; the window count
# is evaluated over the same snapshot as the row itself.
FIRST_UNREAD_SQL = """
    SELECT c.id, c.link, c.title, c.summary, c.details, c.source_ref, c.fetched_at,
           COUNT(*) OVER () AS unread_count
    FROM delivery_status d
    JOIN content_items c ON c.id = d.item_id
    WHERE d.subscriber_id = ? AND d.read = 0
    ORDER BY c.fetched_at ASC, c.id ASC
    LIMIT 1
"""


class DeliveryQueue:
    """Repository for per-subscriber delivery state."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize delivery queue.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("delivery_queue")

    def fan_out(self, item_id: int, source_ref: str) -> int:
        """Create one unread row per subscriber whose source equals ``source_ref``.

        Existing rows are left untouched, so repeating a fan-out is harmless.

        Args:
            item_id: Stored content item ID
            source_ref: Source the item was ingested from

        Returns:
            Number of delivery rows created

        Raises:
            DatabaseError: If the insert fails
        """
        try:
            with self.db.transaction() as conn:
                created = self.fan_out_in(conn, item_id, source_ref)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to fan out item {item_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

        return created

    def fan_out_in(self, conn: sqlite3.Connection, item_id: int, source_ref: str) -> int:
        """Fan out using a connection that already holds a write transaction."""
        cursor = conn.execute(FAN_OUT_SQL, (item_id, source_ref))
        created = max(cursor.rowcount, 0)
        self.logger.debug(f"Fanned out item {item_id} to {created} subscribers")
        return created

    def first_unread(self, subscriber_id: str) -> UnreadResult:
        """Get the oldest unread item of a subscriber together with the unread total.

        Args:
            subscriber_id: Subscriber to query

        Returns:
            ``UnreadResult`` holding the item and count, or ``UnreadResult.none()``
        """
        try:
            with self.db.get_connection() as conn:
                return self._first_unread(conn, subscriber_id)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to read unread items for {subscriber_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _first_unread(self, conn: sqlite3.Connection, subscriber_id: str) -> UnreadResult:
        row = conn.execute(FIRST_UNREAD_SQL, (subscriber_id,)).fetchone()
        if row is None:
            return UnreadResult.none()

        data = dict(row)
        unread_count = data.pop("unread_count")
        return UnreadResult(item=ContentItem.from_db_row(data), unread_count=unread_count)

    def unread_count(self, subscriber_id: str) -> int:
        row = self.db.execute_one(
            "SELECT COUNT(*) FROM delivery_status WHERE subscriber_id = ? AND read = 0",
            (subscriber_id,)
        )
        return row[0] if row else 0

    def mark_read(self, subscriber_id: str, item_id: int) -> bool:
        """Mark one item read for a subscriber.

        Returns:
            True if an unread row was flipped, False if it was already read or absent
        """
        try:
            updated = self.db.execute_update(
                "UPDATE delivery_status SET read = 1 WHERE subscriber_id = ? AND item_id = ? AND read = 0",
                (subscriber_id, item_id)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to mark item {item_id} read for {subscriber_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        return updated > 0

    def mark_all_read(self, subscriber_id: str) -> int:
        """Mark every unread item of a subscriber read.

        Returns:
            Number of rows updated
        """
        try:
            updated = self.db.execute_update(
                "UPDATE delivery_status SET read = 1 WHERE subscriber_id = ? AND read = 0",
                (subscriber_id,)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to mark all items read for {subscriber_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        self.logger.info(f"Marked {updated} items read for {subscriber_id}")
        return updated

    def clear(self, subscriber_id: str) -> int:
        """Delete all delivery rows of a subscriber.

        Returns:
            Number of rows deleted
        """
        try:
            deleted = self.db.execute_update(
                "DELETE FROM delivery_status WHERE subscriber_id = ?",
                (subscriber_id,)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to clear delivery queue for {subscriber_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        self.logger.info(f"Cleared {deleted} delivery rows for {subscriber_id}")
        return deleted

    def advance(self, subscriber_id: str) -> UnreadResult:
        """Mark the current first unread item read and return the next one.

        Both steps run in one transaction, so two concurrent calls never
        consume the same item.

        Returns:
            The new first unread item, or ``UnreadResult.none()``
        """
        try:
            with self.db.transaction() as conn:
                current = self._first_unread(conn, subscriber_id)
                if not current.is_none:
                    conn.execute(
                        "UPDATE delivery_status SET read = 1 WHERE subscriber_id = ? AND item_id = ?",
                        (subscriber_id, current.item.id)
                    )
                return self._first_unread(conn, subscriber_id)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to advance delivery queue for {subscriber_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e
