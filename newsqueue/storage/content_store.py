"""
Content Store
=============

Deduplicated storage of content items keyed by canonical link. The first
successful ``upsert`` of a link inserts the item and fans it out to the
matching subscribers in the same transaction; every later ``upsert`` of the
same link is a conflict that writes nothing.
"""

import sqlite3
from typing import Optional

from ..database.models import ContentItem, Outcome, StoreResult, to_db_timestamp
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode
from .delivery_queue import DeliveryQueue


class ContentStore:
    """Repository for content items with insert-if-absent semantics."""

    def __init__(self, db_connection: DatabaseConnection, delivery_queue: DeliveryQueue):
        """Initialize content store.

        Args:
            db_connection: Database connection manager
            delivery_queue: Queue that receives fan-out rows for new items
        """
        self.db = db_connection
        self.delivery_queue = delivery_queue
        self.logger = get_logger_for_component("content_store")

    def upsert(self, item: ContentItem) -> StoreResult:
        """Insert an item unless its link is already stored.

        Concurrent callers with the same link race on the unique constraint;
        exactly one of them inserts and fans out, the others get ``CONFLICT``.

        Args:
            item: Item to store; its ``id`` is ignored. Subscribers of
                ``item.source_ref`` receive it

        Returns:
            ``StoreResult`` with ``CREATED`` and the fan-out count, or
            ``CONFLICT`` and the id of the stored item

        Raises:
            DatabaseError: If the transaction fails
        """
        source_ref = item.source_ref
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO content_items (link, title, summary, details, source_ref, fetched_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(link) DO NOTHING
                    """,
                    (
                        item.link, item.title, item.summary, item.details_json(),
                        source_ref, to_db_timestamp(item.fetched_at)
                    )
                )

                if cursor.rowcount == 1:
                    item_id = cursor.lastrowid
                    delivered = self.delivery_queue.fan_out_in(conn, item_id, source_ref)
                    result = StoreResult(outcome=Outcome.CREATED, item_id=item_id, delivered_to=delivered)
                else:
                    row = conn.execute(
                        "SELECT id FROM content_items WHERE link = ?", (item.link,)
                    ).fetchone()
                    result = StoreResult(outcome=Outcome.CONFLICT, item_id=row["id"])

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to store content item {item.link}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

        if result.created:
            self.logger.debug(
                f"Stored item {result.item_id} from {source_ref}, delivered to {result.delivered_to}"
            )
        else:
            self.logger.debug(f"Item already stored: {item.link}")

        return result

    def exists(self, link: str) -> bool:
        """Check whether an item with this link is stored."""
        try:
            row = self.db.execute_one(
                "SELECT 1 FROM content_items WHERE link = ?", (link.strip(),)
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to look up content item {link}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        return row is not None

    def get(self, item_id: int) -> Optional[ContentItem]:
        row = self.db.execute_one("SELECT * FROM content_items WHERE id = ?", (item_id,))
        return ContentItem.from_db_row(row) if row else None

    def get_by_link(self, link: str) -> Optional[ContentItem]:
        row = self.db.execute_one("SELECT * FROM content_items WHERE link = ?", (link.strip(),))
        return ContentItem.from_db_row(row) if row else None

    def count(self, source_ref: Optional[str] = None) -> int:
        """Count stored items, optionally restricted to one source."""
        if source_ref is None:
            row = self.db.execute_one("SELECT COUNT(*) FROM content_items")
        else:
            row = self.db.execute_one(
                "SELECT COUNT(*) FROM content_items WHERE source_ref = ?", (source_ref,)
            )
        return row[0] if row else 0
