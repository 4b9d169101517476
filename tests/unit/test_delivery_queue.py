"""
Tests for Delivery Queue
========================

Test suite for DeliveryQueue covering fan-out, first-unread ordering,
read marking and per-subscriber isolation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from newsqueue.database.models import Outcome, UnreadResult

SOURCE_S = "https://www.sciencedaily.com/rss/top/science.xml"
SOURCE_T = "https://www.sciencedaily.com/rss/top/health.xml"

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestFanOut:
    """Test fan-out of stored items to subscribers."""

    def test_fan_out_creates_one_row_per_matching_subscriber(
        self, add_subscriber, content_store, delivery_queue, make_item
    ):
        """Test that fan-out reaches exactly the subscribers of the source."""
        add_subscriber("a", SOURCE_S)
        add_subscriber("b", SOURCE_S)
        add_subscriber("c", SOURCE_T)

        result = content_store.upsert(make_item("https://example.com/1"))

        assert result.delivered_to == 2
        assert delivery_queue.unread_count("a") == 1
        assert delivery_queue.unread_count("b") == 1
        assert delivery_queue.unread_count("c") == 0

    def test_fan_out_matches_source_exactly(self, add_subscriber, content_store, delivery_queue, make_item):
        """Test that a source prefix does not count as a match."""
        add_subscriber("a", SOURCE_S + "?page=2")

        result = content_store.upsert(make_item("https://example.com/1"))

        assert result.delivered_to == 0
        assert delivery_queue.unread_count("a") == 0

    def test_repeated_fan_out_is_harmless(self, add_subscriber, content_store, delivery_queue, make_item):
        """Test that fanning out the same item twice creates no extra rows."""
        add_subscriber("a", SOURCE_S)
        stored = content_store.upsert(make_item("https://example.com/1"))

        assert delivery_queue.fan_out(stored.item_id, SOURCE_S) == 0
        assert delivery_queue.unread_count("a") == 1

    def test_fan_out_does_not_reset_read_rows(self, add_subscriber, content_store, delivery_queue, make_item):
        """Test that a read row stays read after another fan-out."""
        add_subscriber("a", SOURCE_S)
        stored = content_store.upsert(make_item("https://example.com/1"))
        delivery_queue.mark_read("a", stored.item_id)

        delivery_queue.fan_out(stored.item_id, SOURCE_S)

        assert delivery_queue.first_unread("a").is_none

    def test_subscriber_added_later_misses_earlier_items(
        self, add_subscriber, content_store, delivery_queue, make_item
    ):
        """Test that fan-out only reaches subscribers present at store time."""
        add_subscriber("a", SOURCE_S)
        content_store.upsert(make_item("https://example.com/1"))
        add_subscriber("b", SOURCE_S)

        assert delivery_queue.unread_count("a") == 1
        assert delivery_queue.first_unread("b").is_none


class TestFirstUnread:
    """Test first-unread lookup."""

    def test_empty_queue_returns_none(self, delivery_queue):
        """Test lookup for a subscriber with nothing unread."""
        result = delivery_queue.first_unread("nobody")

        assert result == UnreadResult.none()
        assert result.is_none
        assert result.unread_count == 0
        assert result.outcome == Outcome.NOT_FOUND

    def test_oldest_item_first(self, add_subscriber, content_store, delivery_queue, make_item):
        """Test that the earliest fetched item is returned regardless of insert order."""
        add_subscriber("a", SOURCE_S)
        content_store.upsert(make_item("https://example.com/new", fetched_at=BASE_TIME + timedelta(minutes=5)))
        content_store.upsert(make_item("https://example.com/old", fetched_at=BASE_TIME))

        result = delivery_queue.first_unread("a")

        assert result.item.link == "https://example.com/old"
        assert result.unread_count == 2
        assert result.outcome == Outcome.SUCCESS

    def test_equal_timestamps_break_ties_by_lowest_id(
        self, add_subscriber, content_store, delivery_queue, make_item
    ):
        """Test tie-break on identical fetch times."""
        add_subscriber("a", SOURCE_S)
        first = content_store.upsert(make_item("https://example.com/z", fetched_at=BASE_TIME))
        content_store.upsert(make_item("https://example.com/a", fetched_at=BASE_TIME))

        result = delivery_queue.first_unread("a")

        assert result.item.id == first.item_id
        assert result.item.link == "https://example.com/z"

    def test_returned_item_carries_details(self, add_subscriber, content_store, delivery_queue, make_item):
        """Test that stored detail fields round-trip through the queue."""
        add_subscriber("a", SOURCE_S)
        content_store.upsert(
            make_item("https://example.com/1", details={"full_story": "Body", "story_source": "Lab"})
        )

        item = delivery_queue.first_unread("a").item

        assert item.details == {"full_story": "Body", "story_source": "Lab"}
        assert item.source_ref == SOURCE_S


class TestReadMarking:
    """Test mark_read, mark_all_read, clear and advance."""

    @pytest.fixture
    def two_items(self, add_subscriber, content_store, make_item):
        add_subscriber("a", SOURCE_S)
        add_subscriber("b", SOURCE_S)
        first = content_store.upsert(make_item("https://example.com/1", fetched_at=BASE_TIME))
        second = content_store.upsert(
            make_item("https://example.com/2", fetched_at=BASE_TIME + timedelta(seconds=1))
        )
        return first.item_id, second.item_id

    def test_mark_read_moves_to_next_item(self, two_items, delivery_queue):
        """Test that marking the first item read exposes the second."""
        first_id, second_id = two_items

        assert delivery_queue.mark_read("a", first_id) is True

        result = delivery_queue.first_unread("a")
        assert result.item.id == second_id
        assert result.unread_count == 1

    def test_mark_read_is_idempotent(self, two_items, delivery_queue):
        """Test that marking an already read item reports no change."""
        first_id, _ = two_items
        delivery_queue.mark_read("a", first_id)

        assert delivery_queue.mark_read("a", first_id) is False
        assert delivery_queue.unread_count("a") == 1

    def test_mark_read_unknown_item(self, two_items, delivery_queue):
        """Test marking an item the subscriber never received."""
        assert delivery_queue.mark_read("a", 9999) is False
        assert delivery_queue.mark_read("stranger", two_items[0]) is False

    def test_mark_read_is_isolated_per_subscriber(self, two_items, delivery_queue):
        """Test that one subscriber's reads never affect another."""
        first_id, _ = two_items
        delivery_queue.mark_read("a", first_id)

        result = delivery_queue.first_unread("b")
        assert result.item.id == first_id
        assert result.unread_count == 2

    def test_mark_all_read(self, two_items, delivery_queue):
        """Test marking everything read."""
        assert delivery_queue.mark_all_read("a") == 2
        assert delivery_queue.first_unread("a").is_none
        assert delivery_queue.mark_all_read("a") == 0
        assert delivery_queue.unread_count("b") == 2

    def test_clear_removes_history(self, two_items, delivery_queue):
        """Test that clear deletes every row of the subscriber only."""
        delivery_queue.mark_read("a", two_items[0])

        assert delivery_queue.clear("a") == 2
        assert delivery_queue.first_unread("a") == UnreadResult.none()
        assert delivery_queue.clear("a") == 0
        assert delivery_queue.unread_count("b") == 2

    def test_advance_consumes_in_order(self, two_items, delivery_queue):
        """Test that advance marks the current item read and returns the next."""
        _, second_id = two_items

        result = delivery_queue.advance("a")
        assert result.item.id == second_id
        assert result.unread_count == 1

        assert delivery_queue.advance("a").is_none
        assert delivery_queue.advance("a").is_none
        assert delivery_queue.unread_count("b") == 2
