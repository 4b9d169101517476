"""
Tests for Ingestion Pipeline
============================

Test suite for IngestionPipeline with a fake extractor, a recording notifier
and a real temporary database.
"""

from unittest.mock import patch

from newsqueue.database.models import Outcome
from newsqueue.delivery.formatting import NO_FRESH_NEWS, PARSING_STARTED
from newsqueue.processing.pipeline import IngestionPipeline
from newsqueue.utils.exceptions import DatabaseError, DeliveryError, ExtractionError

SOURCE_S = "https://www.sciencedaily.com/rss/top/science.xml"

L1 = "https://www.sciencedaily.com/releases/2024/05/240501.htm"
L2 = "https://www.sciencedaily.com/releases/2024/05/240502.htm"
L3 = "https://www.sciencedaily.com/releases/2024/05/240503.htm"


class TestIngestionCycle:
    """Test suite for one ingestion cycle."""

    def test_cycle_stores_new_items_and_notifies(
        self, pipeline, fake_extractor, notifier, add_subscriber, content_store
    ):
        """Test a cycle storing two new items."""
        add_subscriber("a", SOURCE_S)
        fake_extractor.add_entries(SOURCE_S, L1, L2)

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.outcome == Outcome.SUCCESS
        assert result.indexed == 2
        assert result.stored == 2
        assert result.unread_count == 2
        assert result.notified is True
        assert result.duration_seconds >= 0
        assert content_store.count() == 2
        assert notifier.messages_for("a") == ["*Fresh News available (2)*"]

    def test_stored_item_keeps_index_and_detail_fields(self, pipeline, fake_extractor, content_store):
        """Test that title and summary come from the index and details from the page."""
        fake_extractor.add_entries(SOURCE_S, L1)
        fake_extractor.details[L1] = {"full_story": "Body", "story_source": "Lab"}

        pipeline.run_cycle("a", SOURCE_S)

        item = content_store.get_by_link(L1)
        assert item.title == "Title of 240501.htm"
        assert item.summary == "Summary"
        assert item.details == {"full_story": "Body", "story_source": "Lab"}
        assert item.source_ref == SOURCE_S

    def test_known_items_are_not_fetched_again(self, pipeline, fake_extractor, notifier, add_subscriber):
        """Test that a second cycle skips details of already stored links."""
        add_subscriber("a", SOURCE_S)
        fake_extractor.add_entries(SOURCE_S, L1, L2)
        pipeline.run_cycle("a", SOURCE_S)

        fake_extractor.add_entries(SOURCE_S, L3)
        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.skipped_existing == 2
        assert result.stored == 1
        assert fake_extractor.detail_calls == [L1, L2, L3]
        assert notifier.messages_for("a")[-1] == "*Fresh News available (3)*"

    def test_empty_index_reports_no_fresh_news(self, pipeline, notifier):
        """Test that a subscriber with nothing unread is told so."""
        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.outcome == Outcome.SUCCESS
        assert result.indexed == 0
        assert notifier.messages_for("a") == [NO_FRESH_NEWS]

    def test_cycle_for_subscriber_without_fan_out(self, pipeline, fake_extractor, notifier, content_store):
        """Test that storing still works when nobody follows the source yet."""
        fake_extractor.add_entries(SOURCE_S, L1)

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.stored == 1
        assert result.unread_count == 0
        assert content_store.count() == 1
        assert notifier.messages_for("a") == [NO_FRESH_NEWS]


class TestIngestionFailures:
    """Test failure handling inside a cycle."""

    def test_index_failure_aborts_without_notifying(self, pipeline, fake_extractor, notifier):
        """Test that an unreachable index ends the cycle with a transient outcome."""
        fake_extractor.index_error = ExtractionError("connection refused", url=SOURCE_S)

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.outcome == Outcome.TRANSIENT_ERROR
        assert "connection refused" in result.error
        assert result.notified is False
        assert notifier.messages == []

    def test_failed_item_is_skipped(self, pipeline, fake_extractor, add_subscriber, content_store):
        """Test that one failing detail page does not stop the others."""
        add_subscriber("a", SOURCE_S)
        fake_extractor.add_entries(SOURCE_S, L1, L2, L3)
        fake_extractor.failing_links.add(L2)

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.outcome == Outcome.SUCCESS
        assert result.stored == 2
        assert result.failed == 1
        assert result.failed_links == [L2]
        assert result.unread_count == 2
        assert content_store.exists(L2) is False

    def test_failed_item_is_retried_next_cycle(self, pipeline, fake_extractor, content_store):
        """Test that a skipped link is fetched again by a later cycle."""
        fake_extractor.add_entries(SOURCE_S, L1)
        fake_extractor.failing_links.add(L1)
        pipeline.run_cycle("a", SOURCE_S)

        fake_extractor.failing_links.clear()
        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.stored == 1
        assert content_store.exists(L1)

    def test_all_items_failing_is_transient(self, pipeline, fake_extractor, notifier):
        """Test the outcome when no item of a non-empty index could be stored."""
        fake_extractor.add_entries(SOURCE_S, L1, L2)
        fake_extractor.failing_links.update({L1, L2})

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.outcome == Outcome.TRANSIENT_ERROR
        assert result.failed == 2
        assert notifier.messages_for("a") == [NO_FRESH_NEWS]

    def test_storage_failure_counts_as_failed_item(self, pipeline, fake_extractor, content_store):
        """Test that a database error on one item is contained."""
        fake_extractor.add_entries(SOURCE_S, L1)

        with patch.object(content_store, "upsert", side_effect=DatabaseError("database is locked")):
            result = pipeline.run_cycle("a", SOURCE_S)

        assert result.failed == 1
        assert result.stored == 0

    def test_concurrent_store_counts_as_duplicate(self, pipeline, fake_extractor, content_store, make_item):
        """Test an item stored by another cycle between lookup and insert."""
        fake_extractor.add_entries(SOURCE_S, L1)
        content_store.upsert(make_item(L1))

        with patch.object(content_store, "exists", return_value=False):
            result = pipeline.run_cycle("a", SOURCE_S)

        assert result.duplicates == 1
        assert result.stored == 0
        assert result.outcome == Outcome.SUCCESS

    def test_notification_failure_is_contained(self, pipeline, fake_extractor, notifier, add_subscriber):
        """Test that a failing notifier leaves the stored items in place."""
        add_subscriber("a", SOURCE_S)
        fake_extractor.add_entries(SOURCE_S, L1)
        notifier.error = DeliveryError("bot was blocked", subscriber_id="a")

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.outcome == Outcome.SUCCESS
        assert result.stored == 1
        assert result.notified is False

    def test_unexpected_notifier_error_is_contained(self, pipeline, fake_extractor, notifier):
        """Test that non-application notifier errors do not escape the cycle."""
        notifier.error = RuntimeError("socket closed")

        result = pipeline.run_cycle("a", SOURCE_S)

        assert result.notified is False


class TestPipelineOptions:
    """Test pipeline construction options."""

    def test_announce_start_sends_parsing_notice(
        self, fake_extractor, content_store, delivery_queue, notifier
    ):
        """Test the optional notice sent before each cycle."""
        pipeline = IngestionPipeline(
            fake_extractor, content_store, delivery_queue, notifier, announce_start=True
        )

        pipeline.run_cycle("a", SOURCE_S)

        assert notifier.messages_for("a") == [PARSING_STARTED, NO_FRESH_NEWS]

    def test_pipeline_is_callable_runner(self, pipeline, fake_extractor):
        """Test that the pipeline can be handed to the registry as its runner."""
        fake_extractor.add_entries(SOURCE_S, L1)

        result = pipeline("a", SOURCE_S)

        assert result.stored == 1
