"""
Ingestion Pipeline
==================

One ingestion cycle for one subscriber: list the source index, store every
item not seen before, then tell the subscriber how much is unread.
"""

from pydantic import ValidationError as PydanticValidationError

from ..core.ports import Extractor, Notifier
from ..database.models import ContentItem, CycleResult, IndexEntry, Outcome, utc_now
from ..delivery.formatting import PARSING_STARTED, cycle_notice
from ..storage.content_store import ContentStore
from ..storage.delivery_queue import DeliveryQueue
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import DatabaseError, ExtractionError, NewsQueueError, classify_error


class IngestionPipeline:
    """Runs ingestion cycles; used as the task registry's runner."""

    def __init__(
        self,
        extractor: Extractor,
        content_store: ContentStore,
        delivery_queue: DeliveryQueue,
        notifier: Notifier,
        announce_start: bool = False,
    ):
        """Initialize pipeline.

        Args:
            extractor: Source index and detail access
            content_store: Deduplicated item storage
            delivery_queue: Per-subscriber unread state
            notifier: Outbound text delivery
            announce_start: Send a "parsing" notice before each cycle
        """
        self.extractor = extractor
        self.content_store = content_store
        self.delivery_queue = delivery_queue
        self.notifier = notifier
        self.announce_start = announce_start
        self.logger = get_logger_for_component("pipeline")

    def __call__(self, subscriber_id: str, source_ref: str) -> CycleResult:
        return self.run_cycle(subscriber_id, source_ref)

    def run_cycle(self, subscriber_id: str, source_ref: str) -> CycleResult:
        """Run one ingestion cycle.

        A failed index fetch aborts the cycle without notifying. A failed item
        is counted and skipped. Notification failures are logged only.

        Args:
            subscriber_id: Subscriber the cycle runs for
            source_ref: Source index to ingest

        Returns:
            Cycle statistics with an explicit outcome
        """
        result = CycleResult(subscriber_id=subscriber_id, source_ref=source_ref)
        log = self.logger.bind(subscriber_id=subscriber_id, source_ref=source_ref)

        with PerformanceLogger(log, "ingestion cycle") as timer:
            if self.announce_start:
                self._notify(subscriber_id, PARSING_STARTED)

            try:
                entries = self.extractor.list_index(source_ref)
            except ExtractionError as e:
                log.error(f"Index fetch failed: {e}")
                result.outcome = classify_error(e)
                result.error = str(e)
                entries = None

            if entries is not None:
                result.indexed = len(entries)
                for entry in entries:
                    self._ingest_entry(entry, source_ref, result)

                self._finish(subscriber_id, result)

        result.duration_seconds = timer.duration
        return result

    def _ingest_entry(self, entry: IndexEntry, source_ref: str, result: CycleResult) -> None:
        try:
            if self.content_store.exists(entry.link):
                result.skipped_existing += 1
                return

            details = self.extractor.fetch_detail(entry.link)
            item = ContentItem(
                link=entry.link,
                title=entry.title,
                summary=entry.summary,
                details=details,
                source_ref=source_ref,
                fetched_at=utc_now(),
            )
            stored = self.content_store.upsert(item)

        except (ExtractionError, DatabaseError, PydanticValidationError) as e:
            self.logger.warning(f"Skipping {entry.link}: {e}", extra={"source_ref": source_ref})
            result.failed += 1
            result.failed_links.append(entry.link)
            return

        if stored.created:
            result.stored += 1
        else:
            # Stored by a concurrent cycle between exists() and upsert()
            result.duplicates += 1

    def _finish(self, subscriber_id: str, result: CycleResult) -> None:
        try:
            unread = self.delivery_queue.first_unread(subscriber_id)
        except DatabaseError as e:
            self.logger.error(f"Unread lookup failed for {subscriber_id}: {e}")
            result.outcome = classify_error(e)
            result.error = str(e)
            return

        result.unread_count = unread.unread_count
        result.notified = self._notify(subscriber_id, cycle_notice(unread))

        self.logger.info(
            f"Cycle for {subscriber_id}: {result.indexed} indexed, {result.stored} stored, "
            f"{result.skipped_existing} known, {result.failed} failed, {result.unread_count} unread"
        )
        if result.outcome == Outcome.SUCCESS and result.failed and not (result.stored or result.skipped_existing or result.duplicates):
            result.outcome = Outcome.TRANSIENT_ERROR
            result.error = f"All {result.failed} items failed"

    def _notify(self, subscriber_id: str, text: str) -> bool:
        try:
            self.notifier.notify(subscriber_id, text)
            return True
        except NewsQueueError as e:
            self.logger.error(f"Notification to {subscriber_id} failed: {e}")
        except Exception as e:
            self.logger.error(f"Unexpected notifier failure for {subscriber_id}: {e}", exc_info=True)
        return False
