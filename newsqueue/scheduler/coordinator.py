"""
Schedule Coordinator
====================

Keeps the task registry in step with stored subscriber configuration.
"""

from typing import Optional

from ..core.ports import SubscriberDirectory
from ..database.models import Subscriber, SubscriberUpdate
from ..storage.delivery_queue import DeliveryQueue
from ..storage.subscriber_repository import SubscriberRepository
from ..utils.logging import get_scheduler_logger
from .task_registry import TaskRegistry


class ScheduleCoordinator:
    """Translates subscriber configuration changes into registry calls."""

    def __init__(
        self,
        registry: TaskRegistry,
        directory: SubscriberDirectory,
        subscribers: Optional[SubscriberRepository] = None,
        delivery_queue: Optional[DeliveryQueue] = None,
    ):
        """Initialize coordinator.

        Args:
            registry: Registry holding the recurring tasks
            directory: Source of subscriber configuration
            subscribers: Repository used to persist updates
            delivery_queue: Queue cleared when a subscriber's history resets
        """
        self.registry = registry
        self.directory = directory
        self.subscribers = subscribers
        self.delivery_queue = delivery_queue
        self.logger = get_scheduler_logger()

    def on_config_changed(self, subscriber_id: str) -> bool:
        """Re-read a subscriber's configuration and replace its task.

        An incomplete configuration leaves any existing task untouched.

        Returns:
            True if a task was (re)scheduled, False if configuration is incomplete

        Raises:
            InvalidScheduleError: If the stored configuration is rejected by the registry
            SchedulerUnavailableError: If the registry has been shut down
        """
        config = self.directory.config_of(subscriber_id)
        if config is None:
            self.logger.info(
                f"Configuration of {subscriber_id} incomplete, keeping current schedule",
                extra={"subscriber_id": subscriber_id},
            )
            return False

        self.registry.schedule(subscriber_id, config.source_ref, config.interval_minutes)
        return True

    def apply_update(self, update: SubscriberUpdate, reschedule: bool = True) -> Subscriber:
        """Persist a subscriber update and apply its side effects.

        A new source or language empties the subscriber's delivery queue. A new
        source or interval replaces the recurring task. Values equal to the
        stored ones change nothing.

        Args:
            update: Validated partial update
            reschedule: Replace the recurring task in this process; off for
                processes that do not run the scheduler

        Returns:
            The subscriber as stored after the update
        """
        if self.subscribers is None:
            raise RuntimeError("ScheduleCoordinator was built without a subscriber repository")

        previous = self.subscribers.get(update.subscriber_id)
        subscriber = self.subscribers.apply(update)
        changes = update.changes()

        def changed(name: str) -> bool:
            return name in changes and (previous is None or getattr(previous, name) != getattr(subscriber, name))

        if self.delivery_queue is not None and (changed("source_ref") or changed("language")):
            self.delivery_queue.clear(update.subscriber_id)

        if reschedule and (changed("source_ref") or changed("interval_minutes")):
            self.on_config_changed(update.subscriber_id)

        return subscriber

    def restore_all(self) -> int:
        """Schedule every subscriber whose configuration is complete.

        Returns:
            Number of tasks scheduled
        """
        if self.subscribers is None:
            raise RuntimeError("ScheduleCoordinator was built without a subscriber repository")

        scheduled = 0
        for subscriber in self.subscribers.list_complete():
            if self.on_config_changed(subscriber.subscriber_id):
                scheduled += 1

        self.logger.info(f"Restored {scheduled} recurring tasks")
        return scheduled
