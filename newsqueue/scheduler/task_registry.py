"""
NewsQueue Task Registry
======================

Recurring per-subscriber ingestion tasks on a fixed-size worker pool.

Features:
- At most one active task per subscriber; scheduling replaces, never stacks
- Fixed-delay recurrence: the next run is due one interval after the
  previous run completes, the first run is due immediately
- A subscriber never has two runs in flight, even across a replacement
- Cancellation stops future runs only; an executing run is not interrupted
"""

import heapq
import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ..utils.logging import get_scheduler_logger
from ..utils.exceptions import InvalidScheduleError, SchedulerUnavailableError


Runner = Callable[[str, str], Any]


@dataclass
class ScheduledTask:
    """Handle of one installed recurring task."""

    subscriber_id: str
    source_ref: str
    interval_minutes: int
    generation: int
    cancelled: bool = False
    waiting: bool = False
    runs: int = 0
    last_completed: Optional[float] = None


class TaskRegistry:
    """
    Registry of recurring ingestion tasks keyed by subscriber.

    A single dispatcher thread keeps due times in a heap and hands due tasks
    to a ``ThreadPoolExecutor``. All bookkeeping happens under one condition
    variable; the runner itself executes outside the lock.
    """

    def __init__(
        self,
        runner: Runner,
        max_workers: int = 4,
        seconds_per_minute: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the registry and start its dispatcher.

        Args:
            runner: Called as ``runner(subscriber_id, source_ref)`` on every run
            max_workers: Size of the worker pool
            seconds_per_minute: Length of one interval minute in seconds
            clock: Monotonic time source
        """
        if max_workers < 1:
            raise InvalidScheduleError(f"max_workers must be positive, got {max_workers}")
        if seconds_per_minute <= 0:
            raise InvalidScheduleError(f"seconds_per_minute must be positive, got {seconds_per_minute}")

        self.logger = get_scheduler_logger()
        self._runner = runner
        self._seconds_per_minute = seconds_per_minute
        self._clock = clock

        self._condition = threading.Condition()
        self._heap: List[tuple] = []
        self._sequence = itertools.count()
        self._generations = itertools.count(1)
        self._tasks: Dict[str, ScheduledTask] = {}
        self._running: Set[str] = set()
        self._closed = False

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="newsqueue-worker"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="newsqueue-dispatcher", daemon=True
        )
        self._dispatcher.start()

    def schedule(self, subscriber_id: str, source_ref: str, interval_minutes: int) -> ScheduledTask:
        """Install the recurring task of a subscriber, replacing any existing one.

        Returns once the swap is committed; an in-flight run of the replaced
        task keeps going and the new task waits for it.

        Args:
            subscriber_id: Subscriber the task belongs to
            source_ref: Source passed to the runner
            interval_minutes: Delay between the end of one run and the next

        Returns:
            Handle of the new task

        Raises:
            InvalidScheduleError: If an argument is empty or the interval is not a positive int
            SchedulerUnavailableError: If the registry has been shut down
        """
        if not isinstance(subscriber_id, str) or not subscriber_id:
            raise InvalidScheduleError("subscriber_id is required", subscriber_id=subscriber_id)
        if not source_ref:
            raise InvalidScheduleError("source_ref is required", subscriber_id=subscriber_id)
        if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int) or interval_minutes <= 0:
            raise InvalidScheduleError(
                f"interval_minutes must be a positive integer, got {interval_minutes!r}",
                subscriber_id=subscriber_id,
            )

        with self._condition:
            if self._closed:
                raise SchedulerUnavailableError(subscriber_id=subscriber_id)

            previous = self._tasks.pop(subscriber_id, None)
            if previous is not None:
                previous.cancelled = True

            task = ScheduledTask(
                subscriber_id=subscriber_id,
                source_ref=source_ref,
                interval_minutes=interval_minutes,
                generation=next(self._generations),
            )
            self._tasks[subscriber_id] = task
            self._push(task, self._clock())
            self._condition.notify_all()

        self.logger.info(
            f"{'Rescheduled' if previous else 'Scheduled'} {subscriber_id} every "
            f"{interval_minutes} min (generation {task.generation})",
            extra={"subscriber_id": subscriber_id, "source_ref": source_ref},
        )
        return task

    def cancel(self, subscriber_id: str) -> bool:
        """Remove the task of a subscriber.

        Returns:
            True if a task was removed, False if there was none

        Raises:
            SchedulerUnavailableError: If the registry has been shut down
        """
        with self._condition:
            if self._closed:
                raise SchedulerUnavailableError(subscriber_id=subscriber_id)

            task = self._tasks.pop(subscriber_id, None)
            if task is None:
                return False

            task.cancelled = True
            self._condition.notify_all()

        self.logger.info(f"Cancelled task of {subscriber_id}", extra={"subscriber_id": subscriber_id})
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Cancel every task and release the worker pool.

        Calling it again is a no-op. With ``wait`` it blocks until in-flight
        runs finish, so it must not be called from inside a runner.
        """
        with self._condition:
            if self._closed:
                return
            self._closed = True
            for task in self._tasks.values():
                task.cancelled = True
            self._tasks.clear()
            self._heap.clear()
            self._condition.notify_all()

        self._dispatcher.join()
        self._executor.shutdown(wait=wait, cancel_futures=True)
        self.logger.info("Task registry shut down")

    def get_task(self, subscriber_id: str) -> Optional[ScheduledTask]:
        with self._condition:
            return self._tasks.get(subscriber_id)

    def active_subscribers(self) -> List[str]:
        with self._condition:
            return sorted(self._tasks)

    def is_running(self, subscriber_id: str) -> bool:
        with self._condition:
            return subscriber_id in self._running

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._condition:
            return len(self._tasks)

    def __enter__(self) -> "TaskRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    # Internals; every method below expects the condition to be held.

    def _push(self, task: ScheduledTask, due: float) -> None:
        heapq.heappush(self._heap, (due, next(self._sequence), task))

    def _start(self, task: ScheduledTask) -> None:
        self._running.add(task.subscriber_id)
        self._executor.submit(self._execute, task)

    def _dispatch_loop(self) -> None:
        with self._condition:
            while not self._closed:
                if not self._heap:
                    self._condition.wait()
                    continue

                due, _, task = self._heap[0]
                delay = due - self._clock()
                if delay > 0:
                    self._condition.wait(timeout=delay)
                    continue

                heapq.heappop(self._heap)
                if task.cancelled:
                    continue

                if task.subscriber_id in self._running:
                    # Replaced task still executing; started from _execute when it ends
                    task.waiting = True
                    continue

                self._start(task)

    def _execute(self, task: ScheduledTask) -> None:
        try:
            self._runner(task.subscriber_id, task.source_ref)
        except Exception as e:
            self.logger.error(
                f"Run for {task.subscriber_id} failed: {e}",
                exc_info=True,
                extra={"subscriber_id": task.subscriber_id, "source_ref": task.source_ref},
            )
        finally:
            with self._condition:
                self._running.discard(task.subscriber_id)
                task.runs += 1
                task.last_completed = self._clock()

                if not self._closed:
                    if not task.cancelled:
                        delay = task.interval_minutes * self._seconds_per_minute
                        self._push(task, task.last_completed + delay)

                    current = self._tasks.get(task.subscriber_id)
                    if current is not None and current is not task and current.waiting:
                        current.waiting = False
                        self._start(current)

                self._condition.notify_all()
