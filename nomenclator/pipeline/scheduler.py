"""
Work Scheduler

Runs a worker callable over a stream of document handles on a bounded
thread pool.

At most `concurrency` documents are in flight: a bounded semaphore is
acquired before each submit and released when the document completes, so
the handle iterator (which may be splitting a large container entry) is only
advanced as fast as workers free up.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class SchedulerStats:
    """Counters of one scheduling pass."""
    dispatched: int = 0
    completed: int = 0
    errors: int = 0
    peak_in_flight: int = 0
    stopped_early: bool = False


class WorkScheduler:
    """
    Bounded-parallel dispatcher.

    Usage:
        scheduler = WorkScheduler(concurrency=8, stop_event=ctx.stop_event)
        stats = scheduler.run(archive.documents(), worker,
                              on_error=lambda handle, exc: ...)
    """

    def __init__(self, concurrency: int, stop_event: Optional[threading.Event] = None,
                 thread_name_prefix: str = 'worker'):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.stop_event = stop_event or threading.Event()
        self.thread_name_prefix = thread_name_prefix

    def run(
        self,
        items: Iterable[T],
        worker: Callable[[T], object],
        on_error: Optional[Callable[[T, BaseException], None]] = None,
    ) -> SchedulerStats:
        """
        Dispatch every item exactly once and wait for all of them.

        An exception raised by worker for one item goes to on_error (or the
        log) and never affects other items. Dispatch stops as soon as the
        stop event is set; items already in flight still finish.

        Exceptions raised by the items iterator itself propagate after
        in-flight work has finished.

        Returns:
            SchedulerStats
        """
        stats = SchedulerStats()
        slots = threading.BoundedSemaphore(self.concurrency)
        lock = threading.Lock()
        in_flight = 0

        def finished(item: T, future: Future) -> None:
            nonlocal in_flight
            try:
                error = future.exception()
                if error is not None:
                    with lock:
                        stats.errors += 1
                    if on_error is not None:
                        on_error(item, error)
                    else:
                        logger.error("Worker failed on %s: %s", item, error)
            finally:
                with lock:
                    in_flight -= 1
                    stats.completed += 1
                slots.release()

        with ThreadPoolExecutor(max_workers=self.concurrency,
                                thread_name_prefix=self.thread_name_prefix) as executor:
            for item in items:
                slots.acquire()
                if self.stop_event.is_set():
                    slots.release()
                    stats.stopped_early = True
                    logger.info("Stop requested, dispatch halted after %d documents", stats.dispatched)
                    break

                with lock:
                    in_flight += 1
                    stats.dispatched += 1
                    stats.peak_in_flight = max(stats.peak_in_flight, in_flight)

                future = executor.submit(worker, item)
                future.add_done_callback(lambda f, item=item: finished(item, f))

        logger.debug("Scheduler done: dispatched=%d completed=%d peak=%d",
                     stats.dispatched, stats.completed, stats.peak_in_flight)
        return stats
