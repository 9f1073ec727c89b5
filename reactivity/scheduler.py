"""
Schedulers decide when the jobs of triggered watchers run. The sync
scheduler runs a job right away, the (global) deferred scheduler queues
up and deduplicates jobs until the host event loop asks it to flush.
"""

import asyncio
import importlib
import logging
import warnings
from bisect import insort
from collections import Counter
from operator import attrgetter
from typing import Protocol

from .dep import untracked

logger = logging.getLogger(__name__)

# A job that is queued more often than this within a single flush
# is considered to be part of an infinite update loop
MAX_RUNS_PER_FLUSH = 100

_job_id = attrgetter("id")


class Job(Protocol):
    id: int

    def run(self) -> None: ...


class SyncScheduler:
    __slots__ = ()

    def schedule(self, job: Job) -> None:
        job.run()


def import_qt_core():
    """Returns the QtCore module of the first Qt binding that is installed"""
    for binding in ("PySide6", "PyQt6", "PySide2", "PyQt5"):
        try:
            return binding, importlib.import_module(f"{binding}.QtCore")
        except ImportError:
            continue
    raise ImportError("Could not import QtCore")


class Scheduler:
    __slots__ = (
        "__weakref__",
        "_queue",
        "_queued",
        "_runs",
        "detect_cycles",
        "flushing",
        "index",
        "request_flush",
        "timer",
        "waiting",
    )

    def __init__(self):
        # Jobs ordered by id, which is the order in which they were created
        self._queue = []
        # Ids of the jobs that are waiting in the queue
        self._queued = set()
        self._runs = Counter()
        self.flushing = False
        self.index = 0
        self.waiting = False
        self.request_flush = self.request_flush_raise
        self.detect_cycles = True

    def request_flush_raise(self):
        """
        Default flush requester: there is no event loop to defer to.
        """
        raise ValueError("No flush request handler registered")

    def register_request_flush(self, callback):
        """
        Register the callback that is called (once per flush) to ask the
        host event loop to call `flush` soon. The callback returns False
        when it can't ask for a flush yet, the request is then repeated
        when the next job is scheduled.
        """
        self.request_flush = callback

    def request_flush_asyncio(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, postponing flush")
            return False
        loop.call_soon(self.flush)

    def register_asyncio(self):
        """
        Flush on the running asyncio event loop. Jobs that are scheduled
        while no loop is running stay queued until a job is scheduled from
        within the loop (or until `flush` is called).
        """
        self.register_request_flush(self.request_flush_asyncio)

    def register_qt(self):
        """
        Flush from the Qt event loop with a zero-interval single-shot timer.
        When QtAsyncio is available, prefer `register_asyncio` together with
        the `QtAsyncio.QAsyncioEventLoopPolicy` event loop policy.
        """
        binding, QtCore = import_qt_core()  # noqa: N806

        try:
            importlib.import_module(f"{binding}.QtAsyncio")
        except ImportError:
            pass
        else:
            warnings.warn(
                "QtAsyncio module available: please consider using "
                "`register_asyncio` and call the following code:\n"
                f"    from {binding} import QtAsyncio\n"
                "    asyncio.set_event_loop_policy("
                "QtAsyncio.QAsyncioEventLoopPolicy())",
                stacklevel=2,
            )

        self.timer = QtCore.QTimer()
        self.timer.setSingleShot(True)
        self.timer.setInterval(0)
        self.timer.timeout.connect(self.flush)
        self.register_request_flush(self.timer.start)

    def flush(self):
        """
        Run all queued jobs, in order of their id. Can be called manually
        or from the callback registered with `register_request_flush`.

        A failing job does not stop the flush, the first error is
        raised after all jobs ran.
        """
        if not self._queue:
            return

        logger.debug("Flushing %d jobs", len(self._queue))
        self.flushing = True
        self.waiting = False
        self._queue.sort(key=_job_id)

        errors = []
        try:
            with untracked():
                while self.index < len(self._queue):
                    job = self._queue[self.index]
                    # Allow the job to be queued again while it runs
                    self._queued.discard(job.id)
                    try:
                        job.run()
                    except Exception as e:
                        errors.append(e)
                    self._check_cycles(job)
                    self.index += 1
        except RecursionError:
            self._log_errors(errors)
            raise
        finally:
            self.clear()

        if errors:
            self._log_errors(errors[1:])
            raise errors[0]

    def _log_errors(self, errors):
        for error in errors:
            logger.error("Error in job during flush", exc_info=error)

    def _check_cycles(self, job: Job):
        if not self.detect_cycles:
            return
        self._runs[job.id] += 1
        if self._runs[job.id] > MAX_RUNS_PER_FLUSH:
            raise RecursionError(f"Infinite update loop detected in {job!r}")

    def clear(self):
        self._queue.clear()
        self._queued.clear()
        self._runs.clear()
        self.flushing = False
        self.waiting = False
        self.index = 0

    def schedule(self, job: Job):
        """
        Queue job to run on the next flush. A job that is already waiting
        in the queue is not added again.
        """
        if job.id not in self._queued:
            self._queued.add(job.id)
            if self.flushing:
                # Keep the part of the queue that still has to run sorted.
                # A job with a lower id than the running job runs next.
                insort(self._queue, job, lo=self.index + 1, key=_job_id)
                return
            self._queue.append(job)

        if not (self.waiting or self.flushing):
            # Only waiting once the request went through, so a failed
            # request is retried by the next schedule
            self.waiting = self.request_flush() is not False


# Construct global instances
scheduler = Scheduler()
sync_scheduler = SyncScheduler()
