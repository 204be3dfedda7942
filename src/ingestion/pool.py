"""Bounded worker pool that writes batches concurrently.

Batches flow producer -> job queue -> workers -> result queue -> consumer.
Both queues hold at most ``2 x workers`` items, so a producer that outpaces
the writers blocks in ``submit`` instead of buffering the file in memory.

Closing works in two steps. ``done()`` closes the job queue; each worker
drains it and exits. A coordinator thread waits for the last worker and only
then closes the result queue, which ends iteration over ``results()``.
"""

import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from config.logging_config import get_logger
from src.errors import WriteError
from src.ingestion.coercion import coerce_batch

logger = get_logger("pool")


@dataclass
class Batch:
    """A group of raw source rows written in one transaction."""
    sequence: int
    rows: List[List[str]] = field(default_factory=list)


@dataclass
class BatchResult:
    """Outcome of writing one batch."""
    sequence: int
    row_count: int
    failure: Optional[WriteError] = None
    coercion_fallbacks: int = 0

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class PoolState(Enum):
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class ClosableQueue(queue.Queue):
    """
    Bounded queue that can be closed for new entries.

    Iterating yields items until the queue has been closed and drained.
    """

    _CLOSED = object()

    def close(self) -> None:
        # Blocks while full, like any put; consumers are still draining
        self.put(self._CLOSED)

    def __iter__(self) -> Iterator:
        while True:
            item = self.get()
            if item is self._CLOSED:
                # Leave the marker for the other consumers
                self.put(item)
                return
            yield item


class WorkerPool:
    """
    Fan batches out to a fixed number of writer threads and collect their results.

    Every submitted batch produces exactly one BatchResult, whether the
    write succeeds, fails, or is skipped because of cancellation.
    """

    def __init__(
        self,
        writer,
        mappings,
        workers: int,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the pool. No threads start until ``start()``.

        Args:
            writer: Object with ``write(rows, batch=None) -> int``, shared by all workers.
            mappings: Ordered ColumnMapping sequence used to coerce rows.
            workers: Number of worker threads (at least 1).
            cancel_event: Set to stop writing; remaining batches are reported as cancelled.
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.writer = writer
        self.mappings = list(mappings)
        self.workers = workers
        self.cancel_event = cancel_event or threading.Event()
        self._jobs = ClosableQueue(maxsize=workers * 2)
        self._results = ClosableQueue(maxsize=workers * 2)
        self._threads: List[threading.Thread] = []
        self._state = PoolState.CREATED
        self._lock = threading.Lock()

    @property
    def state(self) -> PoolState:
        return self._state

    def start(self) -> None:
        """Spawn the worker threads and the closing coordinator."""
        with self._lock:
            if self._state is not PoolState.CREATED:
                raise RuntimeError(f"Cannot start a pool that is {self._state.value}")
            self._state = PoolState.RUNNING

        for worker_id in range(self.workers):
            thread = threading.Thread(
                target=self._work,
                args=(worker_id,),
                name=f"tablesync-worker-{worker_id}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

        threading.Thread(
            target=self._close_results_when_idle,
            name="tablesync-pool-closer",
            daemon=True,
        ).start()
        logger.debug(f"Started {self.workers} workers")

    def submit(self, batch: Batch) -> None:
        """
        Queue a batch for writing, blocking while the job queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if self._state is not PoolState.RUNNING:
            raise RuntimeError(f"Cannot submit to a pool that is {self._state.value}")
        self._jobs.put(batch)

    def done(self) -> None:
        """Signal that no more batches will be submitted."""
        with self._lock:
            if self._state is not PoolState.RUNNING:
                raise RuntimeError(f"Cannot finish a pool that is {self._state.value}")
            self._state = PoolState.DRAINING
        self._jobs.close()

    def results(self) -> Iterator[BatchResult]:
        """Iterate over batch results as they complete, in completion order."""
        return iter(self._results)

    def _work(self, worker_id: int) -> None:
        for batch in self._jobs:
            self._results.put(self._process(worker_id, batch))

    def _process(self, worker_id: int, batch: Batch) -> BatchResult:
        row_count = len(batch.rows)
        if self.cancel_event.is_set():
            return BatchResult(
                sequence=batch.sequence,
                row_count=row_count,
                failure=WriteError("cancelled before write", batch.sequence),
            )

        fallbacks = 0
        try:
            values, fallbacks = coerce_batch(batch.rows, self.mappings)
            self.writer.write(values, batch=batch.sequence)
        except WriteError as e:
            logger.warning(f"Worker {worker_id}: {e}")
            return BatchResult(batch.sequence, row_count, e, fallbacks)
        except Exception as e:
            # A result must come back for every batch, whatever went wrong
            logger.exception(f"Worker {worker_id}: unexpected error in batch {batch.sequence}")
            failure = WriteError(f"unexpected error: {e}", batch.sequence)
            failure.__cause__ = e
            return BatchResult(batch.sequence, row_count, failure, fallbacks)

        return BatchResult(batch.sequence, row_count, None, fallbacks)

    def _close_results_when_idle(self) -> None:
        for thread in self._threads:
            thread.join()
        with self._lock:
            self._state = PoolState.CLOSED
        logger.debug("All workers finished; closing results")
        self._results.close()
