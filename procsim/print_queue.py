"""Bounded print queue fed by producer threads and drained by one printer thread."""

from __future__ import annotations

import argparse
import logging
import queue
import sys
import threading
import time
from collections import deque

logger = logging.getLogger(__name__)

MAX_QUEUE_SIZE = 10
NUM_PRODUCERS = 3
PRODUCE_INTERVAL = 1.0
CONSUME_INTERVAL = 2.0
_POLL = 0.05


class PrintQueue:
    """Thread-safe FIFO of print task ids with a fixed capacity."""

    def __init__(self, capacity: int = MAX_QUEUE_SIZE) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        self.capacity = capacity
        self._items: deque[int] = deque()
        self._cond = threading.Condition()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def submit(self, task_id: int, timeout: float | None = None) -> None:
        """Append a task, waiting for room; raise queue.Full if none comes in time."""
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._items) < self.capacity, timeout):
                raise queue.Full(f"print queue is full ({self.capacity} tasks)")
            self._items.append(task_id)
            self._cond.notify_all()

    def take(self, timeout: float | None = None) -> int:
        """Remove the oldest task, waiting for one; raise queue.Empty if none comes in time."""
        with self._cond:
            if not self._cond.wait_for(lambda: bool(self._items), timeout):
                raise queue.Empty("print queue is empty")
            task_id = self._items.popleft()
            self._cond.notify_all()
            return task_id

    def task_ids(self) -> list[int]:
        """Ids of the queued tasks, oldest first."""
        with self._cond:
            return list(self._items)

    def report(self) -> str:
        """Text status of the queue: its size and every queued task."""
        with self._cond:
            items = list(self._items)
        lines = [
            "Print Task Queue:",
            "-----------------",
            f"Queue Size: {len(items)}/{self.capacity}",
            "Tasks:",
        ]
        lines.extend(f"ID: {task_id}" for task_id in items)
        return "\n".join(lines) + "\n"


class PrintQueueSimulation:
    """Producer threads submitting numbered tasks and a printer thread taking them."""

    def __init__(
        self,
        queue: PrintQueue | None = None,
        producers: int = NUM_PRODUCERS,
        produce_interval: float = PRODUCE_INTERVAL,
        consume_interval: float = CONSUME_INTERVAL,
    ) -> None:
        if producers <= 0:
            raise ValueError("at least one producer is needed")
        self.queue = queue if queue is not None else PrintQueue()
        self.producers = producers
        self.produce_interval = produce_interval
        self.consume_interval = consume_interval
        self.submitted: list[tuple[int, int]] = []
        self.processed: list[int] = []
        self._record_lock = threading.Lock()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        """True while any worker thread is alive."""
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        """Start the producer and printer threads."""
        if self._threads:
            raise RuntimeError("simulation already started")
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._produce, args=(i,), name=f"producer{i}", daemon=True)
            for i in range(self.producers)
        ]
        self._threads.append(threading.Thread(target=self._consume, name="consumer", daemon=True))
        for thread in self._threads:
            thread.start()
        logger.info("print queue simulation started")

    def stop(self) -> None:
        """Stop every thread and wait for it to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join()
        self._threads = []
        logger.info("print queue simulation stopped")

    def __enter__(self) -> PrintQueueSimulation:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _produce(self, producer_id: int) -> None:
        task_id = 0
        while not self._stop.is_set():
            try:
                self.queue.submit(task_id, timeout=_POLL)
            except queue.Full:
                continue
            with self._record_lock:
                self.submitted.append((producer_id, task_id))
            logger.info("Producer %d submitted task %d", producer_id, task_id)
            task_id += 1
            self._stop.wait(self.produce_interval)

    def _consume(self) -> None:
        while not self._stop.is_set():
            try:
                task_id = self.queue.take(timeout=_POLL)
            except queue.Empty:
                continue
            with self._record_lock:
                self.processed.append(task_id)
            logger.info("Printer processing task %d", task_id)
            self._stop.wait(self.consume_interval)


def main(argv: list[str] | None = None) -> int:
    """Run the print queue simulation, printing the queue status periodically."""
    parser = argparse.ArgumentParser(description="Print queue producer/consumer simulation.")
    parser.add_argument("--producers", type=int, default=NUM_PRODUCERS)
    parser.add_argument("--capacity", type=int, default=MAX_QUEUE_SIZE)
    parser.add_argument("--duration", type=float, default=None,
                        help="seconds to run; runs until interrupted when omitted")
    parser.add_argument("--report-interval", type=float, default=5.0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    simulation = PrintQueueSimulation(PrintQueue(args.capacity), producers=args.producers)
    deadline = None if args.duration is None else time.monotonic() + args.duration
    try:
        with simulation:
            while deadline is None or time.monotonic() < deadline:
                wait = args.report_interval
                if deadline is not None:
                    wait = max(0.0, min(wait, deadline - time.monotonic()))
                time.sleep(wait)
                print(simulation.queue.report(), end="")
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())