import asyncio
import os
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from tallyflow.tokenizer import tokenize

from ._base import JobCancelled, PoolStrategy, require_regular_file, shutdown_executor


class ThreadPoolStrategy(PoolStrategy):
    """
    Run jobs on a fixed number of worker threads. Jobs beyond
    `max_workers` wait in the executor queue until a thread frees up.
    """

    name = "bounded"

    def __init__(self, *, max_workers: int):
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive: {max_workers}")
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="tallyflow-worker",
        )
        self._cancelled = threading.Event()

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def submit(self, path: Path) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._executor, self._count, path)

    def _check_cancelled(self):
        if self._cancelled.is_set():
            raise JobCancelled()

    def _count(self, path: Path) -> Counter[str]:
        self._check_cancelled()
        require_regular_file(path, os.stat(path))
        counts: Counter[str] = Counter()
        with open(path, encoding="utf-8") as f:
            for line in f:
                self._check_cancelled()
                counts.update(tokenize(line))
        return counts

    def cancel(self):
        self._cancelled.set()

    async def close(self, timeout: float) -> bool:
        # Running jobs exit at their next line boundary once cancelled
        return await shutdown_executor(self._executor, timeout)
