import asyncio
import os
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from tallyflow.models import BoundedPoolConfig, UnboundedPoolConfig
from tallyflow.pools import (
    JobCancelled,
    TaskPerFileStrategy,
    ThreadPoolStrategy,
    make_strategy,
)
from tallyflow.pools._base import require_regular_file, shutdown_executor

requires_fifo = pytest.mark.skipif(
    not hasattr(os, "mkfifo"), reason="FIFOs are not supported on this platform"
)


async def count_with(strategy, paths: list[Path]) -> list:
    try:
        return await asyncio.gather(
            *(strategy.submit(path) for path in paths),
            return_exceptions=True,
        )
    finally:
        await strategy.close(timeout=5)


class TestMakeStrategy:
    def test_bounded_config(self):
        strategy = make_strategy(BoundedPoolConfig(kind="bounded", max_workers=3))
        assert isinstance(strategy, ThreadPoolStrategy)
        assert strategy.max_workers == 3
        asyncio.run(strategy.close(timeout=5))

    def test_unbounded_config(self):
        strategy = make_strategy(UnboundedPoolConfig(kind="unbounded"))
        assert isinstance(strategy, TaskPerFileStrategy)
        asyncio.run(strategy.close(timeout=5))

    def test_unknown_config(self):
        with pytest.raises(TypeError, match="Unsupported pool config"):
            make_strategy(object())


class TestThreadPoolStrategy:
    def test_counts_file(self, make_file):
        file = make_file("a.txt", "Cat dog\nCAT")
        strategy = ThreadPoolStrategy(max_workers=2)

        results = asyncio.run(count_with(strategy, [file]))

        assert results == [Counter({"cat": 2, "dog": 1})]

    def test_missing_file_raises(self, tmp_path: Path):
        strategy = ThreadPoolStrategy(max_workers=1)
        results = asyncio.run(count_with(strategy, [tmp_path / "none.txt"]))
        assert isinstance(results[0], FileNotFoundError)

    def test_jobs_after_cancel_stop_early(self, make_file):
        file = make_file("a.txt", "cat")
        strategy = ThreadPoolStrategy(max_workers=1)
        strategy.cancel()
        strategy.cancel()  # idempotent

        results = asyncio.run(count_with(strategy, [file]))

        assert isinstance(results[0], JobCancelled)

    def test_rejects_non_positive_workers(self):
        with pytest.raises(ValueError, match="max_workers"):
            ThreadPoolStrategy(max_workers=0)


class TestTaskPerFileStrategy:
    def test_counts_files(self, make_file):
        files = [make_file(f"{i}.txt", "ant bee\nant") for i in range(20)]
        strategy = TaskPerFileStrategy(max_open_files=4)

        results = asyncio.run(count_with(strategy, files))

        assert results == [Counter({"ant": 2, "bee": 1})] * 20

    def test_missing_file_raises(self, tmp_path: Path):
        strategy = TaskPerFileStrategy()
        results = asyncio.run(count_with(strategy, [tmp_path / "none.txt"]))
        assert isinstance(results[0], FileNotFoundError)

    def test_cancel_stops_outstanding_tasks(self, make_file):
        file = make_file("a.txt", "cat")

        async def main():
            strategy = TaskPerFileStrategy()
            task = strategy.submit(file)
            strategy.cancel()
            await strategy.close(timeout=5)
            return task

        task = asyncio.run(main())
        assert task.cancelled()

    def test_rejects_non_positive_open_files(self):
        with pytest.raises(ValueError, match="max_open_files"):
            TaskPerFileStrategy(max_open_files=0)


class TestRequireRegularFile:
    def test_accepts_regular_file(self, make_file):
        file = make_file("a.txt", "cat")
        require_regular_file(file, os.stat(file))

    def test_rejects_directory(self, tmp_path: Path):
        with pytest.raises(IsADirectoryError):
            require_regular_file(tmp_path, os.stat(tmp_path))

    @requires_fifo
    def test_rejects_fifo(self, tmp_path: Path):
        fifo = tmp_path / "pipe.txt"
        os.mkfifo(fifo)
        with pytest.raises(OSError, match="Not a regular file"):
            require_regular_file(fifo, os.stat(fifo))


class TestShutdownExecutor:
    def test_returns_true_once_threads_exit(self):
        executor = ThreadPoolExecutor(max_workers=2)
        executor.submit(time.sleep, 0.05)
        assert asyncio.run(shutdown_executor(executor, timeout=5)) is True

    def test_gives_up_on_blocked_threads(self):
        release = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1)
        executor.submit(release.wait, 10)

        start = time.monotonic()
        try:
            assert asyncio.run(shutdown_executor(executor, timeout=0.2)) is False
            assert time.monotonic() - start < 5
        finally:
            release.set()


@requires_fifo
@pytest.mark.parametrize(
    "strategy_factory",
    [
        lambda: ThreadPoolStrategy(max_workers=1),
        lambda: TaskPerFileStrategy(max_open_files=1),
    ],
    ids=["bounded", "unbounded"],
)
def test_fifo_fails_without_blocking(strategy_factory, tmp_path: Path):
    fifo = tmp_path / "pipe.txt"
    os.mkfifo(fifo)

    async def main():
        return await count_with(strategy_factory(), [fifo])

    results = asyncio.run(asyncio.wait_for(main(), timeout=10))

    assert isinstance(results[0], OSError)
    assert not isinstance(results[0], FileNotFoundError)
