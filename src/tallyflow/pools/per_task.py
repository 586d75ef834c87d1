import asyncio
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import aiofiles
import aiofiles.os

from tallyflow.tokenizer import tokenize

from ._base import PoolStrategy, require_regular_file, shutdown_executor


class TaskPerFileStrategy(PoolStrategy):
    """
    Run every job as its own asyncio task, with file I/O going
    through aiofiles on an executor owned by the strategy. Task count
    is unbounded; only the number of file handles open at the same
    time is capped, to stay within the process descriptor limit.
    """

    name = "unbounded"

    def __init__(self, *, max_open_files: int = 256):
        if max_open_files <= 0:
            raise ValueError(f"max_open_files must be positive: {max_open_files}")
        self._open_files = asyncio.Semaphore(max_open_files)
        # One I/O thread per open handle, so reads never queue behind each other
        self._executor = ThreadPoolExecutor(
            max_workers=max_open_files,
            thread_name_prefix="tallyflow-io",
        )
        self._tasks: set[asyncio.Task] = set()

    def submit(self, path: Path) -> asyncio.Task:
        task = asyncio.create_task(self._count(path), name=f"count:{path}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _count(self, path: Path) -> Counter[str]:
        counts: Counter[str] = Counter()
        async with self._open_files:
            st = await aiofiles.os.stat(path, executor=self._executor)
            require_regular_file(path, st)
            async with aiofiles.open(
                path,
                encoding="utf-8",
                executor=self._executor,
            ) as f:
                async for line in f:
                    counts.update(tokenize(line))
        return counts

    def cancel(self):
        for task in self._tasks:
            task.cancel()

    async def close(self, timeout: float) -> bool:
        self.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        return await shutdown_executor(self._executor, timeout)
