import asyncio
import errno
import os
import stat
import threading
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Awaitable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path


class JobCancelled(Exception):
    """
    Raised by a counting job that stopped early because
    its pool was cancelled.
    """


def require_regular_file(path: Path, st: os.stat_result):
    """
    Reject anything but regular files before opening them, since
    reading a FIFO or device can block forever.
    """
    if stat.S_ISDIR(st.st_mode):
        raise IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
    if not stat.S_ISREG(st.st_mode):
        raise OSError(errno.EINVAL, "Not a regular file", str(path))


async def shutdown_executor(executor: ThreadPoolExecutor, timeout: float) -> bool:
    """
    Shut down an executor, waiting at most `timeout` seconds for its
    threads to exit. Returns False if some were still busy.
    """
    stopped = threading.Event()

    def join():
        executor.shutdown(wait=True, cancel_futures=True)
        stopped.set()

    joiner = threading.Thread(target=join, name="tallyflow-shutdown", daemon=True)
    joiner.start()

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not stopped.is_set():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(0.01)
    joiner.join()
    return True


class PoolStrategy(ABC):
    """
    Policy for running one word-counting job per file.

    A strategy instance serves a single batch: jobs are submitted
    from within the running event loop, and the strategy must be
    closed once the batch drains, whether or not it was cancelled.
    """

    name: str

    @abstractmethod
    def submit(self, path: Path) -> Awaitable[Counter[str]]:
        """
        Schedule counting the words of a file.

        Parameters
        ----------
        path : Path
            Text file to read (UTF-8)

        Returns
        -------
        Awaitable[Counter[str]]
            Resolves to the file's word counts, or raises
            `FileNotFoundError`, `OSError`, `UnicodeDecodeError`
            or `JobCancelled`.
        """
        pass

    @abstractmethod
    def cancel(self):
        """
        Ask outstanding jobs to stop. Must not block and
        may be called any number of times.
        """
        pass

    @abstractmethod
    async def close(self, timeout: float) -> bool:
        """
        Release pool resources, waiting up to `timeout` seconds
        for every job to exit.

        Returns
        -------
        bool
            False if some worker threads were still blocked in I/O
            when the timeout elapsed; they are abandoned.
        """
        pass
