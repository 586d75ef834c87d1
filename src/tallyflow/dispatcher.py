import asyncio
import os
import signal
import threading
import traceback
from collections import Counter
from collections.abc import Iterable
from pathlib import Path
from types import MappingProxyType

from tallyflow.logconfig import logger
from tallyflow.models import (
    BatchResult,
    FailureKind,
    PoolConfig,
    TaskOutcome,
    TaskStatusKind,
    pool_config_from_settings,
)
from tallyflow.pools import JobCancelled, PoolStrategy, make_strategy
from tallyflow.settings import settings


class Dispatcher:
    """
    Count words across many files concurrently, one task per file.

    Each task sends its file's counts to a single aggregator coroutine,
    which is the only writer of the batch's word table. The batch waits
    for every task to finish, for the drain timeout to elapse, or for a
    shutdown request (SIGINT, SIGTERM, SIGHUP or `request_shutdown`),
    whichever comes first. Outstanding tasks are then cancelled and the
    pool is closed before the result is returned, giving worker threads
    at most `shutdown_grace` seconds to exit.
    """

    @logger.catch(reraise=True)
    def __init__(
        self,
        *,
        pool: PoolConfig | None = None,
        drain_timeout: float | None = None,
        shutdown_grace: float | None = None,
        handle_signals: bool = True,
    ):
        if drain_timeout is None:
            drain_timeout = settings.drain_timeout
        if drain_timeout <= 0:
            raise ValueError(f"drain_timeout must be positive: {drain_timeout}")
        if shutdown_grace is None:
            shutdown_grace = settings.shutdown_grace
        if shutdown_grace <= 0:
            raise ValueError(f"shutdown_grace must be positive: {shutdown_grace}")

        self._pool = pool if pool is not None else pool_config_from_settings(settings)
        self._drain_timeout = drain_timeout
        self._shutdown_grace = shutdown_grace
        self._handle_signals = handle_signals
        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown_event: asyncio.Event | None = None
        self._received_signal: int | None = None

    def _signal_handler(self, signum: int):
        logger.warning("Received signal {}, cancelling outstanding tasks", signum)
        self._received_signal = signum
        self._shutdown_event.set()

    def request_shutdown(self):
        """
        Cut short the batch that is currently draining.
        Safe to call from any thread; does nothing when idle.
        """
        loop, event = self._loop, self._shutdown_event
        if loop is None or event is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(event.set)

    @logger.catch(reraise=True)
    def process_files(self, paths: Iterable[str | os.PathLike]) -> BatchResult:
        """
        Count word occurrences across the given files.

        Parameters
        ----------
        paths : Iterable[str | os.PathLike]
            Files to read. Duplicates are counted once per occurrence;
            missing or unreadable files are recorded as failures.

        Returns
        -------
        BatchResult
            Read-only word counts plus one outcome per path.
        """
        paths = [Path(p) for p in paths]
        if not paths:
            logger.info("No files to process")
            return BatchResult(counts=MappingProxyType({}), outcomes=())
        return asyncio.run(self._run(paths))

    async def _run(self, paths: list[Path]) -> BatchResult:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._shutdown_event = asyncio.Event()
        self._received_signal = None

        strategy = make_strategy(self._pool)
        queue: asyncio.Queue[Counter[str] | None] = asyncio.Queue()
        table: Counter[str] = Counter()

        logger.info("Processing {} files with {} pool", len(paths), strategy.name)

        previous_handlers = self._register_signal_handlers(loop)
        aggregator = asyncio.create_task(self._aggregate(queue, table))
        tasks = [
            asyncio.create_task(self._process_file(strategy, path, queue))
            for path in paths
        ]

        interrupted = False
        try:
            interrupted = await self._drain(tasks)
        finally:
            outstanding = [task for task in tasks if not task.done()]
            if outstanding:
                strategy.cancel()
                for task in outstanding:
                    task.cancel()
                await asyncio.gather(*outstanding, return_exceptions=True)
            if not await strategy.close(self._shutdown_grace):
                logger.warning(
                    "Pool threads still blocked in I/O after {}s, abandoning them",
                    self._shutdown_grace,
                )
            # Handlers stay installed until the pool is closed so that signals
            # received during cleanup are still recorded
            self._restore_signal_handlers(loop, previous_handlers)
            queue.put_nowait(None)
            await aggregator
            self._loop = None

        timed_out = bool(outstanding) and not interrupted
        if timed_out:
            logger.warning(
                "Drain timeout of {}s elapsed, cancelled {} outstanding tasks",
                self._drain_timeout,
                len(outstanding),
            )

        outcomes = tuple(
            TaskOutcome(path=path, status=TaskStatusKind.CANCELLED)
            if task.cancelled()
            else task.result()
            for task, path in zip(tasks, paths)
        )

        result = BatchResult(
            counts=MappingProxyType(dict(table)),
            outcomes=outcomes,
            timed_out=timed_out,
            interrupted=interrupted,
            received_signal=self._received_signal,
        )
        logger.info(
            "Batch finished: {} completed, {} failed, {} cancelled, {} distinct words",
            result.n_completed,
            len(result.failures),
            len(result.cancelled),
            len(result.counts),
        )
        return result

    async def _drain(self, tasks: list[asyncio.Task]) -> bool:
        """
        Wait until all tasks finish, the drain timeout elapses, or
        shutdown is requested. Returns True in the last case.
        """
        finished = asyncio.ensure_future(asyncio.wait(tasks))
        stopped = asyncio.ensure_future(self._shutdown_event.wait())
        try:
            done, _ = await asyncio.wait(
                (finished, stopped),
                timeout=self._drain_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            finished.cancel()
            stopped.cancel()
        return stopped in done

    @staticmethod
    async def _aggregate(
        queue: asyncio.Queue[Counter[str] | None],
        table: Counter[str],
    ):
        while True:
            counts = await queue.get()
            if counts is None:
                break
            table.update(counts)

    @staticmethod
    async def _process_file(
        strategy: PoolStrategy,
        path: Path,
        queue: asyncio.Queue[Counter[str] | None],
    ) -> TaskOutcome:
        logger.debug("Starting processing: {}", path)
        try:
            counts = await strategy.submit(path)
        except JobCancelled:
            return TaskOutcome(path=path, status=TaskStatusKind.CANCELLED)
        except FileNotFoundError:
            logger.warning("File not found: {}", path)
            return TaskOutcome(
                path=path,
                status=TaskStatusKind.FAILED,
                failure=FailureKind.FILE_NOT_FOUND,
                detail=f"File not found: {path}",
            )
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Error reading file {}: {}", path, e)
            return TaskOutcome(
                path=path,
                status=TaskStatusKind.FAILED,
                failure=FailureKind.READ_ERROR,
                detail=str(e),
            )
        except Exception:
            logger.exception("Failed processing: {}", path)
            return TaskOutcome(
                path=path,
                status=TaskStatusKind.FAILED,
                detail=traceback.format_exc(),
            )

        # put_nowait never suspends, so a completed outcome always has its counts queued
        queue.put_nowait(counts)
        n_words = sum(counts.values())
        logger.debug("Successfully processed: {} ({} words)", path, n_words)
        return TaskOutcome(path=path, status=TaskStatusKind.COMPLETED, n_words=n_words)

    def _register_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> dict:
        if not self._handle_signals:
            return {}
        if threading.current_thread() is not threading.main_thread():
            return {}

        previous_handlers = {}
        for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
            previous_handlers[sig] = signal.getsignal(sig)
            loop.add_signal_handler(sig, self._signal_handler, sig.value)
        return previous_handlers

    @staticmethod
    def _restore_signal_handlers(loop: asyncio.AbstractEventLoop, handlers: dict):
        for sig, handler in handlers.items():
            loop.remove_signal_handler(sig)
            if handler is not None:
                signal.signal(sig, handler)


def process_files(
    paths: Iterable[str | os.PathLike],
    *,
    pool: PoolConfig | None = None,
    drain_timeout: float | None = None,
    shutdown_grace: float | None = None,
) -> BatchResult:
    """
    Run a single batch with a dispatcher built from settings.
    """
    dispatcher = Dispatcher(
        pool=pool,
        drain_timeout=drain_timeout,
        shutdown_grace=shutdown_grace,
    )
    return dispatcher.process_files(paths)
