from tallyflow.models import BoundedPoolConfig, PoolConfig, UnboundedPoolConfig

from ._base import JobCancelled, PoolStrategy
from .per_task import TaskPerFileStrategy
from .threaded import ThreadPoolStrategy


def make_strategy(config: PoolConfig) -> PoolStrategy:
    """
    Build a fresh, single-batch pool strategy from its configuration.
    """
    if isinstance(config, BoundedPoolConfig):
        return ThreadPoolStrategy(max_workers=config.max_workers)
    if isinstance(config, UnboundedPoolConfig):
        return TaskPerFileStrategy(max_open_files=config.max_open_files)
    raise TypeError(f"Unsupported pool config: {config!r}")


__all__ = [
    "JobCancelled",
    "PoolStrategy",
    "TaskPerFileStrategy",
    "ThreadPoolStrategy",
    "make_strategy",
]
