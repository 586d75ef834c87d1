from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from tallyflow.settings import TallyflowSettings


class TaskStatusKind(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FailureKind(Enum):
    FILE_NOT_FOUND = "file_not_found"
    READ_ERROR = "read_error"


class TaskOutcome(BaseModel):
    path: Path
    status: TaskStatusKind
    failure: FailureKind | None = None
    detail: str | None = None
    n_words: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status != TaskStatusKind.CANCELLED


class BoundedPoolConfig(BaseModel):
    kind: Literal["bounded"]
    max_workers: int = Field(gt=0)


class UnboundedPoolConfig(BaseModel):
    kind: Literal["unbounded"]
    max_open_files: int = Field(default=256, gt=0)


PoolConfig = Annotated[
    BoundedPoolConfig | UnboundedPoolConfig,
    Field(discriminator="kind"),
]


def pool_config_from_settings(settings: TallyflowSettings) -> PoolConfig:
    if settings.pool == "bounded":
        return BoundedPoolConfig(kind="bounded", max_workers=settings.max_workers)
    return UnboundedPoolConfig(
        kind="unbounded",
        max_open_files=settings.max_open_files,
    )


@dataclass(frozen=True)
class BatchResult:
    """Read-only view of a finished batch."""

    counts: Mapping[str, int]  # Word -> occurrences across completed files
    outcomes: tuple[TaskOutcome, ...]  # One per submitted path, in input order
    timed_out: bool = False  # Drain deadline elapsed before all tasks finished
    interrupted: bool = False  # Shutdown requested while draining
    received_signal: int | None = None  # Signal behind the shutdown, if any

    @property
    def failures(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.status == TaskStatusKind.FAILED]

    @property
    def cancelled(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.status == TaskStatusKind.CANCELLED]

    @property
    def n_completed(self) -> int:
        return sum(o.status == TaskStatusKind.COMPLETED for o in self.outcomes)

    @property
    def is_complete(self) -> bool:
        """
        Whether every task reached a terminal state (completed or failed).
        """
        return all(o.is_terminal for o in self.outcomes)
