import os
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_env_file = os.environ.get("TALLYFLOW_ENV_FILE", ".env")


class TallyflowSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TALLYFLOW_",
        env_file=_env_file,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    pool: Literal["bounded", "unbounded"] = Field(
        default="bounded",
        description="Worker pool policy used to run per-file tasks",
    )

    max_workers: int = Field(
        default=4,
        gt=0,
        description="Number of worker threads in the bounded pool",
    )

    max_open_files: int = Field(
        default=256,
        gt=0,
        description="Maximum number of files held open at once by the unbounded pool",
    )

    drain_timeout: float = Field(
        default=60,
        gt=0,
        description="Timeout in seconds for all tasks of a batch to finish",
    )

    shutdown_grace: float = Field(
        default=5,
        gt=0,
        description="Seconds to wait for pool threads to exit after cancellation",
    )

    log_level: str = Field(
        default="INFO",
        description="Minimum level of log messages written to stderr",
    )


settings = TallyflowSettings()
