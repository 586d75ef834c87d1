import sys

from loguru import logger

from tallyflow.settings import settings

logger.remove()
logger.add(
    sys.stderr,
    level=settings.log_level.upper(),
    format=(
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan> - <level>{message}</level>"
    ),
)

__all__ = ["logger"]
