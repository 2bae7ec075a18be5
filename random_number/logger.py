import logging
from typing import Optional

from .mode import get_mode


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _determine_log_level(mode: str) -> int:
    if mode == 'development':
        return logging.INFO

    if mode == 'debug':
        return logging.DEBUG

    return logging.ERROR


def setup_logging(mode: Optional[str] = None) -> int:
    """
    Configure root logger for the application.

    Level is picked from the given mode, or from the `MODE` environment
    variable when no mode is given. Returns the level used.
    """
    level = _determine_log_level(mode or get_mode())

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.debug(f'Logging configured at level {logging.getLevelName(level)}')

    return level
