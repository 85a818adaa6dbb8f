"""
Logger Module
Centralized logging using Loguru

Every record carries an ``admin`` extra: the acting administrator when a
handler binds one (``logger.bind(admin=admin_id)``), ``-`` otherwise.
"""

import sys
from pathlib import Path
from loguru import logger as _logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{function}</cyan> | admin={extra[admin]} | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{function} | admin={extra[admin]} | {message}"


def setup_logger(
    level: str = "INFO",
    log_file: str = "./logs/app.log",
    max_size: int = 10,
    backup_count: int = 5,
    console: bool = True,
    colorize: bool = True
) -> None:
    """Setup logger with file and console handlers"""

    _logger.remove()
    _logger.configure(extra={"admin": "-"})

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if console:
        _logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=colorize)

    # Rotating file handler, size in MB
    _logger.add(
        log_file,
        level=level,
        format=FILE_FORMAT,
        rotation=f"{max_size} MB",
        retention=backup_count,
        encoding="utf-8"
    )


_logger.configure(extra={"admin": "-"})

# Export logger instance
logger = _logger
