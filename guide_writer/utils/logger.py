import sys
from loguru import logger
from pathlib import Path
from typing import Optional

_configured = False

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[job_id]}</magenta> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[job_id]} | {name}:{function}:{line} - {message}"


def setup_logger(log_level: str = "INFO", log_file: Optional[Path] = None):
    """Configure loguru sinks once per process.

    Records carry a ``job_id`` extra; code running inside a job binds it with
    ``logger.bind(job_id=...)``. Everything else logs under ``-``.
    """
    global _configured

    if _configured and log_file is None:
        return logger

    logger.remove()
    logger.configure(extra={"job_id": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
        )

    _configured = True
    return logger
