from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

from loguru import logger


def configure_logging(level: str = "INFO", log_dir: Path | None = None) -> Path | None:
    logger.remove()
    logger.configure(extra={"task": "-"})
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:HH:mm:ss.SSS}</green> "
            "<level>{level: <8}</level> "
            "{message}"
        ),
    )

    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"bootforge_{datetime.now():%Y-%m-%dT%H-%M-%S}.log"
    logger.add(
        log_file,
        level="TRACE",
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | "
            "{extra[task]} | {module}:{line} | {message}"
        ),
    )
    logger.debug("Writing full logs to {}", log_file)
    return log_file
