"""Centralized logging configuration.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
:func:`setup_logging` once to decide where records go.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

HANDLER_NAME = "bizledger"


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 5_000_000,
    backup_count: int = 3,
) -> None:
    """Configure the ``bizledger`` logger.

    Args:
        verbose: Log debug records instead of warnings and above
        log_file: Optional path of a rotating log file
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated log files to keep
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger("bizledger")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Re-initialising replaces our own handlers only
    for handler in list(logger.handlers):
        if handler.get_name() == HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.set_name(HANDLER_NAME)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.set_name(HANDLER_NAME)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for noisy in ("urllib3", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
