"""
Centralized logging configuration for the press ledger.

Every module logs through a child of the "press_core" logger so that a
single call to setup_logging() at application startup controls level and
output for the whole service.

Log Format:
    2026-03-02 10:15:30 [INFO    ] press_core.services.stock_ledger - Consumed 250 sheets of A4 80gsm (job 12)
    2026-03-02 10:15:31 [WARNING ] press_core.services.stock_ledger - Stock shortage on A3 Gloss: requested 900, consumed 400

Usage:
    # At application startup
    from press_core.app.logging_config import setup_logging
    setup_logging(log_level=logging.INFO, enable_file_logging=False)

    # In modules
    logger = get_logger(__name__)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

APP_LOGGER_NAME = "press_core"


def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: Union[int, str] = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = False,
) -> logging.Logger:
    """
    Configure application logging.

    Sets up a console handler and, when enabled, a rotating application log
    plus a separate rotating log that only receives ERROR and CRITICAL.

    Args:
        app_name: Name of the root application logger
        log_level: Minimum level, as a number or a name such as "DEBUG"
        log_dir: Directory for log files (default: ./logs next to the package)
        enable_file_logging: Whether to write to log files

    Returns:
        Configured application logger
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration (tests, reloads)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).resolve().parents[1] / "logs"
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            filename=log_dir / f"{app_name}_error.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        logger.addHandler(error_handler)

        logger.info("File logging enabled: %s", app_log_file)

    logger.info("Logging configured at level %s", logging.getLevelName(log_level))
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    "press_core.app.services.stock_ledger" stays as is; a bare
    "services.stock_ledger" becomes "press_core.services.stock_ledger".
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
