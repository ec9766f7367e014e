# common/core_utils.py
# -*- coding: utf-8 -*-
"""
Logging setup for the installer.

Console output uses a symbol per level so a long provisioning transcript can
be scanned by eye; file output, when requested, uses the detailed format.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from kralpanel.config_models import SYMBOLS_DEFAULT

DETAILED_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"
SIMPLE_LOG_FORMAT = "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVEL_SYMBOL_KEYS = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "critical",
}


class SymbolFormatter(logging.Formatter):
    """
    A formatter that exposes a per-level symbol as ``%(symbol)s``.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        symbols: Optional[Dict[str, str]] = None,
    ):
        super().__init__(fmt, datefmt)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record: logging.LogRecord) -> str:
        key = _LEVEL_SYMBOL_KEYS.get(record.levelno)
        record.symbol = self.symbols.get(key, "") if key else ""
        return super().format(record)


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_prefix: Optional[str] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configures the root logger.

    Parameters:
    log_level: int
        Level for the root logger and every handler.
    log_file: Optional[str]
        Append detailed records to this file. Parent directories are created.
    log_to_console: bool
        Log to stdout with the symbol format.
    log_prefix: Optional[str]
        Prefix prepended to console lines, e.g. "[KRALPANEL]".
    symbols: Optional[Dict[str, str]]
        Level symbols, defaults to SYMBOLS_DEFAULT.
    """
    handlers: List[logging.Handler] = []

    if log_to_console or not log_file:
        actual_prefix = (
            (log_prefix.strip() + " ")
            if log_prefix and log_prefix.strip()
            else ""
        )
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            SymbolFormatter(
                fmt=SIMPLE_LOG_FORMAT.format(log_prefix=actual_prefix),
                datefmt=DATE_FORMAT,
                symbols=symbols,
            )
        )
        handlers.append(console_handler)

    if log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, mode="a")
        file_handler.setFormatter(
            logging.Formatter(DETAILED_LOG_FORMAT, datefmt=DATE_FORMAT)
        )
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    logging.getLogger(__name__).debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}."
    )
