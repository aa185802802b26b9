from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from tqdm import tqdm

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_CONFIGURED = False


class TqdmLoggingHandler(logging.Handler):
    """Emit records through tqdm so an active progress bar is redrawn below them."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=sys.stderr)
        except Exception:
            self.handleError(record)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once.

    Args:
        level: Optional log level name (e.g., "INFO", "DEBUG"). If omitted,
               reads LOG_LEVEL env or defaults to INFO.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    log_level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    handler = TqdmLoggingHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=log_level, handlers=[handler])

    _CONFIGURED = True
