# src/a11y_auditor/utils/configure_logging.py
import logging
import sys
from typing import Any, Dict, Optional, Union

from tqdm import tqdm

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"

Level = Union[str, int]


class LogWithTqdm(logging.Handler):
    """
    A logging handler that routes records through `tqdm.write()` so that
    log lines emitted during a batch audit do not break the progress bar.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: Level, fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level


def configure_logger(
        general_level: Level = 'INFO',
        module_specific_levels: Optional[Dict[str, Level]] = None,
        silenced_loggers: Optional[Dict[str, Level]] = None
):
    """
    Configures the root logger with a tqdm-friendly handler, then applies
    per-module levels and silences noisy loggers.
    """
    handler = LogWithTqdm()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))


def configure_from_settings(debug_settings: Optional[Dict[str, Any]]):
    """Applies the 'debug' section of settings.json."""
    debug_settings = debug_settings or {}
    configure_logger(
        general_level=debug_settings.get("level") or 'INFO',
        module_specific_levels=debug_settings.get("module_levels"),
        silenced_loggers=debug_settings.get("silenced_loggers")
    )
