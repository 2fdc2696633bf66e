import logging
import json
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
from typing import Optional

from .types import ProviderFetchError


def default_log_dir() -> Path:
    """``$TOKENGAUGE_LOG_DIR``, else ``$XDG_STATE_HOME/tokengauge/logs``."""
    override = os.getenv("TOKENGAUGE_LOG_DIR")
    if override:
        return Path(override)
    state_home = os.getenv("XDG_STATE_HOME")
    base = Path(state_home) if state_home else Path.home() / ".local" / "state"
    return base / "tokengauge" / "logs"


# Custom JSON formatter
class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        return json.dumps(log_record)


def setup_failure_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """Sets up a dedicated JSON logger for failed provider fetches."""
    logger = logging.getLogger("tokengauge.failures")
    logger.setLevel(logging.INFO)

    # Keep failure records out of stderr; surfaces log there separately
    logger.propagate = False

    if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return logger

    log_dir = Path(log_dir) if log_dir is not None else default_log_dir()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_dir / "failures.log",
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=2,
            encoding="utf-8",
        )
    except OSError as e:
        logging.getLogger("tokengauge").warning(
            f"Failure log disabled, cannot open {log_dir}: {e}"
        )
        logger.addHandler(logging.NullHandler())
        return logger

    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger


_failure_logger: Optional[logging.Logger] = None


def get_failure_logger() -> logging.Logger:
    global _failure_logger
    if _failure_logger is None:
        _failure_logger = setup_failure_logger()
    return _failure_logger


def log_fetch_failure(
    error: ProviderFetchError, kind: str, exit_status: Optional[int] = None
) -> None:
    """Logs a structured record for a failed provider fetch."""
    log_data = {
        "provider": error.provider,
        "kind": kind,
        "message": error.message,
        "raw_message": error.raw_message,
    }
    if exit_status is not None:
        log_data["exit_status"] = exit_status
    get_failure_logger().error(json.dumps(log_data))
