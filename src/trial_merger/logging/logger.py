"""
Centralized logging configuration for trial_merger.

Key behaviors
-------------
* Single entry point via ``get_logger`` so every module shares handlers.
* Master log file (default: ``logs/trial_merger.log``) plus per-module logs.
* Console output that follows the configured debug flag.
* Optional rotation controlled by ``config/trial_merger.yml``.
* ``TrialLogAdapter`` prefixes messages with the trial id currently being
  merged, so every row-level message is attributable.
"""

from __future__ import annotations

import logging
from logging import Logger, StreamHandler
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Tuple

from trial_merger.config import get_config

PROJECT_ROOT = Path(__file__).resolve().parents[3]
BASE_LOGGER_NAME = "trial_merger"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger_cache: Dict[str, Logger] = {}
_base_configured: bool = False
_effective_level: int = logging.INFO
_log_dir: Path = PROJECT_ROOT / "logs"
_rotate_logs: bool = False


# -----------------------------------------------------------------------------
# Internal helpers
# -----------------------------------------------------------------------------

def _ensure_log_dir() -> Path:
    """Resolve and create the log directory from configuration."""
    global _log_dir
    cfg = get_config()

    log_dir = Path(cfg.logging.get("dir") or cfg.paths.get("logs_dir") or "logs")
    if not log_dir.is_absolute():
        log_dir = PROJECT_ROOT / log_dir

    log_dir.mkdir(parents=True, exist_ok=True)
    _log_dir = log_dir
    return log_dir


def _build_file_handler(path: Path, level: int) -> logging.Handler:
    if _rotate_logs:
        handler: logging.Handler = RotatingFileHandler(
            path,
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _configure_base_logger() -> Logger:
    """Configure the shared base logger once."""
    global _base_configured, _effective_level, _rotate_logs

    base_logger = logging.getLogger(BASE_LOGGER_NAME)
    if _base_configured:
        return base_logger

    cfg = get_config()
    _rotate_logs = bool(cfg.logging.get("rotate", False))
    master_name = cfg.logging.get("file", "trial_merger.log")

    level_name = str(cfg.logging.get("level", "INFO")).upper()
    debug_enabled = bool(getattr(cfg, "debug", False))
    _effective_level = logging.DEBUG if debug_enabled else getattr(logging, level_name, logging.INFO)

    log_dir = _ensure_log_dir()
    base_logger.setLevel(_effective_level)
    base_logger.propagate = False
    base_logger.addHandler(_build_file_handler(log_dir / master_name, _effective_level))

    console = StreamHandler()
    console.setLevel(logging.DEBUG if debug_enabled else logging.INFO)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    base_logger.addHandler(console)

    _base_configured = True
    return base_logger


def _module_handler_exists(logger: Logger) -> bool:
    return any(getattr(h, "is_module_handler", False) for h in logger.handlers)


def _attach_module_handler(logger: Logger, short_name: str) -> None:
    path = _ensure_log_dir() / f"{short_name.replace('.', '_')}.log"
    handler = _build_file_handler(path, _effective_level)
    handler.is_module_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def get_logger(name: Optional[str] = None) -> Logger:
    """Return a logger wired to the project-wide handlers.

    Short names (``"resolver"``) are placed under the ``trial_merger``
    namespace so they inherit the console and master handlers; each also
    gains its own ``logs/<name>.log`` file.
    """
    base_logger = _configure_base_logger()
    short_name = name or BASE_LOGGER_NAME
    if short_name == BASE_LOGGER_NAME:
        return base_logger

    logger_name = short_name
    if not logger_name.startswith(BASE_LOGGER_NAME + "."):
        logger_name = f"{BASE_LOGGER_NAME}.{short_name}"

    logger = logging.getLogger(logger_name)
    logger.setLevel(_effective_level)
    if not _module_handler_exists(logger):
        _attach_module_handler(logger, short_name)
    logger.propagate = True

    _logger_cache[logger_name] = logger
    return logger


class TrialLogAdapter(logging.LoggerAdapter):
    """Prefix every message with ``[<trial id>]`` when one is bound."""

    def __init__(self, logger: Logger, trial_id: Optional[str] = None):
        super().__init__(logger, {"trial_id": trial_id})

    def bind(self, trial_id: Optional[str]) -> None:
        self.extra = {"trial_id": trial_id}

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        trial_id = (self.extra or {}).get("trial_id")
        if trial_id:
            return f"[{trial_id}] {msg}", kwargs
        return msg, kwargs


def get_trial_logger(name: str, trial_id: Optional[str] = None) -> TrialLogAdapter:
    return TrialLogAdapter(get_logger(name), trial_id)


def list_active_loggers() -> List[str]:
    """Helper for debugging configuration issues in tests."""
    return list(_logger_cache.keys())
