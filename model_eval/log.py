import json
import logging
from typing import Any

from model_eval.config import log_level_name

ROOT_LOGGER_NAME = "model_eval"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    lvl = getattr(logging, log_level_name(), logging.INFO)
    if not isinstance(lvl, int):
        lvl = logging.INFO
    root.setLevel(lvl)
    if not root.handlers:
        h = logging.StreamHandler()
        h.setLevel(lvl)
        h.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(h)
    # Avoid double logging when uvicorn's root handlers are installed
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a child of the ``model_eval`` logger, configuring the parent once."""
    _configure_root()
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one JSON object per line: ``{"event": ..., **fields}``."""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, json.dumps({"event": event, **fields}, default=str))
