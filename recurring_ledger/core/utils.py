import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from .config import settings

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'

def to_jsonable(value: Any):
    """json.dumps default for the values audit entries and vocabulary files carry."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)

def atomic_write_json(path: str, obj: Any):
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, default=to_jsonable)
    os.replace(str(tmp), str(p))

def _console_enabled() -> bool:
    return os.getenv("DEV", "").lower() in ("1", "true", "yes")

def setup_logging(name: str = "system", *, log_level: Optional[str] = None,
                  log_dir: Optional[str] = None) -> logging.Logger:
    """Named logger `<APP_NAME>.<name>` writing to `<log_dir>/<name>.log`.

    Configured once per name; later calls return the same logger untouched.
    """
    logger = logging.getLogger(f"{settings.APP_NAME}.{name}")
    if logger.handlers:
        return logger
    logger.setLevel(getattr(logging, (log_level or settings.LOG_LEVEL).upper()))
    directory = Path(log_dir or settings.AUDIT_LOG_PATH)
    directory.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    handler = RotatingFileHandler(str(directory / f"{name}.log"), maxBytes=10_000_000, backupCount=5)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if _console_enabled():
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)
    logger.propagate = False
    return logger
