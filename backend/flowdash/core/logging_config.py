import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from flowdash.core.config import settings

# Log directory: FLOWDASH_LOG_DIR from env wins over settings.LOG_DIR
_log_dir_env = os.environ.get("FLOWDASH_LOG_DIR")
LOG_DIR = Path(_log_dir_env or settings.resolve_path(settings.LOG_DIR))

logger = logging.getLogger("flowdash")
logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
logger.handlers.clear()

_formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Console
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
console_handler.setFormatter(_formatter)
logger.addHandler(console_handler)

# File; a read-only filesystem only loses the file handler
try:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        LOG_DIR / "backend.log",
        maxBytes=2 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    file_handler.setFormatter(_formatter)
    logger.addHandler(file_handler)
except OSError:
    logger.warning("File logging disabled: cannot write to %s", LOG_DIR)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"flowdash.{name}")
