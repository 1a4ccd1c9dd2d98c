# foodrescue/logging.py
import logging
import os

ROOT_LOGGER = "foodrescue"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    handlers = [logging.StreamHandler()]
    log_file = os.environ.get("LOG_FILE")
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(_level_from_env())
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Child of the ``foodrescue`` logger, which owns the only handlers.

    LOG_LEVEL (default INFO) and LOG_FILE are read once, on first use.
    """
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
