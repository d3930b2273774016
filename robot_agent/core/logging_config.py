"""
Logging setup for robot-agent.

Library modules only ever call ``logging.getLogger(__name__)``. The console
front end (and the tests) call ``setup_logging`` once, which installs a single
console handler, an optional DEBUG file handler, and per-package levels.

Defaults come from the ``ROBOT_AGENT_LOG_*`` settings; explicit arguments win.
"""

import logging
from pathlib import Path
from typing import Optional

from robot_agent.core.config import get_settings

LOG_FILE_NAME = "robot_agent.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SIMPLE_FORMAT = "%(levelname)s %(name)s: %(message)s"

DETAILED_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(filename)s:%(lineno)d] %(message)s"

JSON_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"location": "%(filename)s:%(lineno)d", "message": "%(message)s"}'
)

FORMATS = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}

MODULE_LOG_LEVELS = {
    "robot_agent.agent_core": "INFO",
    "robot_agent.agent_core.runtime": "DEBUG",
    "robot_agent.agent_core.policy": "DEBUG",
    "robot_agent.agent_core.planning": "DEBUG",
    "robot_agent.agent_core.tools": "INFO",
    "robot_agent.agent_core.routing": "INFO",
    "httpx": "WARNING",
    "asyncio": "WARNING",
    "langgraph": "WARNING",
}


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
    log_file_dir: Optional[str] = None,
) -> None:
    """
    Install the console handler (and optionally the file handler) on the root logger.

    Args:
        log_level: Console level name, case insensitive. Defaults to ``ROBOT_AGENT_LOG_LEVEL``.
        log_format: ``simple``, ``detailed`` or ``json``. Unknown names use ``detailed``.
        enable_file: Also write DEBUG records to ``<log_file_dir>/robot_agent.log``.
        log_file_dir: Directory for the log file. Defaults to ``ROBOT_AGENT_LOG_DIR``.
    """
    defaults = get_settings().logging
    level = (log_level or defaults.level).upper()
    fmt = log_format or defaults.format
    to_file = defaults.to_file if enable_file is None else enable_file
    file_dir = Path(log_file_dir or defaults.file_dir)

    formatter = logging.Formatter(FORMATS.get(fmt, DETAILED_FORMAT), datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if to_file:
        file_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_dir / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(module_level)

    root.debug("Logging configured: level=%s format=%s file=%s", level, fmt, to_file)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (normally ``__name__``)."""
    return logging.getLogger(name)
