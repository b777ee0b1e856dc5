"""
Logging setup for houze_agents.

One call to ``setup_logging`` at process start installs a console handler
(and optionally a file handler) on the root logger and pins per-package
levels, so engine internals can log at DEBUG while noisy third-party
libraries stay at WARNING.

Line formats:
- ``simple``: level, logger and message
- ``detailed``: adds timestamp and call site (default)
- ``json``: one JSON-shaped object per line for log shippers
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

LOG_FILE_NAME = "houze_agents.log"


def _get_logging_config() -> Dict[str, Any]:
    """Read logging options from the application settings.

    Settings are imported lazily; when they cannot be loaded the raw
    environment variables are used instead.
    """
    try:
        from houze_agents.server.core.config import settings

        return {
            "log_level": settings.log_level.upper(),
            "log_format": settings.log_format,
            "log_file_dir": settings.log_file_dir,
            "enable_file_logging": settings.enable_file_logging,
        }
    except Exception:
        return {
            "log_level": os.getenv("HOUZE_AGENTS_LOG_LEVEL", "INFO").upper(),
            "log_format": os.getenv("LOG_FORMAT", "detailed"),
            "log_file_dir": os.getenv("LOG_FILE_DIR", "logs"),
            "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "false").lower() in ("true", "1", "yes"),
        }


SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

FORMATS = {"simple": SIMPLE_FORMAT, "detailed": DETAILED_FORMAT, "json": JSON_FORMAT}

# Per-package levels, applied on every setup
MODULE_LOG_LEVELS = {
    "houze_agents.agent_core": "DEBUG",
    "houze_agents.agent_core.runtime": "DEBUG",
    "houze_agents.agent_core.repos": "INFO",
    "houze_agents.agent_core.chat": "DEBUG",
    "houze_agents.agent_core.tools": "DEBUG",
    "houze_agents.server": "INFO",
    "houze_agents.server.api": "DEBUG",
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "httpx": "WARNING",
    "asyncio": "WARNING",
    "mcp": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
}


def _format_string(fmt: str) -> str:
    return FORMATS.get(fmt, DETAILED_FORMAT)


def _build_handlers(level: str, formatter: logging.Formatter, log_dir: Optional[Path]) -> List[logging.Handler]:
    console = logging.StreamHandler()
    console.setLevel(level)
    handlers: List[logging.Handler] = [console]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        # file handler keeps DEBUG regardless of the console level
        handlers.append(logging.FileHandler(log_dir / LOG_FILE_NAME))
        handlers[-1].setLevel(logging.DEBUG)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
) -> None:
    """
    Install the root handlers and the per-package levels.

    Calling it again replaces the handlers installed before.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL); settings value when omitted
        log_format: ``simple``, ``detailed`` or ``json``; settings value when omitted
        enable_file: Also write ``houze_agents.log`` under the configured log directory
    """
    config = _get_logging_config()
    level = (log_level or config["log_level"]).upper()
    fmt = log_format or config["log_format"]
    file_logging = config["enable_file_logging"] if enable_file is None else enable_file

    formatter = logging.Formatter(_format_string(fmt), datefmt="%Y-%m-%d %H:%M:%S")
    log_dir = Path(config["log_file_dir"]) if file_logging else None

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in _build_handlers(level, formatter, log_dir):
        root.addHandler(handler)

    for name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(module_level)

    root.info(f"Logging configured: level={level}, format={fmt}, file_logging={file_logging}")


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)


def sanitize_for_log(value: Any) -> str:
    """Render a user-supplied value safe for a single log line.

    Carriage returns are dropped and newlines collapsed into spaces so an
    identifier cannot forge additional log records.
    """
    if value is None:
        return ""
    return str(value).replace("\r", "").replace("\n", " ")
