"""
Logging setup (loguru).

Two sinks: console on stderr unless machine mode is on, and an opt-in
rotating file under .patchwright/logs/. Every record carries a `session`
extra so the lines of one request can be picked out of a shared log.
"""

import os
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[session]}</magenta> | <cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[session]} | {name}:{function}:{line} - {message}"

_logging_configured = False


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


def setup_logging(level=None, suppress_console=None, enable_file_logging=None, force=False):
    """
    Configure the global logger once; later calls are no-ops unless force=True.

    Args:
        level: Console level (default: PATCHWRIGHT_LOG_LEVEL or INFO)
        suppress_console: None reads PATCHWRIGHT_MACHINE_MODE
        enable_file_logging: None reads PATCHWRIGHT_FILE_LOGGING
        force: Replace an existing configuration (the CLI switches modes after import)
    """
    global _logging_configured

    if _logging_configured and not force:
        return
    _logging_configured = True

    logger.remove()
    logger.configure(extra={"session": "-"})

    if suppress_console is None:
        suppress_console = _env_flag("PATCHWRIGHT_MACHINE_MODE")
    if not suppress_console:
        logger.add(
            sys.stderr,
            level=level or os.getenv("PATCHWRIGHT_LOG_LEVEL", "INFO").upper(),
            format=CONSOLE_FORMAT,
            colorize=True,
        )

    if enable_file_logging is None:
        enable_file_logging = _env_flag("PATCHWRIGHT_FILE_LOGGING")
    if enable_file_logging:
        from patchwright.paths import get_paths
        paths = get_paths()
        paths.ensure_dirs()
        logger.add(
            paths.logs_dir / "patchwright.log",
            level="INFO",
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="1 day",
            compression="gz",
            catch=True,
        )


def session_logger(session_id: str):
    """Logger whose records are tagged with a session id."""
    return logger.bind(session=session_id)


setup_logging()
