"""
Append-only log file shared by every part of the workbench.
"""
import itertools
import os
import sys

from loguru import logger

LOG_FORMAT = "[{time:YYYY-MM-DD HH:mm:ss}] [{level}] {message}"

_sink_ids = itertools.count(1)


class LogSink:

    '''
    One log file, written through its own loguru handler.

    Each sink binds a private key and its handler only accepts records that
    carry it, so several sinks (one per test, say) never see each other's
    lines. The handler serialises writes, and `catch=True` turns any write
    error into a message on stderr instead of an exception.
    '''

    def __init__(self, path: str, level: str = "DEBUG"):
        self.path = os.path.abspath(path)
        self._key = f"apk_workbench.{next(_sink_ids)}"
        self._log = logger.bind(sink=self._key)
        self._handler_id = None
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
        except OSError:
            # without a directory every write fails; loguru reports and drops them
            pass
        self._handler_id = logger.add(
            self.path,
            format=LOG_FORMAT,
            level=level,
            filter=lambda record: record["extra"].get("sink") == self._key,
            encoding="utf-8",
            delay=True,
            catch=True,
        )

    def info(self, message: str):
        self._log.info(message)

    def error(self, message: str):
        self._log.error(message)

    def warning(self, message: str):
        self._log.warning(message)

    def debug(self, message: str):
        self._log.debug(message)

    def exception(self, message: str):
        self._log.exception(message)

    def clear(self):
        """Drop everything written so far."""
        try:
            if os.path.exists(self.path):
                open(self.path, "w").close()
        except OSError:
            pass

    def close(self):
        if self._handler_id is not None:
            logger.remove(self._handler_id)
            self._handler_id = None


def setup_logger(verbose: bool = False):
    """Drop loguru's default stderr handler; mirror log lines to stderr only when verbose.

    Must run before any LogSink is created, since it removes every handler.
    """
    logger.remove()
    if verbose:
        logger.add(
            sys.stderr,
            colorize=True,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
            level="DEBUG",
        )
    return logger
