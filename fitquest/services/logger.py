import logging
import sys
from collections.abc import Mapping


class _ContextFormatter(logging.Formatter):
    """Appends the context dict passed as `logger.info(msg, {...})`."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if isinstance(record.args, Mapping) and record.args:
            context = " ".join(f"{key}={value}" for key, value in record.args.items())
            line = f"{line} | {context}"
        return line


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger("fitquest.progress")
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            _ContextFormatter(
                fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.propagate = False
    return logger


logger = _configure_logger()
