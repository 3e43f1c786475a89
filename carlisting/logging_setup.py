import logging
import sys
from pathlib import Path

LOGGER_NAME = "carlisting"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    # Stderr keeps stdout free for command output.  No duplicate handlers on
    # reload or repeated CLI calls.
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file is not None:
        target = str(Path(log_file).resolve())
        if not any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in logger.handlers
        ):
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
