"""File logger factory shared by summarizer components."""

import logging
import os


def build_file_logger(name: str, log_dir: str | None, filename: str) -> logging.Logger:
    """Return the component logger ``name`` writing to ``log_dir/filename``.

    One logger per component, so callers pass a fixed name. The logger keeps
    at most one FileHandler; pointing it at a new file closes the old one.
    Without a log directory the plain named logger is returned so callers
    (mostly tests) can still log through the standard hierarchy.
    """
    logger = logging.getLogger(name)
    if not log_dir:
        return logger

    os.makedirs(log_dir, exist_ok=True)
    logger.setLevel(logging.INFO)
    log_path = os.path.abspath(os.path.join(log_dir, filename))
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.FileHandler):
            continue
        if handler.baseFilename == log_path:
            return logger
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_path, encoding="utf-8")
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
