"""
utils.py
--------
Logging and timing helpers shared by the pipeline modules.
"""

import functools
import logging
import time
from pathlib import Path
from typing import Optional


def get_logger(name: str, level: str = "INFO",
               log_file: Optional[str] = None) -> logging.Logger:
    """
    Return a named logger writing to stderr and, optionally, a file.

    Parameters
    ----------
    name     : Logger name (typically the module __name__).
    level    : Logging level string ("DEBUG", "INFO", "WARNING", "ERROR").
    log_file : Optional path of a log file to append to.

    Returns
    -------
    logging.Logger
    """
    logger = logging.getLogger(name)

    if logger.handlers:          # avoid duplicate handlers on re-import
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def timeit(func):
    """Decorator that logs the execution time of any function."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        t0 = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - t0
        logger.debug("%s completed in %.3f s", func.__qualname__, elapsed)
        return result
    return wrapper
