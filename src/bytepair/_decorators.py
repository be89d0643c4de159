"""Reusable decorators for training and tokenizer utilities."""

import functools
import logging
import time
from typing import Callable

log = logging.getLogger(__name__)


def measure_time(func: Callable) -> Callable:
    """Log execution time of the wrapped training call."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        # log even when training raises
        finally:
            elapsed = time.perf_counter() - start
            log.info(
                f"{func.__qualname__} finished in {elapsed:.2f} s ({elapsed / 60:.2f} mins)"
            )

    return wrapper
