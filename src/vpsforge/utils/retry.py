# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/utils/retry.py

import functools
import time
from typing import Callable, Optional, Tuple, Type


class RetryError(RuntimeError):
    pass


def retry(
    *,
    retries: int,
    delay: float,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
):
    """
    Retry a read-only network call a bounded number of times.

    Only used outside steps (e.g. the external IP lookup): step actions are
    never retried, a failing step aborts the run.

    retries: total attempts
    delay: seconds between attempts, none after the last
    retry_on: exception types worth another attempt; others propagate at once
    on_retry: callback(attempt, exception), called for every failed attempt
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc: Optional[Exception] = None
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt < retries:
                        (sleep or time.sleep)(delay)
            raise RetryError(f"{fn.__name__} failed after {retries} attempts") from last_exc
        return wrapper
    return decorator
