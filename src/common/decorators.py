"""
Error Handling Decorators

Retry polling, privilege checks and timing shared by the provisioning code.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Type, Tuple, Callable, Optional

from .exceptions import PermissionError

logger = logging.getLogger(__name__)


def retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
):
    """
    Call the wrapped function until it stops raising ``exceptions``.

    Sleeps ``delay`` seconds after the first failure, multiplying the pause
    by ``backoff`` each time. The last exception propagates once
    ``max_attempts`` calls have failed; other exception types propagate
    immediately.

    Example:
        @retry(max_attempts=10, delay=1.0, backoff=1.0,
               exceptions=(ContainerNotRunningError,))
        def wait_for_container():
            ...
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            pause = delay
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        logger.debug(f"{func.__name__}: giving up after {attempt} attempts ({e})")
                        raise
                    logger.debug(f"{func.__name__}: attempt {attempt}/{max_attempts} failed ({e})")
                    if on_retry:
                        on_retry(e, attempt)
                    time.sleep(pause)
                    pause *= backoff
                    attempt += 1

        return wrapper
    return decorator


def require_root(func: Callable) -> Callable:
    """Refuse to run ``func`` unless the effective user is root."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if os.geteuid() != 0:
            raise PermissionError(func.__name__, "run without root privileges")
        return func(*args, **kwargs)
    return wrapper


def timed(func: Callable) -> Callable:
    """Log how long each call took, at DEBUG level."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        started = time.monotonic()
        try:
            return func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__name__} took {time.monotonic() - started:.2f}s")
    return wrapper
