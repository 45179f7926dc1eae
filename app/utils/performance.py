"""
Timing helpers for the Oscars Pool application
Slow scoring passes, snapshot cycles and requests are logged as warnings
"""

import functools
import logging
import time

from flask import current_app, g, request

logger = logging.getLogger(__name__)


def timer(func):
    """
    Decorator to time function execution

    Calls slower than SLOW_FUNCTION_THRESHOLD seconds log a warning.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start_time
            threshold = current_app.config.get("SLOW_FUNCTION_THRESHOLD", 1.0)
            if elapsed > threshold:
                logger.warning(
                    f"Slow function {func.__qualname__} took {elapsed:.2f}s "
                    f"(threshold: {threshold}s)"
                )
            else:
                logger.debug(f"{func.__qualname__} executed in {elapsed:.3f}s")

    return wrapper


def track_request_performance():
    g.request_start_time = time.perf_counter()


def log_request_performance(response):
    start_time = getattr(g, "request_start_time", None)
    if start_time is None:
        return response

    elapsed = time.perf_counter() - start_time
    threshold = current_app.config.get("SLOW_REQUEST_THRESHOLD", 2.0)
    if elapsed > threshold:
        logger.warning(
            f"Slow request: {request.method} {request.path} took {elapsed:.2f}s "
            f"(threshold: {threshold}s)"
        )
    return response


def init_request_timing(app):
    app.before_request(track_request_performance)
    app.after_request(log_request_performance)
