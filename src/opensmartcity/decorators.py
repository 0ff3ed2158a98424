# OpenSmartCity: poll SensorThings weather stations and publish typed state
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Function decorators for cross-cutting concerns.

Retry logic lives here rather than in the HTTP client so that the client
stays a thin wrapper around a requests session.
"""

import logging
from functools import wraps
from typing import Callable, TypeVar

import requests
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable)

logger = logging.getLogger(__name__)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    multiplier: float = 2.0,
) -> Callable[[F], F]:
    """
    Decorator to add exponential backoff retry logic to a function.

    Only transport problems are retried (connection errors and timeouts).
    An HTTP response of any status is a definitive answer for this cycle and
    is returned to the caller untouched.

    Args:
        max_attempts: Maximum number of attempts; 1 disables retrying
        min_wait: Minimum wait time between retries in seconds (default: 1.0)
        max_wait: Maximum wait time between retries in seconds (default: 10.0)
        multiplier: Multiplier for exponential backoff (default: 2.0)

    Returns:
        Callable: Decorated function with retry logic

    Example:
        >>> @with_retry(max_attempts=3, max_wait=5.0)
        ... def get(url):
        ...     return requests.get(url, timeout=10)
    """

    def decorator(func: F) -> F:
        @retry(
            retry=(
                retry_if_exception_type(requests.exceptions.ConnectionError)
                | retry_if_exception_type(requests.exceptions.Timeout)
            ),
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            after=after_log(logger, logging.DEBUG),
            # Callers translate the last exception into a TransportError
            reraise=True,
        )
        @wraps(func)
        def wrapper(*args, **kwargs):
            return func(*args, **kwargs)

        return wrapper

    return decorator


def with_timeout(seconds: float) -> Callable[[F], F]:
    """
    Decorator to ensure requests have a timeout.

    Adds a 'timeout' keyword argument to calls that do not pass one, so no
    request made through the decorated function can block forever.

    Args:
        seconds: Timeout in seconds

    Returns:
        Callable: Decorated function with timeout parameter
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if "timeout" not in kwargs:
                kwargs["timeout"] = seconds
            return func(*args, **kwargs)

        return wrapper

    return decorator
