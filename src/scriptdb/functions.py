"""
Scalar functions registered with the engine.
"""
import logging
import re
import sqlite3
from collections.abc import Callable
from functools import lru_cache
from typing import Any

logger = logging.getLogger(__name__)


@lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def regexp(pattern: Any, value: Any) -> bool:
    """REGEXP implementation: ``value REGEXP pattern`` calls ``regexp(pattern, value)``.

    The result is False if any argument is not a string.
    """
    if not isinstance(pattern, str) or not isinstance(value, str):
        return False
    return _compile(pattern).search(value) is not None


def register_function(connection: sqlite3.Connection, name: str, num_args: int,
                      func: Callable[..., Any], deterministic: bool = False) -> None:
    """Register a scalar function callable from command text.

    ``func`` receives the SQL arguments positionally and returns one value.
    """
    if num_args < -1:
        raise ValueError(f'num_args must be -1 or greater, got {num_args}')
    connection.create_function(name, num_args, func, deterministic=deterministic)
    logger.debug(f'Registered scalar function {name}/{num_args}')


def register_builtin_functions(connection: sqlite3.Connection) -> None:
    """Register the functions every handle provides."""
    register_function(connection, 'REGEXP', 2, regexp, deterministic=True)
