"""
Cursor wrapper used to dispatch commands to the engine.

Implements the subset of the Python DB-API 2.0 cursor (PEP-249) the result
materializers need, and adds SQL logging and timing.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, parameters: Any = (), *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {parameters}')
        try:
            return func(self, operation, parameters, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {parameters}')
            raise
        finally:
            elapsed = time.time() - start
            self.cn.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """Forward-only cursor over one engine statement."""

    def __init__(self, cursor: Any, cn: Any) -> None:
        self.dbapi_cursor = cursor
        self.cn = cn

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    def __iter__(self) -> Iterator:
        """Yield rows one at a time."""
        return iter(self.dbapi_cursor)

    @property
    def description(self) -> tuple | None:
        """Column descriptions for last query."""
        return self.dbapi_cursor.description

    @property
    def rowcount(self) -> int:
        """Number of rows affected by last operation, 0 for non-DML statements."""
        return max(self.dbapi_cursor.rowcount, 0)

    def close(self) -> None:
        self.dbapi_cursor.close()

    def fetchone(self) -> Any:
        return self.dbapi_cursor.fetchone()

    @dumpsql
    def execute(self, operation: str, parameters: Any = ()) -> int:
        """Execute a database operation and return the affected row count."""
        self.dbapi_cursor.execute(operation, parameters)
        return self.rowcount


def execute_command(command: Any) -> Cursor:
    """Bind a command's parameters and execute it on a fresh cursor.

    The cursor stays open for the materializer and is closed when the command
    is disposed or executed again.
    """
    cursor = command.cursor()
    cursor.execute(command.text, command.parameters.to_engine())
    return cursor
