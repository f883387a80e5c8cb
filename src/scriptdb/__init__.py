"""
SQLite access layer for scripts.

All operations can be called either as:
- Module functions: scriptdb.select(cn, sql, *args)
- ConnectionHandle methods: cn.select(sql, *args)

The module functions take the handle explicitly as their first argument.
"""
__version__ = '0.1.0'

from collections.abc import Callable, Iterator
from typing import Any

from scriptdb.command import Command
from scriptdb.connection import ConnectionHandle, connect
from scriptdb.exceptions import DatabaseError
from scriptdb.exceptions import DbConnectionError, IntegrityError
from scriptdb.exceptions import InvalidOperationError, OperationalError
from scriptdb.exceptions import ProgrammingError, ValidationError
from scriptdb.functions import regexp
from scriptdb.options import DatabaseOptions, iterdict_data_loader
from scriptdb.options import pandas_numpy_data_loader
from scriptdb.options import pandas_pyarrow_data_loader
from scriptdb.parameters import Parameter, ParameterSet
from scriptdb.results import Table
from scriptdb.types import Column


def execute(cn: ConnectionHandle, command: str | Command, *args: Any) -> None:
    """Execute a command and discard the result.
    """
    cn.execute(command, *args)


def execute_nonquery(cn: ConnectionHandle, command: str | Command, *args: Any) -> int:
    """Execute a command and return affected row count.
    """
    return cn.execute_nonquery(command, *args)


delete = execute_nonquery
insert = execute_nonquery
update = execute_nonquery


def select(cn: ConnectionHandle, command: str | Command, *args: Any, **kwargs: Any) -> Any:
    """Execute a query and return all rows through the configured data loader.
    """
    return cn.select(command, *args, **kwargs)


def select_rows(cn: ConnectionHandle, command: str | Command, *args: Any) -> Iterator[dict[str, Any]]:
    """Execute a query and yield rows one at a time.
    """
    return cn.select_rows(command, *args)


def select_column(cn: ConnectionHandle, command: str | Command, *args: Any) -> list[Any]:
    """Execute a query and return a single column as a list.
    """
    return cn.select_column(command, *args)


def select_lookup(cn: ConnectionHandle, command: str | Command, *args: Any) -> dict[Any, Any]:
    """Execute a query and map the first column to the second.
    """
    return cn.select_lookup(command, *args)


def select_scalar(cn: ConnectionHandle, command: str | Command, *args: Any) -> Any:
    """Execute a query and return a single scalar value, None if no rows.
    """
    return cn.select_scalar(command, *args)


def create_command(cn: ConnectionHandle, text: str, *parameters: Parameter,
                   dispose: bool = False) -> Command:
    """Create a reusable command with typed parameters.
    """
    return cn.create_command(text, *parameters, dispose=dispose)


def commit(cn: ConnectionHandle) -> None:
    """Commit the handle-level transaction.
    """
    cn.commit()


def transaction(cn: ConnectionHandle) -> Any:
    """Context manager for a scoped transaction.
    """
    return cn.transaction()


def use_transaction(cn: ConnectionHandle, body: Callable[..., Any], *args: Any,
                    **kwargs: Any) -> Any:
    """Run ``body`` in a scoped transaction and return its result.
    """
    return cn.use_transaction(body, *args, **kwargs)


def register_function(cn: ConnectionHandle, name: str, num_args: int,
                      func: Callable[..., Any], deterministic: bool = False) -> None:
    """Register a scalar function with the engine.
    """
    cn.register_function(name, num_args, func, deterministic)


def close(cn: ConnectionHandle) -> None:
    """Dispose the handle and close its connection.
    """
    cn.dispose()


__all__ = [
    'connect',
    'ConnectionHandle',
    'DatabaseOptions',
    'Command',
    'Parameter',
    'ParameterSet',
    'Table',
    'Column',
    'execute',
    'execute_nonquery',
    'delete',
    'insert',
    'update',
    'select',
    'select_rows',
    'select_column',
    'select_lookup',
    'select_scalar',
    'create_command',
    'commit',
    'transaction',
    'use_transaction',
    'register_function',
    'close',
    'regexp',
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
    'DbConnectionError',
    'ValidationError',
    'InvalidOperationError',
    'DatabaseError',
]
