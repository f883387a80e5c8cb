"""
Connection handle for an embedded SQLite database.

This module provides:
1. The `connect()` function for opening a handle
2. The `ConnectionHandle` class owning the connection, the optional
   handle-level transaction and the registry of deferred-disposal resources

The handle offers one method per result shape:
- execute(command, *args) - Execute and discard the result
- execute_nonquery(command, *args) - Execute and return affected row count
- select(command, *args) - Rows through the configured data loader
- select_rows(command, *args) - Rows as a forward-only generator
- select_column(command, *args) - First column of every row
- select_lookup(command, *args) - First column mapped to second column
- select_scalar(command, *args) - First column of the first row or None

A command is either command text, bound fresh from ``args``, or a `Command`
from `create_command()`, which carries its own parameters.
"""
import logging
import sqlite3
from collections.abc import Callable, Iterator, MutableMapping
from contextlib import ExitStack, contextmanager
from typing import Any, Self, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from scriptdb.command import Command
from scriptdb.connstring import ConnectionString, create_database_file, create_url
from scriptdb.cursor import Cursor, execute_command
from scriptdb.exceptions import InvalidOperationError, ValidationError
from scriptdb.functions import register_builtin_functions, register_function
from scriptdb.options import DatabaseOptions
from scriptdb.parameters import Parameter, bind_parameters
from scriptdb.registry import ResourceRegistry
from scriptdb.results import iter_rows, load_column, load_lookup, load_scalar
from scriptdb.results import load_table
from scriptdb.transaction import Transaction, TransactionController, use_transaction
from scriptdb.types import register_converters

__all__ = [
    'ConnectionHandle',
    'connect',
    'configure_connection',
    'create_engine',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')

RAW_COMMAND_PARAMETERS = 'Parameters are not used with a raw command.'


def _arguments(args: tuple) -> list[Any]:
    """A single list or tuple argument is the argument list itself."""
    if len(args) == 1 and isinstance(args[0], list | tuple):
        return list(args[0])
    return list(args)


def _generate_rows(cursor: Cursor, stack: ExitStack) -> Iterator[dict[str, Any]]:
    """Yield rows, then dispose the transient command held by ``stack``."""
    with stack:
        yield from iter_rows(cursor)


class ConnectionHandle:
    """Owns one open SQLite connection for its lifetime.

    Disposal releases, in order, the handle-level transaction, the registered
    resources and the connection. After disposal every operation raises
    InvalidOperationError.
    """

    def __init__(self, sa_connection: sa.engine.Connection, engine: Engine,
                 options: DatabaseOptions) -> None:
        self.sa_connection = sa_connection
        self.engine = engine
        self.options = options
        self.dbapi_connection: sqlite3.Connection = sa_connection.connection.driver_connection
        self.registry = ResourceRegistry()
        self.transactions = TransactionController(self.dbapi_connection,
                                                  options.allow_nested_transactions)
        self.calls = 0
        self.time = 0
        self._disposed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = 'disposed' if self._disposed else 'open'
        return f'ConnectionHandle({self.options.database!r}, {state})'

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying sqlite3 connection."""
        return self.ensure_open()

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def in_transaction(self) -> bool:
        """True while the handle-level transaction is active."""
        return self.transactions.is_active

    def ensure_open(self) -> sqlite3.Connection:
        if self._disposed:
            raise InvalidOperationError('Cannot use a disposed connection.')
        return self.dbapi_connection

    def cursor(self) -> Cursor:
        return Cursor(self.ensure_open().cursor(), self)

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def create_command(self, text: str, *parameters: Parameter, dispose: bool = False) -> Command:
        """Create a reusable command with pre-built typed parameters.

        With ``dispose=True`` the command is disposed together with the handle.
        """
        self.ensure_open()
        command = Command(self, text, parameters)
        if dispose:
            return self.registry.register(command)
        return command

    @contextmanager
    def _prepare(self, command: str | Command, args: tuple) -> Iterator[Command]:
        """Yield a command ready to execute.

        Command text gets a transient command, bound from ``args`` and
        disposed afterwards. A raw command is used as is.
        """
        arguments = _arguments(args)
        if isinstance(command, Command):
            if arguments:
                raise ValidationError(RAW_COMMAND_PARAMETERS)
            self.ensure_open()
            yield command
            return

        with Command(self, str(command)) as cmd:
            bind_parameters(cmd.parameters, arguments)
            yield cmd

    def execute(self, command: str | Command, *args: Any) -> None:
        """Execute a command and discard the result.
        """
        with self._prepare(command, args) as cmd:
            execute_command(cmd)

    def execute_nonquery(self, command: str | Command, *args: Any) -> int:
        """Execute a command and return the number of affected rows.
        """
        with self._prepare(command, args) as cmd:
            return execute_command(cmd).rowcount

    def select(self, command: str | Command, *args: Any, **kwargs: Any) -> Any:
        """Execute a query and return all rows through the data loader.

        Keyword arguments are passed to the data loader.
        """
        with self._prepare(command, args) as cmd:
            cursor = execute_command(cmd)
            return load_table(cursor, self.options.data_loader, **kwargs)

    def select_rows(self, command: str | Command, *args: Any) -> Iterator[dict[str, Any]]:
        """Execute a query and return a generator of rows as dictionaries.

        Arguments are checked and the statement runs before this returns; rows
        are read one at a time as the generator is consumed.
        """
        with ExitStack() as stack:
            cmd = stack.enter_context(self._prepare(command, args))
            cursor = execute_command(cmd)
            return _generate_rows(cursor, stack.pop_all())

    def select_column(self, command: str | Command, *args: Any) -> list[Any]:
        """Execute a query and return the first column as a list.
        """
        with self._prepare(command, args) as cmd:
            return load_column(execute_command(cmd))

    def select_lookup(self, command: str | Command, *args: Any) -> dict[Any, Any]:
        """Execute a query and map first column values to second column values.

        Raises ValidationError if the query projects fewer than two columns.
        The column count is known only after the statement runs, so the
        effects of a one-column statement such as ``INSERT ... RETURNING``
        remain when the error is raised.
        """
        with self._prepare(command, args) as cmd:
            return load_lookup(execute_command(cmd))

    def select_scalar(self, command: str | Command, *args: Any) -> Any:
        """Execute a query and return the first column of the first row.

        Returns None when the query produces no rows.
        """
        with self._prepare(command, args) as cmd:
            result = load_scalar(execute_command(cmd))
            logger.debug(f'Scalar query returned value of type {type(result).__name__}')
            return result

    def commit(self) -> None:
        """Commit the handle-level transaction.

        Raises InvalidOperationError if no transaction is active.
        """
        self.ensure_open()
        self.transactions.commit()

    def transaction(self) -> Transaction:
        """Context manager running its block in a new scoped transaction.
        """
        return Transaction(self)

    def use_transaction(self, body: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``body`` inside a new scoped transaction and return its result.

        The transaction commits when ``body`` returns and is released without
        commit when it raises.
        """
        return use_transaction(self, body, *args, **kwargs)

    def register_function(self, name: str, num_args: int, func: Callable[..., Any],
                          deterministic: bool = False) -> None:
        """Register a scalar function for use in command text.
        """
        register_function(self.ensure_open(), name, num_args, func, deterministic)

    def dispose(self) -> None:
        """Release the transaction, the registered resources, then the connection.
        """
        if self._disposed:
            return
        self._disposed = True
        try:
            self.transactions.dispose_all()
        finally:
            try:
                self.registry.dispose_all()
            finally:
                self.sa_connection.close()
                self.engine.dispose()
                logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')

    close = dispose


def create_engine(conn_string: ConnectionString,
                  engine_factory: Callable[..., Engine] = sa.create_engine) -> Engine:
    """Create a non-pooling SQLAlchemy engine for the data source.
    """
    connect_args: dict[str, Any] = {
        'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
    }
    if conn_string.timeout is not None:
        connect_args['timeout'] = conn_string.timeout

    url = create_url(conn_string)
    return engine_factory(url, echo=False, poolclass=NullPool, connect_args=connect_args)


def configure_connection(connection: sqlite3.Connection, conn_string: ConnectionString) -> None:
    """Configure a freshly opened sqlite3 connection.

    Transactions are explicit, so the driver is put in autocommit mode.
    """
    connection.isolation_level = None
    connection.row_factory = sqlite3.Row
    for pragma in conn_string.pragmas():
        connection.execute(pragma)
    register_builtin_functions(connection)


def connect(config: DatabaseOptions | dict[str, Any] | str | None = None,
            namespace: MutableMapping[str, Any] | None = None,
            **kw: Any) -> ConnectionHandle:
    """Open a connection handle.

    Args:
        config: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - Database target string
                The options string is passed as ``options=...``, like any other option
        namespace: Mapping the handle is published into under ``options.variable``
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionHandle owning the open connection

    Engine failures while opening, configuring or beginning the transaction
    are raised unchanged after the connection is closed.
    """
    options = DatabaseOptions.load(config, **kw)
    conn_string = options.connection_string()

    if options.create_file and conn_string.data_source and not conn_string.is_memory:
        create_database_file(conn_string.data_source)

    register_converters()
    engine = create_engine(conn_string)
    try:
        sa_connection = engine.connect()
    except sa.exc.DBAPIError as exc:
        engine.dispose()
        raise exc.orig from exc

    handle = ConnectionHandle(sa_connection, engine, options)
    try:
        configure_connection(handle.dbapi_connection, conn_string)
    except Exception:
        handle.dispose()
        raise

    if options.transaction:
        result = handle.transactions.begin()
        if not result.ok:
            handle.dispose()
            raise result.error

    logger.debug(f'Opened {conn_string.data_source} (transaction={options.transaction})')

    if namespace is not None:
        namespace[options.variable] = handle
    return handle
