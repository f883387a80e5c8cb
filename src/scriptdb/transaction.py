"""
Transaction handling for a connection handle.

Two kinds of transactions exist:

- the handle-level transaction, optionally started when the handle is opened
  and completed with ``commit()``; tracked by ``TransactionController``
- scoped transactions, opened and resolved inside one ``with`` block or one
  ``use_transaction()`` call, independent of the handle-level transaction

Both sit on ``EngineTransaction``, which owns the engine side and guarantees
the transaction is released exactly once.
"""
import enum
import itertools
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from scriptdb.exceptions import InvalidOperationError

logger = logging.getLogger(__name__)

T = TypeVar('T')

NO_ACTIVE_TRANSACTION = 'There is no active transaction, it is either completed or was never created.'

_savepoint_ids = itertools.count(1)


class TransactionState(enum.Enum):
    ACTIVE = 'active'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'
    DISPOSED = 'disposed'


class EngineTransaction:
    """One transaction on the engine.

    Starts with ``BEGIN IMMEDIATE``. When nested transactions are allowed and
    the connection is already inside a transaction, a savepoint is used
    instead. Without that permission a nested begin fails in the engine.
    """

    def __init__(self, connection: sqlite3.Connection, allow_nested: bool = False) -> None:
        self.connection = connection
        self.savepoint = None
        if allow_nested and connection.in_transaction:
            self.savepoint = f'scriptdb_sp_{next(_savepoint_ids)}'
            connection.execute(f'SAVEPOINT {self.savepoint}')
        else:
            connection.execute('BEGIN IMMEDIATE')
        self.state = TransactionState.ACTIVE
        self._released = False
        logger.debug(f'Began {"savepoint " + self.savepoint if self.savepoint else "transaction"}')

    @property
    def is_active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def commit(self) -> None:
        """Commit, then release. A failed commit still releases before raising."""
        if not self.is_active:
            raise InvalidOperationError(NO_ACTIVE_TRANSACTION)
        try:
            if self.savepoint:
                self.connection.execute(f'RELEASE SAVEPOINT {self.savepoint}')
            else:
                self.connection.execute('COMMIT')
            self.state = TransactionState.COMMITTED
            logger.debug('Committed transaction')
        finally:
            self.dispose()

    def dispose(self) -> None:
        """Release the transaction; an uncommitted one is rolled back."""
        if self._released:
            return
        self._released = True
        if not self.is_active:
            return
        try:
            self._rollback()
            self.state = TransactionState.ROLLED_BACK
        except Exception:
            self.state = TransactionState.DISPOSED
            raise

    def _rollback(self) -> None:
        if not self.connection.in_transaction:
            return
        if self.savepoint:
            self.connection.execute(f'ROLLBACK TO SAVEPOINT {self.savepoint}')
            self.connection.execute(f'RELEASE SAVEPOINT {self.savepoint}')
        else:
            self.connection.execute('ROLLBACK')
        logger.warning('Rolled back uncommitted transaction')


class ControllerState(enum.Enum):
    NO_TRANSACTION = 'no_transaction'
    ACTIVE = 'active'
    TERMINAL = 'terminal'


@dataclass
class BeginResult:
    """Outcome of ``TransactionController.begin()``.
    """
    ok: bool
    error: Exception | None = None


class TransactionController:
    """At most one handle-level transaction for a connection.
    """

    def __init__(self, connection: sqlite3.Connection, allow_nested: bool = False) -> None:
        self.connection = connection
        self.allow_nested = allow_nested
        self.state = ControllerState.NO_TRANSACTION
        self._transaction: EngineTransaction | None = None

    @property
    def transaction(self) -> EngineTransaction | None:
        return self._transaction

    @property
    def is_active(self) -> bool:
        return self.state is ControllerState.ACTIVE

    def begin(self) -> BeginResult:
        """Start the handle-level transaction.

        Engine failures are returned, not raised, so the owner decides what
        to do with its connection.
        """
        if self.state is not ControllerState.NO_TRANSACTION:
            raise InvalidOperationError('A transaction was already started on this connection.')
        try:
            self._transaction = EngineTransaction(self.connection, self.allow_nested)
        except sqlite3.Error as exc:
            logger.error(f'Could not begin transaction: {exc}')
            self.state = ControllerState.TERMINAL
            return BeginResult(ok=False, error=exc)
        self.state = ControllerState.ACTIVE
        return BeginResult(ok=True)

    def commit(self) -> None:
        if self.state is not ControllerState.ACTIVE:
            raise InvalidOperationError(NO_ACTIVE_TRANSACTION)
        transaction, self._transaction = self._transaction, None
        self.state = ControllerState.TERMINAL
        transaction.commit()

    def dispose_all(self) -> None:
        """Release the transaction without commit. Safe to call repeatedly."""
        transaction, self._transaction = self._transaction, None
        self.state = ControllerState.TERMINAL
        if transaction is not None:
            transaction.dispose()


class Transaction:
    """Context manager for running commands in a scoped transaction.

    Commits when the block completes, releases without commit when it raises.
    Attribute access is delegated to the connection handle.

    Examples
        with cn.transaction() as tx:
            tx.execute('delete from ...', args)
            tx.execute('update from ...', args)
    """

    def __init__(self, cn: Any) -> None:
        self.cn = cn
        self._transaction: EngineTransaction | None = None

    def __enter__(self):
        connection = self.cn.ensure_open()
        self._transaction = EngineTransaction(connection, self.cn.options.allow_nested_transactions)
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        transaction, self._transaction = self._transaction, None
        if exc_type is None:
            transaction.commit()
        else:
            logger.warning(f'Rolling back scoped transaction after {exc_type.__name__}')
            transaction.dispose()

    def __getattr__(self, name: str) -> Any:
        return getattr(self.cn, name)


def use_transaction(cn: Any, body: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run ``body`` in a new scoped transaction and return its result.
    """
    with Transaction(cn):
        return body(*args, **kwargs)
