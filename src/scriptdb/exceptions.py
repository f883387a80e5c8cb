"""
Exception classes for the SQLite access layer.

Engine errors raised by ``sqlite3`` are never wrapped. The classes below cover
failures detected by this layer before the engine is reached.
"""
import sqlite3


class DatabaseError(Exception):
    """Base class for all scriptdb errors.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class InvalidOperationError(DatabaseError):
    """Operation is not valid in the current state of the handle.
    """


DbConnectionError = (
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

IntegrityError = (
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    )

OperationalError = (
    sqlite3.OperationalError,
    )
