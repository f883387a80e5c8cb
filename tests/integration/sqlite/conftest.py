"""
Fixtures for SQLite-specific integration tests.
"""
import sqlite3

import pytest


@pytest.fixture
def locked_file(sqlite_file_path):
    """File database held under an exclusive lock by a second connection."""
    locker = sqlite3.connect(str(sqlite_file_path), isolation_level=None)
    locker.execute('BEGIN EXCLUSIVE')
    yield sqlite_file_path
    locker.execute('ROLLBACK')
    locker.close()
