"""Handle-level and scoped transactions on SQLite."""
import sqlite3

import pytest
import scriptdb as db


def count(conn):
    return conn.select_scalar('SELECT count(*) FROM test_table')


def test_commit_without_transaction(sqlite_conn):
    with pytest.raises(db.InvalidOperationError, match='no active transaction'):
        db.commit(sqlite_conn)


def test_commit_persists(sqlite_file_path):
    with db.connect(str(sqlite_file_path), transaction=True) as conn:
        assert conn.in_transaction
        conn.execute("INSERT INTO test_table (name, value) VALUES ('Diana', 40)")
        conn.commit()
        assert not conn.in_transaction

        with pytest.raises(db.InvalidOperationError):
            conn.commit()

    with db.connect(str(sqlite_file_path)) as conn:
        assert count(conn) == 4


def test_dispose_without_commit_rolls_back(sqlite_file_path):
    conn = db.connect(str(sqlite_file_path), transaction=True)
    conn.execute("INSERT INTO test_table (name, value) VALUES ('Diana', 40)")
    assert count(conn) == 4
    conn.close()

    with db.connect(str(sqlite_file_path)) as conn:
        assert count(conn) == 3


def test_scoped_transaction_commits(sqlite_conn):
    with db.transaction(sqlite_conn) as tx:
        tx.execute("INSERT INTO test_table (name, value) VALUES ('Diana', 40)")
        tx.execute("UPDATE test_table SET value = 0 WHERE name = 'Alice'")

    assert count(sqlite_conn) == 4
    assert sqlite_conn.select_scalar("SELECT value FROM test_table WHERE name = 'Alice'") == 0


def test_scoped_transaction_failure_leaves_nothing(sqlite_conn):
    with pytest.raises(sqlite3.IntegrityError):
        with sqlite_conn.transaction() as tx:
            tx.execute("INSERT INTO test_table (name, value) VALUES ('Diana', 40)")
            tx.execute("INSERT INTO test_table (name, value) VALUES ('Alice', 50)")

    assert count(sqlite_conn) == 3


def test_use_transaction_returns_body_result(sqlite_conn):
    def body(name, value):
        return sqlite_conn.execute_nonquery('INSERT INTO test_table (name, value) VALUES (?, ?)', name, value)

    assert db.use_transaction(sqlite_conn, body, 'Diana', value=40) == 1
    assert count(sqlite_conn) == 4


def test_use_transaction_body_failure(sqlite_conn):
    def body():
        sqlite_conn.execute("DELETE FROM test_table")
        raise RuntimeError('stop')

    with pytest.raises(RuntimeError, match='stop'):
        sqlite_conn.use_transaction(body)

    assert count(sqlite_conn) == 3


def test_scoped_transaction_inside_handle_transaction_fails():
    """Without nested transactions a second BEGIN is an engine error"""
    with db.connect(transaction=True) as conn:
        with pytest.raises(sqlite3.OperationalError, match='within a transaction'):
            with conn.transaction():
                pass
        assert conn.in_transaction


def test_nested_transactions_use_savepoints():
    with db.connect(transaction=True, allow_nested_transactions=True) as conn:
        conn.execute('CREATE TABLE t (x INTEGER)')
        conn.execute('INSERT INTO t VALUES (1)')

        with pytest.raises(ValueError):
            with conn.transaction() as tx:
                tx.execute('INSERT INTO t VALUES (2)')
                raise ValueError

        with conn.transaction() as tx:
            tx.execute('INSERT INTO t VALUES (3)')

        conn.commit()
        assert conn.select_column('SELECT x FROM t ORDER BY x') == [1, 3]


def test_nested_transactions_from_options_string():
    with db.connect(options='Data Source=:memory:;Flags=AllowNestedTransactions', transaction=True) as conn:
        with conn.transaction():
            conn.execute('CREATE TABLE t (x INTEGER)')
        conn.commit()
        assert conn.select_scalar('SELECT count(*) FROM t') == 0


def test_begin_failure_closes_handle(locked_file):
    namespace = {}

    with pytest.raises(sqlite3.OperationalError, match='locked'):
        db.connect(str(locked_file), transaction=True, timeout=0, namespace=namespace)

    assert namespace == {}


def test_scoped_transaction_on_disposed_handle():
    conn = db.connect()
    conn.close()

    with pytest.raises(db.InvalidOperationError):
        with conn.transaction():
            pass
