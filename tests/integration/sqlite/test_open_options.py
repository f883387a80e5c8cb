"""Opening handles: targets, options strings and flags."""
import sqlite3

import pytest
import scriptdb as db


def test_file_database(sqlite_file_path):
    with db.connect(str(sqlite_file_path)) as conn:
        assert conn.select_scalar('SELECT count(*) FROM test_table') == 3


def test_options_string_data_source(sqlite_file_path):
    with db.connect(options=f'Data Source={sqlite_file_path};Version=3') as conn:
        assert conn.select_scalar('SELECT count(*) FROM test_table') == 3


def test_options_mapping(sqlite_file_path):
    with db.connect({'database': str(sqlite_file_path), 'variable': 'conn'}) as conn:
        assert conn.options.variable == 'conn'


def test_read_only(sqlite_file_path):
    with db.connect(str(sqlite_file_path), read_only=True) as conn:
        assert conn.select_scalar('SELECT count(*) FROM test_table') == 3
        with pytest.raises(sqlite3.OperationalError, match='readonly'):
            conn.execute("INSERT INTO test_table (name, value) VALUES ('Diana', 40)")


def test_read_only_missing_file(tmp_path):
    with pytest.raises(sqlite3.OperationalError):
        db.connect(str(tmp_path / 'missing.db'), read_only=True)

    assert not (tmp_path / 'missing.db').exists()


def test_fail_if_missing(tmp_path):
    missing = tmp_path / 'missing.db'

    with pytest.raises(sqlite3.OperationalError):
        db.connect(options=f'Data Source={missing};Fail If Missing=True')

    assert not missing.exists()


def test_missing_file_is_created_by_default(tmp_path):
    path = tmp_path / 'new.db'

    with db.connect(str(path)) as conn:
        conn.execute('CREATE TABLE t (x)')

    assert path.exists()


def test_create_file(tmp_path):
    path = tmp_path / 'sub' / 'new.db'

    with db.connect(str(path), create_file=True) as conn:
        assert conn.select_scalar('SELECT count(*) FROM sqlite_master') == 0

    assert path.exists()


def test_create_file_replaces_existing(sqlite_file_path):
    with db.connect(str(sqlite_file_path), create_file=True) as conn:
        with pytest.raises(sqlite3.OperationalError, match='no such table'):
            conn.select('SELECT * FROM test_table')


@pytest.mark.parametrize(('kwargs', 'enforced'), [
    ({}, False),
    ({'foreign_keys': True}, True),
    ({'options': 'Data Source=:memory:;Foreign Keys=True'}, True),
])
def test_foreign_keys(kwargs, enforced):
    with db.connect(**kwargs) as conn:
        conn.execute('CREATE TABLE parent (id INTEGER PRIMARY KEY)')
        conn.execute('CREATE TABLE child (parent_id INTEGER REFERENCES parent (id))')

        if enforced:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute('INSERT INTO child VALUES (1)')
        else:
            conn.execute('INSERT INTO child VALUES (1)')


def test_pragmas_from_options_string(tmp_path):
    path = tmp_path / 'wal.db'

    with db.connect(options=f'Data Source={path};Journal Mode=WAL;Cache Size=-1000') as conn:
        assert conn.select_scalar('PRAGMA journal_mode') == 'wal'
        assert conn.select_scalar('PRAGMA cache_size') == -1000


def test_publish_into_namespace():
    namespace = {}

    with db.connect(namespace=namespace) as conn:
        assert namespace['db'] is conn

    with db.connect(namespace=namespace, variable='other') as conn:
        assert namespace['other'] is conn


def test_unknown_option_rejected():
    with pytest.raises(db.ValidationError):
        db.connect(hostname='localhost')


def test_empty_data_source_rejected():
    with pytest.raises(db.ValidationError, match='cannot be empty'):
        db.connect(options='Foreign Keys=True')


def test_open_failure_is_engine_error(tmp_path):
    """A directory cannot be opened as a database file"""
    with pytest.raises(sqlite3.OperationalError):
        db.connect(str(tmp_path))


def test_options_keyword_is_parsed_not_opened(tmp_path, monkeypatch):
    """options= carries the options string, never a target path"""
    monkeypatch.chdir(tmp_path)

    with db.connect(options='Data Source=:memory:;Foreign Keys=True') as conn:
        assert conn.select_scalar('PRAGMA foreign_keys') == 1
        assert conn.options.database is None

    assert list(tmp_path.iterdir()) == []
