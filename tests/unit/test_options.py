import pathlib

import pytest
from scriptdb.exceptions import ValidationError
from scriptdb.options import DatabaseOptions, iterdict_data_loader
from scriptdb.options import pandas_numpy_data_loader


def test_init_defaults():
    """Test default initialization"""
    options = DatabaseOptions()

    assert options.database == ':memory:'
    assert options.is_memory
    assert options.create_file is False
    assert options.transaction is False
    assert options.allow_nested_transactions is False
    assert options.foreign_keys is False
    assert options.read_only is False
    assert options.timeout is None
    assert options.variable == 'db'
    assert options.data_loader == iterdict_data_loader


def test_file_target_is_absolute(tmp_path, monkeypatch):
    """Relative targets resolve against the working directory"""
    monkeypatch.chdir(tmp_path)
    options = DatabaseOptions(database='app.db')

    assert options.database == str(tmp_path / 'app.db')
    assert pathlib.Path(options.database).is_absolute()
    assert not options.is_memory


def test_options_string_flags_are_merged():
    """Flags from the options string combine with explicit flags"""
    options = DatabaseOptions(
        options='Data Source=:memory:;Foreign Keys=True;Flags=AllowNestedTransactions;Default Timeout=5'
    )

    assert options.database is None
    assert options.foreign_keys is True
    assert options.allow_nested_transactions is True
    assert options.timeout == 5.0


def test_explicit_timeout_wins():
    options = DatabaseOptions(options='Data Source=:memory:;Default Timeout=5', timeout=1)

    assert options.timeout == 1


def test_connection_string_target_wins():
    """The database target replaces the data source of the options string"""
    options = DatabaseOptions(database=':memory:', options='Data Source=other.db;Read Only=False')
    conn_string = options.connection_string()

    assert conn_string.data_source == ':memory:'
    assert conn_string.read_only is False


def test_connection_string_carries_flags():
    options = DatabaseOptions(allow_nested_transactions=True, foreign_keys=True, timeout=2)
    conn_string = options.connection_string()

    assert conn_string.allow_nested_transactions
    assert conn_string.foreign_keys
    assert conn_string.timeout == 2


def test_validation():
    """Test validation rules"""
    with pytest.raises(ValidationError, match='variable'):
        DatabaseOptions(variable='')


class TestLoad:

    def test_from_none(self):
        assert DatabaseOptions.load().is_memory

    def test_from_instance_returned_as_is(self):
        options = DatabaseOptions(transaction=True)

        assert DatabaseOptions.load(options) is options

    def test_instance_with_overrides(self):
        options = DatabaseOptions(transaction=True)
        loaded = DatabaseOptions.load(options, variable='conn')

        assert loaded is not options
        assert loaded.transaction is True
        assert loaded.variable == 'conn'

    def test_from_mapping(self):
        loaded = DatabaseOptions.load({'transaction': True, 'data_loader': pandas_numpy_data_loader})

        assert loaded.transaction is True
        assert loaded.data_loader == pandas_numpy_data_loader

    def test_options_keyword_is_the_options_string(self):
        loaded = DatabaseOptions.load(options='Data Source=:memory:;Foreign Keys=True')

        assert loaded.options == 'Data Source=:memory:;Foreign Keys=True'
        assert loaded.database is None
        assert loaded.foreign_keys is True
        assert loaded.connection_string().is_memory

    def test_from_target_string(self):
        assert DatabaseOptions.load(':memory:', read_only=True).read_only is True

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError, match='hostname'):
            DatabaseOptions.load({'hostname': 'localhost'})
