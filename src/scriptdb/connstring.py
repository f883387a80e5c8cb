"""
Options strings and engine URLs.

An options string holds ``key=value`` pairs separated by semicolons, for
example ``Data Source=app.db;Foreign Keys=True;Flags=AllowNestedTransactions``.
Keys are matched without regard to case or spaces.
"""
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any

import sqlalchemy as sa

from scriptdb.exceptions import ValidationError

logger = logging.getLogger(__name__)

MEMORY = ':memory:'

_TRUE = {'true', 'yes', 'on', '1'}
_FALSE = {'false', 'no', 'off', '0'}

_KEYS = {
    'datasource': 'data_source',
    'readonly': 'read_only',
    'foreignkeys': 'foreign_keys',
    'failifmissing': 'fail_if_missing',
    'flags': 'flags',
    'journalmode': 'journal_mode',
    'synchronous': 'synchronous',
    'cachesize': 'cache_size',
    'defaulttimeout': 'timeout',
    'busytimeout': 'timeout',
    'version': None,
}

ALLOW_NESTED_TRANSACTIONS = 'allownestedtransactions'


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValidationError(f'Invalid boolean value for {key!r}: {value!r}')


@dataclass
class ConnectionString:
    """Parsed options string."""
    data_source: str | None = None
    read_only: bool = False
    foreign_keys: bool = False
    fail_if_missing: bool = False
    flags: set[str] = field(default_factory=set)
    journal_mode: str | None = None
    synchronous: str | None = None
    cache_size: int | None = None
    timeout: float | None = None

    @classmethod
    def parse(cls, text: str | None) -> 'ConnectionString':
        """Parse an options string. Unknown keys are logged and ignored."""
        result = cls()
        for pair in (text or '').split(';'):
            if not pair.strip():
                continue
            key, sep, value = pair.partition('=')
            if not sep:
                raise ValidationError(f'Invalid option {pair.strip()!r}, expected key=value')
            normalized = ''.join(key.split()).lower()
            if normalized not in _KEYS:
                logger.warning(f'Ignoring unknown option {key.strip()!r}')
                continue
            attr = _KEYS[normalized]
            if attr is None:
                continue
            result._set(attr, key.strip(), value.strip())
        return result

    def _set(self, attr: str, key: str, value: str) -> None:
        if attr in {'read_only', 'foreign_keys', 'fail_if_missing'}:
            setattr(self, attr, _parse_bool(key, value))
        elif attr == 'flags':
            for flag in value.replace('|', ',').split(','):
                if flag.strip():
                    self.flags.add(flag.strip().lower())
        elif attr == 'cache_size':
            self.cache_size = int(value)
        elif attr == 'timeout':
            self.timeout = float(value)
        else:
            setattr(self, attr, value)

    @property
    def allow_nested_transactions(self) -> bool:
        return ALLOW_NESTED_TRANSACTIONS in self.flags

    @property
    def is_memory(self) -> bool:
        return (self.data_source or '').lower() == MEMORY

    def pragmas(self) -> list[str]:
        """PRAGMA statements applied to a freshly opened connection."""
        statements = []
        if self.foreign_keys:
            statements.append('PRAGMA foreign_keys = ON')
        if self.journal_mode:
            statements.append(f'PRAGMA journal_mode = {self.journal_mode}')
        if self.synchronous:
            statements.append(f'PRAGMA synchronous = {self.synchronous}')
        if self.cache_size is not None:
            statements.append(f'PRAGMA cache_size = {self.cache_size}')
        return statements


def resolve_target(database: str | None) -> str | None:
    """Return an absolute path for a file target; memory and empty pass through."""
    if not database or database.lower() == MEMORY:
        return database or None
    return str(pathlib.Path(database).expanduser().absolute())


def create_database_file(path: str) -> None:
    """Create a new empty database file, replacing any existing file."""
    pathlib.Path(path).parent.mkdir(parents=True, exist_ok=True)
    pathlib.Path(path).write_bytes(b'')
    logger.debug(f'Created database file {path}')


def create_url(conn_string: ConnectionString,
               url_creator: Any = sa.URL.create) -> sa.URL:
    """Build the SQLAlchemy URL for the data source.

    Read-only and fail-if-missing opens go through an SQLite URI.
    """
    if not conn_string.data_source:
        raise ValidationError('Data Source cannot be empty. Use :memory: to open an in-memory database.')

    if conn_string.is_memory:
        return url_creator(drivername='sqlite', database=MEMORY)

    if conn_string.read_only or conn_string.fail_if_missing:
        mode = 'ro' if conn_string.read_only else 'rw'
        return url_creator(
            drivername='sqlite',
            database=f'file:{conn_string.data_source}',
            query={'mode': mode, 'uri': 'true'}
        )

    return url_creator(drivername='sqlite', database=conn_string.data_source)
