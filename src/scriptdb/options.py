from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from typing import Any

import pandas as pd
import pyarrow as pa

from scriptdb.connstring import MEMORY, ConnectionString, resolve_target
from scriptdb.exceptions import ValidationError
from scriptdb.results import Table
from scriptdb.types import Column

__all__ = [
    'DatabaseOptions',
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
]


def iterdict_data_loader(data, columns, **kwargs) -> Table:
    """Default loader: rows as dictionaries with the column metadata attached.
    """
    return Table(data, columns)


def _empty_dataframe(columns) -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=Column.get_names(columns))
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Columns are kept as object dtype so NULL stays None instead of NaN.
    """
    if not data:
        return _empty_dataframe(columns)

    df = pd.DataFrame(list(data), columns=Column.get_names(columns), dtype=object)
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(columns)

    column_names = Column.get_names(columns)
    columns_data = [[row[col] for row in data] for col in column_names]
    df = pa.table(columns_data, names=column_names).to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


@dataclass
class DatabaseOptions:
    """Options for opening a connection handle.

    - database: file path, ``:memory:`` or empty
    - options: options string, see ``scriptdb.connstring``
    - create_file: create a new empty database file before opening
    - transaction: begin the handle-level transaction right after opening
    - allow_nested_transactions: transactions inside transactions become savepoints
    - foreign_keys: enforce foreign key constraints
    - read_only: open the database read-only
    - timeout: seconds to wait on a locked database
    - variable: name the handle is published under by ``connect(namespace=...)``
    - data_loader: callable turning table rows into the result of ``select()``

    If database and options are both empty, ``:memory:`` is used.
    """
    database: str | None = None
    options: str | None = None
    create_file: bool = False
    transaction: bool = False
    allow_nested_transactions: bool = False
    foreign_keys: bool = False
    read_only: bool = False
    timeout: float | None = None
    variable: str = 'db'
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if not self.database and not self.options:
            self.database = MEMORY
        self.database = resolve_target(self.database)

        conn_string = ConnectionString.parse(self.options)
        self.allow_nested_transactions = self.allow_nested_transactions or conn_string.allow_nested_transactions
        self.foreign_keys = self.foreign_keys or conn_string.foreign_keys
        self.read_only = self.read_only or conn_string.read_only
        if self.timeout is None:
            self.timeout = conn_string.timeout

        if not self.variable:
            raise ValidationError('variable name cannot be empty')
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader

    @property
    def is_memory(self) -> bool:
        return (self.database or '').lower() == MEMORY

    def connection_string(self) -> ConnectionString:
        """Options string merged with the explicit flags; the target wins as data source."""
        conn_string = ConnectionString.parse(self.options)
        if self.database:
            conn_string.data_source = self.database
        conn_string.foreign_keys = self.foreign_keys
        conn_string.read_only = self.read_only
        conn_string.timeout = self.timeout
        if self.allow_nested_transactions:
            conn_string.flags.add('allownestedtransactions')
        return conn_string

    @classmethod
    def load(cls, config: 'DatabaseOptions | Mapping[str, Any] | str | None' = None,
             **kw: Any) -> 'DatabaseOptions':
        """Build options from an instance, a mapping of fields or a target string.

        Keyword arguments override the values from ``config``; ``options=`` is
        the options string field, like every other keyword.
        """
        if isinstance(config, cls) and not kw:
            return config
        if isinstance(config, cls):
            values = {f.name: getattr(config, f.name) for f in fields(cls)}
        elif isinstance(config, Mapping):
            values = dict(config)
        elif config is None:
            values = {}
        else:
            values = {'database': str(config)}
        values.update(kw)

        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValidationError(f'Unknown option(s): {sorted(unknown)}')
        return cls(**values)
