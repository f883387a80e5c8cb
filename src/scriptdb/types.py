"""
Type handling for parameters and result columns.

This module provides:
- TypeConverter: Convert loosely typed Python values to SQLite-compatible values
- coerce_value: Apply a declared parameter type to a value
- Column: Column metadata from cursor descriptions
- SQLite converters for declared DATE/DATETIME columns
"""
import datetime
import json
import logging
import math
import sqlite3
from decimal import Decimal
from typing import Any, Self

import dateutil.parser
import numpy as np
import pandas as pd
import pyarrow as pa

logger = logging.getLogger(__name__)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_pyarrow_value(value: Any) -> Any:
    """Convert PyArrow scalar to Python type."""
    if not value.is_valid:
        return None
    return value.as_py()


def _convert_numpy_value(val: Any) -> Any:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime().isoformat(sep=' ')

    if isinstance(val, np.bool_):
        return bool(val)

    return val.item()


def _isoformat(value: datetime.date | datetime.time) -> str:
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=' ')
    return value.isoformat()


class TypeConverter:
    """Universal type conversion for parameter values.

    Handles NumPy, pandas and PyArrow scalars plus the temporal types the
    sqlite3 driver no longer adapts by default.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a SQLite-compatible format."""
        if value is None:
            return None

        if isinstance(value, bool | int | str | bytes):
            return value

        if isinstance(value, float):
            return None if math.isnan(value) else float(value)

        if isinstance(value, pa.Scalar):
            return TypeConverter.convert_value(_convert_pyarrow_value(value))

        if isinstance(value, pd.Timestamp):
            return None if pd.isna(value) else _isoformat(value.to_pydatetime())

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, datetime.date | datetime.time):
            return _isoformat(value)

        if isinstance(value, Decimal):
            return str(value)

        if isinstance(value, bytearray | memoryview):
            return bytes(value)

        return value


def _to_bool(value: Any) -> int:
    if isinstance(value, str):
        return int(value.strip().lower() in {'1', 'true', 'yes', 'on'})
    return int(bool(value))


def _to_date(value: Any) -> str:
    if isinstance(value, str):
        value = dateutil.parser.isoparse(value)
    if isinstance(value, datetime.datetime):
        value = value.date()
    return value.isoformat()


def _to_datetime(value: Any) -> str:
    if isinstance(value, str):
        value = dateutil.parser.isoparse(value)
    elif type(value) is datetime.date:
        value = datetime.datetime.combine(value, datetime.time())
    return value.isoformat(sep=' ')


def _to_time(value: Any) -> str:
    if isinstance(value, str):
        return datetime.time.fromisoformat(value).isoformat()
    if isinstance(value, datetime.datetime):
        value = value.time()
    return value.isoformat()


def _to_text(value: Any) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value)
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def _to_blob(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def _to_numeric(value: Any) -> int | float:
    if isinstance(value, str):
        value = Decimal(value)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


sqlite_types: dict[str, type] = {
    'INTEGER': int,
    'REAL': float,
    'TEXT': str,
    'BLOB': bytes,
    'NUMERIC': float,
    'BOOLEAN': bool,
    'DATE': datetime.date,
    'DATETIME': datetime.datetime,
    'TIME': datetime.time,
}

_coercers = {
    'INTEGER': int,
    'REAL': float,
    'TEXT': _to_text,
    'BLOB': _to_blob,
    'NUMERIC': _to_numeric,
    'BOOLEAN': _to_bool,
    'DATE': _to_date,
    'DATETIME': _to_datetime,
    'TIME': _to_time,
}


def normalize_type_name(type_name: str | None) -> str | None:
    """Return the canonical declared type name or raise ValueError."""
    if type_name is None:
        return None
    name = str(type_name).strip().upper()
    if name not in sqlite_types:
        raise ValueError(f'Unsupported parameter type: {type_name!r}. Available: {list(sqlite_types)}')
    return name


def coerce_value(value: Any, type_name: str | None) -> Any:
    """Convert a value to the representation of its declared type.

    A value without a declared type goes through TypeConverter only.
    """
    value = TypeConverter.convert_value(value)
    if value is None or type_name is None:
        return value
    return _coercers[type_name](value)


class Column:
    """Result column metadata."""

    def __init__(self, name: str, type_code: Any = None,
                 python_type: type | None = None):
        self.name = name
        self.type_code = type_code
        self.python_type = python_type

    @classmethod
    def from_cursor_description(cls, description_item: Any) -> Self:
        """Create a Column from a cursor description item.

        sqlite3 reports only the column name; the remaining six entries are None.
        """
        type_code = description_item[1] if len(description_item) > 1 else None
        python_type = sqlite_types.get(str(type_code).upper()) if type_code else None
        return cls(description_item[0], type_code, python_type)

    def __repr__(self) -> str:
        return (f'Column(name={self.name!r}, type_code={self.type_code!r}, '
                f'python_type={self.python_type.__name__ if self.python_type else None})')

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type_code': self.type_code,
            'python_type': self.python_type.__name__ if self.python_type else None,
        }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        return [col.name for col in columns]

    @staticmethod
    def get_column_types_dict(columns: list[Self]) -> dict[str, dict]:
        return {col.name: col.to_dict() for col in columns}


def columns_from_cursor_description(cursor: Any) -> list[Column]:
    """Create Column objects from cursor description."""
    if cursor.description is None:
        return []
    return [Column.from_cursor_description(desc) for desc in cursor.description]


def convert_date(val: bytes) -> datetime.date | str:
    """Convert ISO 8601 date string to date object.

    SQLite stores any text in a DATE column; text that is not ISO 8601 is
    returned unchanged.
    """
    text = val.decode()
    try:
        return dateutil.parser.isoparse(text).date()
    except ValueError:
        return text


def convert_datetime(val: bytes) -> datetime.datetime | str:
    """Convert ISO 8601 datetime string to datetime object, or return the text."""
    text = val.decode()
    try:
        return dateutil.parser.isoparse(text)
    except ValueError:
        return text


def register_converters() -> None:
    """Register converters for declared DATE/DATETIME columns.

    Converters are global to the sqlite3 module and apply to connections
    opened with PARSE_DECLTYPES.
    """
    sqlite3.register_converter('date', convert_date)
    sqlite3.register_converter('datetime', convert_datetime)
