"""
Result materialization.

Turns an executed cursor into one of the result shapes:
table, row sequence, column, lookup or scalar. The engine's null marker
is returned as ``None`` in every shape.
"""
import logging
from collections.abc import Callable, Iterator
from typing import Any

from scriptdb.exceptions import ValidationError
from scriptdb.types import Column, columns_from_cursor_description

logger = logging.getLogger(__name__)

__all__ = [
    'Table',
    'row_to_dict',
    'load_table',
    'iter_rows',
    'load_column',
    'load_lookup',
    'load_scalar',
]


class Table(list):
    """Materialized rows plus the column metadata of the result.
    """

    def __init__(self, rows=(), columns: list[Column] | None = None) -> None:
        super().__init__(rows)
        self.columns = columns or []

    @property
    def column_names(self) -> list[str]:
        return Column.get_names(self.columns)


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an engine row to a mapping in column order."""
    if hasattr(row, 'keys') and callable(row.keys):
        return {key: row[key] for key in row.keys()}  # noqa: SIM118
    return dict(row)


def load_table(cursor: Any, data_loader: Callable[..., Any], **kwargs: Any) -> Any:
    """Read all rows and hand them to the data loader with the column metadata.

    Columns are captured from the cursor before the first row is read.
    """
    columns = columns_from_cursor_description(cursor)
    data = [row_to_dict(row) for row in cursor]
    logger.debug(f'Table result with {len(columns)} column(s) and {len(data)} row(s)')
    return data_loader(data, columns, **kwargs)


def iter_rows(cursor: Any) -> Iterator[dict[str, Any]]:
    """Yield rows as mappings, one at a time."""
    for row in cursor:
        yield row_to_dict(row)


def load_column(cursor: Any) -> list[Any]:
    """Return the first projected field of every row."""
    return [row[0] for row in cursor]


def load_lookup(cursor: Any) -> dict[Any, Any]:
    """Map the first field of every row to its second field.

    Later rows overwrite earlier ones with the same key. A NULL first field
    becomes the ``None`` key.
    """
    arity = len(cursor.description or ())
    if arity < 2:
        raise ValidationError(f'Lookup requires at least two result columns, got {arity}.')
    lookup: dict[Any, Any] = {}
    for row in cursor:
        lookup[row[0]] = row[1]
    return lookup


def load_scalar(cursor: Any) -> Any:
    """Return the first field of the first row, or None when there are no rows."""
    if cursor.description is None:
        return None
    row = cursor.fetchone()
    if row is None:
        return None
    return row[0]
