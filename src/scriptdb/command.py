"""
Raw commands: command text with its own bound parameters.
"""
import logging
from collections.abc import Iterable
from typing import Any, Self

from scriptdb.exceptions import InvalidOperationError
from scriptdb.parameters import Parameter, ParameterSet

logger = logging.getLogger(__name__)


class Command:
    """Reusable command bound to one connection handle.

    Parameters keep their identity between executions, so a command can be
    executed again after changing ``command.parameters['name'].value``.
    """

    def __init__(self, cn: Any, text: str, parameters: Iterable[Parameter] = ()) -> None:
        self.cn = cn
        self.text = text
        self.parameters = ParameterSet(parameters)
        self._cursor = None
        self._disposed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f'Command({self.text!r}, parameters={self.parameters.names})'

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def cursor(self) -> Any:
        """Open a fresh engine cursor for one execution of this command."""
        if self._disposed:
            raise InvalidOperationError('Cannot execute a disposed command.')
        self.close_cursor()
        self._cursor = self.cn.cursor()
        return self._cursor

    def close_cursor(self) -> None:
        if self._cursor is not None:
            cursor, self._cursor = self._cursor, None
            cursor.close()

    def dispose(self) -> None:
        """Close any open cursor. Safe to call repeatedly."""
        if self._disposed:
            return
        self._disposed = True
        self.close_cursor()
        logger.debug(f'Disposed command: {self.text[:60]!r}')
