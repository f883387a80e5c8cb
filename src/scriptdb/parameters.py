"""
Parameter binding.

Call-site arguments are loosely typed. Each one resolves to exactly one of
three kinds before it reaches the engine:

- a mapping, expanded into one named parameter per entry
- a ``Parameter``, attached verbatim with its name and declared type
- anything else, bound positionally under the names "1", "2", ...

Named mappings and typed parameters never consume a positional slot.
"""
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from scriptdb.types import coerce_value, normalize_type_name

logger = logging.getLogger(__name__)

__all__ = [
    'Parameter',
    'ParameterSet',
    'bind_parameters',
    'resolve_argument',
]

NAMED_PREFIXES = (':', '@', '$')


@dataclass
class Parameter:
    """Typed engine parameter.

    The declared ``type`` is a SQLite type name (see ``types.sqlite_types``)
    or None for no coercion. ``value`` may be reassigned between executions
    of a raw command.
    """
    name: str
    type: str | None = None
    value: Any = None
    positional: bool = False

    def __post_init__(self):
        self.name = str(self.name).lstrip(''.join(NAMED_PREFIXES))
        self.type = normalize_type_name(self.type)

    @property
    def bound_value(self) -> Any:
        """Value converted for the engine according to the declared type."""
        return coerce_value(self.value, self.type)


class ParameterSet:
    """Ordered parameters of a command, addressable by position or name.
    """

    def __init__(self, parameters: Iterable[Parameter] = ()) -> None:
        self._parameters: list[Parameter] = []
        for parameter in parameters:
            self.add(parameter)

    def add(self, parameter: Parameter) -> Parameter:
        if not isinstance(parameter, Parameter):
            raise TypeError(f'Expected Parameter, got {type(parameter).__name__}')
        self._parameters.append(parameter)
        return parameter

    def __getitem__(self, key: int | str) -> Parameter:
        if isinstance(key, int):
            return self._parameters[key]
        name = str(key).lstrip(''.join(NAMED_PREFIXES))
        for parameter in self._parameters:
            if parameter.name == name:
                return parameter
        raise KeyError(key)

    def __contains__(self, name: object) -> bool:
        name = str(name).lstrip(''.join(NAMED_PREFIXES))
        return any(p.name == name for p in self._parameters)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def __repr__(self) -> str:
        return f'ParameterSet({self._parameters!r})'

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._parameters]

    def to_engine(self) -> tuple[Any, ...] | dict[str, Any]:
        """Return the form the sqlite3 driver binds.

        An all-positional set is passed as a sequence, which binds both ``?``
        and ``?NNN`` placeholders. Any named parameter switches to a mapping,
        where positional entries are reachable as ``:1``, ``@1`` or ``$1``.
        ``?NNN`` cannot be mixed with named placeholders: SQLite numbers
        named placeholders too, so ``?1`` is the first placeholder of any kind.
        """
        if all(p.positional for p in self._parameters):
            return tuple(p.bound_value for p in self._parameters)
        return {p.name: p.bound_value for p in self._parameters}


def resolve_argument(argument: Any, position: int) -> tuple[list[Parameter], int]:
    """Resolve one call-site argument into parameters.

    Returns the parameters and the next positional counter value.
    """
    if isinstance(argument, Mapping):
        return [Parameter(key, value=value) for key, value in argument.items()], position
    if isinstance(argument, Parameter):
        return [argument], position
    return [Parameter(str(position), value=argument, positional=True)], position + 1


def bind_parameters(parameters: ParameterSet, arguments: Iterable[Any] | None) -> ParameterSet:
    """Bind call-site arguments onto a command's parameter set.

    ``None`` in place of the argument list stands for a single null argument
    and binds one parameter named "1" with a null value. An empty list binds
    nothing.
    """
    if arguments is None:
        arguments = [None]

    position = 1
    for argument in arguments:
        resolved, position = resolve_argument(argument, position)
        for parameter in resolved:
            parameters.add(parameter)

    logger.debug(f'Bound {len(parameters)} parameter(s): {parameters.names}')
    return parameters
