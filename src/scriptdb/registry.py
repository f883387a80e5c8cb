"""
Deferred disposal of resources owned by a connection handle.
"""
import logging
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def release(resource: Any) -> None:
    """Release a resource through ``dispose()`` or, failing that, ``close()``.
    """
    if hasattr(resource, 'dispose'):
        resource.dispose()
    elif hasattr(resource, 'close'):
        resource.close()
    else:
        raise TypeError(f'{type(resource).__name__} has neither dispose() nor close()')


class ResourceRegistry:
    """Tracks resources whose disposal is deferred until the handle is disposed.

    The most recently registered resource is kept at the front. Every resource
    is released exactly once even if releasing an earlier one fails; the first
    failure is raised after the sweep.
    """

    def __init__(self) -> None:
        self._resources: list[Any] = []

    def register(self, resource: T) -> T:
        """Track ``resource`` and return it unchanged."""
        self._resources.insert(0, resource)
        logger.debug(f'Registered {type(resource).__name__} for deferred disposal')
        return resource

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, resource: object) -> bool:
        return any(r is resource for r in self._resources)

    def dispose_all(self) -> None:
        """Release every tracked resource and clear the registry."""
        resources, self._resources = self._resources, []
        error = None
        for resource in resources:
            try:
                release(resource)
            except Exception as exc:
                logger.error(f'Error disposing {type(resource).__name__}: {exc}')
                if error is None:
                    error = exc
        if resources:
            logger.debug(f'Disposed {len(resources)} registered resource(s)')
        if error is not None:
            raise error
