"""Shutdown registry for long-lived resources.

Every backend a ToolSet starts is registered here so that it is asked to shut
down exactly once, regardless of how many of its siblings fail to.
"""

import logging
import threading
from typing import Protocol, runtime_checkable

import anyio

from tooldeck.errors import OperationalError, join_errors

logger = logging.getLogger(__name__)


@runtime_checkable
class Component(Protocol):
    """Anything with a description and a shutdown operation."""

    def describe(self) -> str: ...

    async def shutdown(self) -> None: ...


class ComponentContainer:
    """Append-only registry of components, shut down together.

    Registration and shutdown are guarded by a single lock. Shutdown takes
    the registered components and empties the registry under the lock, so a
    second shutdown is a no-op and a component is never shut down twice.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._components: list[Component] = []

    def describe(self) -> str:
        return self.name

    def register(self, component: Component) -> None:
        with self._lock:
            self._components.append(component)
        logger.debug(f"{self.name}: registered {component.describe()}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._components)

    async def shutdown(self) -> None:
        """Shut down every registered component.

        The components are released even if the caller is cancelled part
        way through, since they have already left the registry.

        Raises:
            ExceptionGroup: Every component failure, each wrapped in an
                OperationalError naming the component
        """
        with self._lock:
            components, self._components = self._components, []

        problems: list[Exception] = []
        with anyio.CancelScope(shield=True):
            for component in components:
                try:
                    await component.shutdown()
                except Exception as e:
                    logger.error(f"{self.name}: failed to shutdown {component.describe()}: {e}")
                    problems.append(
                        OperationalError(f"failed to shutdown {component.describe()}", e)
                    )

        if (problem := join_errors(f"{self.name}: shutdown", problems)) is not None:
            raise problem
