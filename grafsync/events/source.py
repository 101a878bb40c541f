"""Event source interface shared by the ConfigMap watcher and the stream subscriber."""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from grafsync.domain.config_object import ConfigObject

ObjectHandler = Callable[[ConfigObject], Awaitable[Any]]


class EventSource(Protocol):
    """
    Delivers observed ConfigObjects to a handler, one at a time.

    consume() awaits the handler for each object before taking the next, and
    returns once stop() has been called and the in-flight call finished.
    """

    async def consume(self, handler: ObjectHandler) -> None: ...

    async def stop(self) -> None: ...
