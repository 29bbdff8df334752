"""
Plugin loading and shutdown sequencing.
"""

import inspect
from typing import Any, Callable, List, Mapping, Tuple

from shared.logging import get_logger

logger = get_logger("telemetry.lifecycle")

Plugin = Callable[[Any, Any], Any]
CloseHook = Callable[[Any], Any]


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _unwrap_plugin(plugin: Any) -> Plugin:
    """Accept a plugin callable or a module-like object/mapping exposing ``default``."""
    if isinstance(plugin, Mapping) and "default" in plugin:
        plugin = plugin["default"]
    elif not callable(plugin) and hasattr(plugin, "default"):
        plugin = plugin.default

    if not callable(plugin):
        raise TypeError(f"Plugin must be callable, got {type(plugin).__name__}")
    return plugin


class Lifecycle:
    """Queues plugins with ``use`` and loads them in order on ``ready``.

    A plugin is called as ``plugin(instance, options)`` and may be a coroutine
    function. ``options`` may be a callable receiving the instance.
    """

    def __init__(self):
        self._pending: List[Tuple[Any, Any]] = []
        self._close_hooks: List[CloseHook] = []
        self._closed = False

    def use(self, plugin: Any, options: Any = None) -> "Lifecycle":
        self._pending.append((plugin, options))
        return self

    def on_close(self, hook: CloseHook) -> "Lifecycle":
        self._close_hooks.append(hook)
        return self

    async def ready(self) -> "Lifecycle":
        """Load every plugin queued so far."""
        while self._pending:
            plugin, options = self._pending.pop(0)
            plugin = _unwrap_plugin(await maybe_await(plugin))
            if callable(options):
                options = options(self)

            await maybe_await(plugin(self, options))
            logger.debug("Plugin loaded", plugin=getattr(plugin, "__name__", repr(plugin)))

        return self

    async def start(self) -> "Lifecycle":
        return await self.ready()

    async def shutdown(self) -> "Lifecycle":
        """Run close hooks, most recently registered first."""
        if self._closed:
            return self
        self._closed = True

        while self._close_hooks:
            hook = self._close_hooks.pop()
            await maybe_await(hook(self))

        return self
