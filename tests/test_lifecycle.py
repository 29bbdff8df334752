"""
Unit tests for plugin loading and shutdown hooks.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from telemetry.lifecycle import Lifecycle, maybe_await


class TestLifecycle:
    """Test cases for Lifecycle."""

    @pytest.fixture
    def lifecycle(self):
        """Create Lifecycle instance."""
        return Lifecycle()

    @pytest.mark.asyncio
    async def test_plugins_load_in_order(self, lifecycle):
        """Test that plugins load once, in registration order."""
        loaded = []
        lifecycle.use(lambda instance, options: loaded.append(("first", options)), 1)
        lifecycle.use(lambda instance, options: loaded.append(("second", options)), 2)

        assert loaded == []

        await lifecycle.ready()
        await lifecycle.ready()

        assert loaded == [("first", 1), ("second", 2)]

    @pytest.mark.asyncio
    async def test_awaitable_plugin_mapping(self, lifecycle):
        """Test a plugin resolved from an awaitable module-like mapping."""
        plugin = MagicMock(return_value=None)
        options = {}

        async def load():
            return {"default": plugin}

        lifecycle.use(load(), options)
        await lifecycle.ready()

        plugin.assert_called_once_with(lifecycle, options)

    @pytest.mark.asyncio
    async def test_awaitable_plugin(self, lifecycle):
        """Test a plugin resolved from an awaitable."""
        plugin = MagicMock(return_value=None)

        async def load():
            return plugin

        lifecycle.use(load(), {})
        await lifecycle.ready()

        plugin.assert_called_once()

    @pytest.mark.asyncio
    async def test_default_attribute(self, lifecycle):
        """Test a module-like object exposing default."""
        plugin = AsyncMock(return_value=None)

        lifecycle.use(SimpleNamespace(default=plugin), {})
        await lifecycle.ready()

        plugin.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_callable_options(self, lifecycle):
        """Test that callable options receive the instance."""
        plugin = MagicMock(return_value=None)

        lifecycle.use(plugin, lambda instance: {"instance": instance})
        await lifecycle.start()

        plugin.assert_called_once_with(lifecycle, {"instance": lifecycle})

    @pytest.mark.asyncio
    async def test_invalid_plugin(self, lifecycle):
        """Test that a non-callable plugin fails loading."""
        lifecycle.use({"name": "not a plugin"})

        with pytest.raises(TypeError):
            await lifecycle.ready()

    @pytest.mark.asyncio
    async def test_plugin_errors_propagate(self, lifecycle):
        """Test that a failing plugin fails ready."""
        def plugin(instance, options):
            raise RuntimeError("boom")

        lifecycle.use(plugin)

        with pytest.raises(RuntimeError, match="boom"):
            await lifecycle.ready()

    @pytest.mark.asyncio
    async def test_close_hooks_run_in_reverse_order_once(self, lifecycle):
        """Test shutdown hook ordering."""
        closed = []

        async def close_async(instance):
            closed.append("async")

        lifecycle.on_close(lambda instance: closed.append("first"))
        lifecycle.on_close(close_async)

        await lifecycle.shutdown()
        await lifecycle.shutdown()

        assert closed == ["async", "first"]


class TestMaybeAwait:
    """Test cases for maybe_await."""

    @pytest.mark.asyncio
    async def test_plain_value(self):
        """Test that plain values pass through."""
        assert await maybe_await(42) == 42

    @pytest.mark.asyncio
    async def test_awaitable(self):
        """Test that awaitables are awaited."""
        async def value():
            return 42

        assert await maybe_await(value()) == 42
