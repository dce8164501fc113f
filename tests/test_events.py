"""Tests for EventEmitter."""
import pytest

from deployer.utils.events import EventEmitter


class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        emitter = EventEmitter()
        seen = []

        async def async_listener(value):
            seen.append(("async", value))

        emitter.on("tick", lambda value: seen.append(("sync", value)))
        emitter.on("tick", async_listener)

        await emitter.emit("tick", 3)

        assert seen == [("sync", 3), ("async", 3)]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self):
        emitter = EventEmitter()
        seen = []

        def broken(value):
            raise RuntimeError("listener bug")

        emitter.on("tick", broken)
        emitter.on("tick", seen.append)

        await emitter.emit("tick", 1)

        assert seen == [1]

    @pytest.mark.asyncio
    async def test_off_and_duplicates(self):
        emitter = EventEmitter()
        seen = []
        emitter.on("tick", seen.append)
        emitter.on("tick", seen.append)

        await emitter.emit("tick", 1)
        emitter.off("tick", seen.append)
        await emitter.emit("tick", 2)
        await emitter.emit("unknown", 3)

        assert seen == [1]
