"""Tests for the observer hub."""

import pytest

from eventboard.application.events import EventHub


class TestEventHub:
    @pytest.mark.anyio
    async def test_subscribe_and_publish(self):
        hub = EventHub()
        received = []
        hub.subscribe("install", lambda event, data: received.append((event, data)))

        await hub.publish("install", {"version": "v1"})
        await hub.publish("activate", {"version": "v1"})

        assert received == [("install", {"version": "v1"})]

    @pytest.mark.anyio
    async def test_async_listener_is_awaited(self):
        hub = EventHub()
        received = []

        async def listener(event, data):
            received.append(event)

        hub.subscribe("sync", listener)
        await hub.publish("sync")

        assert received == ["sync"]

    @pytest.mark.anyio
    async def test_unsubscribe(self):
        hub = EventHub()
        received = []
        unsubscribe = hub.subscribe("fetch", lambda event, data: received.append(event))

        unsubscribe()
        unsubscribe()
        await hub.publish("fetch")

        assert received == []
        assert hub.listener_count("fetch") == 0

    @pytest.mark.anyio
    async def test_wildcard_receives_everything(self):
        hub = EventHub()
        received = []
        hub.subscribe("*", lambda event, data: received.append(event))

        await hub.publish("push")
        await hub.publish("notification_click")

        assert received == ["push", "notification_click"]

    @pytest.mark.anyio
    async def test_failing_listener_does_not_break_publisher(self):
        hub = EventHub()
        received = []

        def broken(event, data):
            raise RuntimeError("listener bug")

        hub.subscribe("activate", broken)
        hub.subscribe("activate", lambda event, data: received.append(event))

        await hub.publish("activate")

        assert received == ["activate"]

    def test_listener_count_and_clear(self):
        hub = EventHub()
        hub.subscribe("a", lambda e, d: None)
        hub.subscribe("b", lambda e, d: None)
        assert hub.listener_count() == 2

        hub.clear()

        assert hub.listener_count() == 0
