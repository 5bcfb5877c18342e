"""Tests for ParentTrackingObserver channel handling."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest
import redis.asyncio as redis

from tracking.observer import ParentTrackingObserver


def location_payload(ride_id="ride-1", lat=12.97, lng=77.59) -> str:
    return json.dumps(
        {"ride_id": ride_id, "lat": lat, "lng": lng, "timestamp": "2025-01-01T00:00:00+00:00"}
    )


class FakePubSub:
    """Delivers canned messages, then idles like an open subscription."""

    def __init__(self, messages: list[dict] | None = None, fail_subscribe: bool = False):
        self.messages = messages or []
        self.fail_subscribe = fail_subscribe
        self.channels: tuple[str, ...] = ()

    async def subscribe(self, *channels: str) -> None:
        if self.fail_subscribe:
            raise redis.ConnectionError("connection refused")
        self.channels = channels

    async def listen(self):
        for message in self.messages:
            yield message
        await asyncio.Event().wait()


@pytest.mark.unit
class TestHandleMessage:
    @pytest.fixture
    def observer(self):
        return ParentTrackingObserver(redis_client=Mock(), ride_id="ride-1")

    async def test_records_latest_location(self, observer):
        update = await observer.handle_message(location_payload(lat=12.98))

        assert update is not None
        assert observer.latest.lat == 12.98
        assert observer.latest.lng == 77.59
        assert observer.updates_received == 1

    async def test_accepts_bytes(self, observer):
        assert await observer.handle_message(location_payload().encode()) is not None

    async def test_invalid_json_ignored(self, observer):
        assert await observer.handle_message("{not json") is None
        assert observer.latest is None

    async def test_missing_fields_ignored(self, observer):
        assert await observer.handle_message(json.dumps({"ride_id": "ride-1"})) is None

    async def test_other_ride_ignored(self, observer):
        assert await observer.handle_message(location_payload(ride_id="ride-2")) is None
        assert observer.updates_received == 0

    async def test_sync_and_async_callbacks(self):
        sync_cb = Mock()
        async_cb = AsyncMock()

        for callback in (sync_cb, async_cb):
            observer = ParentTrackingObserver(Mock(), "ride-1", on_update=callback)
            await observer.handle_message(location_payload())

        sync_cb.assert_called_once()
        async_cb.assert_awaited_once()

    async def test_failing_callback_still_records(self):
        observer = ParentTrackingObserver(
            Mock(), "ride-1", on_update=Mock(side_effect=RuntimeError("ui gone"))
        )

        await observer.handle_message(location_payload())

        assert observer.latest is not None


@pytest.mark.unit
class TestSubscription:
    async def test_subscribes_to_ride_channel(self):
        pubsub = FakePubSub(
            [
                {"type": "subscribe", "data": 1},
                {"type": "message", "data": location_payload(lat=12.97)},
                {"type": "message", "data": location_payload(lat=12.99)},
            ]
        )
        client = Mock()
        client.pubsub.return_value = pubsub
        received = []
        observer = ParentTrackingObserver(client, "ride-1", on_update=received.append)

        await observer.start(timeout=1.0)
        await asyncio.sleep(0.01)
        await observer.stop()

        assert pubsub.channels == ("ride-ride-1",)
        assert [u.lat for u in received] == [12.97, 12.99]
        assert observer.latest.lat == 12.99
        assert observer.task is None

    async def test_reconnects_after_connection_error(self):
        client = Mock()
        client.pubsub.side_effect = [
            FakePubSub(fail_subscribe=True),
            FakePubSub([{"type": "message", "data": location_payload()}]),
        ]
        observer = ParentTrackingObserver(client, "ride-1", reconnect_delay=0.0)

        await observer.start(timeout=1.0)
        await asyncio.sleep(0.01)
        await observer.stop()

        assert client.pubsub.call_count == 2
        assert observer.updates_received == 1
