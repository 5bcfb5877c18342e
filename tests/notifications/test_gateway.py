from unittest.mock import AsyncMock

import pytest

from notifications.gateway import CompositeNotificationGateway, LoggingNotificationGateway
from tracking.ports import NotificationKind


@pytest.mark.unit
class TestCompositeNotificationGateway:
    async def test_fans_out_to_every_gateway(self):
        first, second = LoggingNotificationGateway(), LoggingNotificationGateway()
        composite = CompositeNotificationGateway(first, second)

        await composite.notify(NotificationKind.MIDWAY, {"ride_id": "r1"})

        assert first.sent == [(NotificationKind.MIDWAY, {"ride_id": "r1"})]
        assert second.sent == first.sent

    async def test_failing_gateway_does_not_block_others(self):
        broken = AsyncMock()
        broken.notify.side_effect = RuntimeError("down")
        healthy = LoggingNotificationGateway()
        composite = CompositeNotificationGateway(broken, healthy)

        await composite.notify(NotificationKind.SOS, {"ride_id": "r1"})

        broken.notify.assert_awaited_once()
        assert healthy.kinds() == [NotificationKind.SOS]

    async def test_empty_composite(self):
        await CompositeNotificationGateway().notify(NotificationKind.STARTED, {})


@pytest.mark.unit
class TestLoggingNotificationGateway:
    async def test_payload_is_copied(self):
        gateway = LoggingNotificationGateway()
        payload = {"ride_id": "r1"}

        await gateway.notify(NotificationKind.STARTED, payload)
        payload["ride_id"] = "changed"

        assert gateway.sent[0][1] == {"ride_id": "r1"}
