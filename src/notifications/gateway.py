"""Notification gateways that compose or observe other gateways."""

import asyncio
import logging
from typing import Any

from tracking.ports import NotificationGateway, NotificationKind

logger = logging.getLogger(__name__)


class CompositeNotificationGateway:
    """Fans each notification out to several gateways concurrently."""

    def __init__(self, *gateways: NotificationGateway):
        self.gateways = list(gateways)

    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        results = await asyncio.gather(
            *(gateway.notify(kind, payload) for gateway in self.gateways),
            return_exceptions=True,
        )
        for gateway, result in zip(self.gateways, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    f"{type(gateway).__name__} failed on {kind.value} notification: {result}"
                )


class LoggingNotificationGateway:
    """Records notifications in the log and in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[NotificationKind, dict[str, Any]]] = []

    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self.sent.append((kind, dict(payload)))
        logger.info(f"Notification {kind.value}: {payload}")

    def kinds(self) -> list[NotificationKind]:
        return [kind for kind, _ in self.sent]
