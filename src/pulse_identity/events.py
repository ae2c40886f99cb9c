"""
pulse_identity/events.py — NATS Event Publisher (побочный канал).

Публикует события ядра в NATS:
    • ``pulse.profile.created``               — создан профиль по умолчанию
    • ``pulse.profile.provisioning_failed``   — профиль создать не удалось,
      сессия при этом продолжена

Graceful degradation: если NATS недоступен или выключен, событие
пропускается с записью в лог (основной процесс не ломается).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import nats
from nats.aio.client import Client as NATSClient
from nats.errors import Error as NATSError

logger = logging.getLogger(__name__)


class EventPublisher:
    """Публикация JSON-событий в NATS; одно соединение на процесс."""

    def __init__(self, nats_url: str | None = None):
        self.nats_url = nats_url
        self._nc: NATSClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.nats_url)

    async def connect(self) -> NATSClient | None:
        """Подключается к NATS (если ещё не подключён)."""
        if not self.enabled:
            return None
        if self._nc is not None and self._nc.is_connected:
            return self._nc
        try:
            self._nc = await nats.connect(self.nats_url)
            logger.info("NATS publisher connected: %s", self.nats_url)
            return self._nc
        except (NATSError, OSError) as exc:
            logger.warning("NATS connect failed (events will be skipped): %s", exc)
            self._nc = None
            return None

    async def disconnect(self) -> None:
        """Закрывает соединение с NATS."""
        if self._nc and self._nc.is_connected:
            await self._nc.drain()
            logger.info("NATS publisher disconnected")
        self._nc = None

    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        """
        Публикует JSON-событие в NATS.

        Args:
            subject: Тема сообщения (e.g. ``pulse.profile.created``).
            data: Payload (сериализуется в JSON).
        """
        nc = await self.connect()
        if nc is None:
            logger.debug("NATS unavailable, skipping event %s", subject)
            return
        try:
            payload = json.dumps(data, default=str).encode("utf-8")
            await nc.publish(subject, payload)
            logger.info("NATS event published: %s", subject)
        except (NATSError, OSError) as exc:
            logger.warning("NATS publish failed for %s: %s", subject, exc)

    # ── Удобные функции для домена ─────────────────────────────────────────

    async def emit_profile_created(self, user_id: str, role: str) -> None:
        """Событие: создан профиль по умолчанию."""
        await self.publish("pulse.profile.created", {
            "event": "profile.created",
            "user_id": user_id,
            "role": role,
        })

    async def emit_provisioning_failed(self, user_id: str, role: str, reason: str) -> None:
        """Событие: профиль не создан, сессия продолжена."""
        await self.publish("pulse.profile.provisioning_failed", {
            "event": "profile.provisioning_failed",
            "user_id": user_id,
            "role": role,
            "reason": reason,
        })
