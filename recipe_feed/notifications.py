"""
Notification gateway and response channel.

The gateway accepts "show now" requests; the device bridge later reports
taps on the response channel. Both have an in-memory implementation for
tests/local runs and a Redis-backed implementation for production.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

NEW_RECIPE_EVENT = "new_recipe"


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    payload: dict

    def as_dict(self) -> dict:
        return {"title": self.title, "body": self.body, "data": dict(self.payload)}


def new_recipe_payload(recipe_id: str) -> dict:
    return {"type": NEW_RECIPE_EVENT, "recipeId": recipe_id}


class NotificationGateway(Protocol):
    """Host capability that displays a local notification immediately."""

    async def display(self, title: str, body: str, payload: dict) -> None:
        ...


class ResponseQueue(Protocol):
    """
    Channel carrying the payloads of tapped notifications.

    The device bridge that displays notifications calls ``publish`` when one is
    tapped; the daemon's response loop consumes it. Clients that report a tap
    over HTTP (``POST /notifications/response``) are routed synchronously and
    do not go through the channel.
    """

    def publish(self, payload: dict) -> None:
        ...

    def receive(self, *, block: bool = True, timeout: int | None = None) -> Optional[dict]:
        ...


@dataclass
class InMemoryNotificationGateway:
    """Records every display request."""

    sent: list[NotificationRequest] = field(default_factory=list)

    async def display(self, title: str, body: str, payload: dict) -> None:
        self.sent.append(NotificationRequest(title=title, body=body, payload=dict(payload)))

    def reset(self) -> None:
        self.sent.clear()


@dataclass
class RedisNotificationGateway:
    """Pushes display requests onto a Redis list consumed by the device bridge."""

    url: str
    notification_key: str = "recipe_feed:notifications"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _push(self, body: str) -> None:
        try:
            self.client.rpush(self.notification_key, body)
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and retry once.
            self.client = redis.Redis.from_url(self.url)
            self.client.rpush(self.notification_key, body)

    async def display(self, title: str, body: str, payload: dict) -> None:
        request = NotificationRequest(title=title, body=body, payload=payload)
        await asyncio.to_thread(self._push, json.dumps(request.as_dict()))


@dataclass
class InMemoryResponseQueue:
    """Simple FIFO channel for testing/dev."""

    items: list = field(default_factory=list)

    def publish(self, payload: dict) -> None:
        self.items.append(payload)

    def receive(self, *, block: bool = True, timeout: int | None = None) -> Optional[dict]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisResponseQueue:
    """Redis-backed response channel using list push/pop operations."""

    url: str
    response_key: str = "recipe_feed:responses"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def publish(self, payload: dict) -> None:
        body = json.dumps(payload)
        try:
            self.client.rpush(self.response_key, body)
        except redis_exceptions.ConnectionError:
            self.client = redis.Redis.from_url(self.url)
            self.client.rpush(self.response_key, body)

    def receive(self, *, block: bool = True, timeout: int | None = None) -> Optional[dict]:
        try:
            if block:
                result = self.client.blpop(self.response_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, raw = result
            else:
                raw = self.client.lpop(self.response_key)
                if raw is None:
                    return None
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Treat as empty channel
            # and allow the dispatch loop to retry.
            self.client = redis.Redis.from_url(self.url)
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Dropping undecodable notification response: %r", raw)
            return None
