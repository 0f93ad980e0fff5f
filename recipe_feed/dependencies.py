"""
Dependency wiring for the FastAPI app and the daemon.
"""

from __future__ import annotations

import time

from recipe_feed.config import get_settings
from recipe_feed.notifications import (
    InMemoryNotificationGateway,
    InMemoryResponseQueue,
    NotificationGateway,
    RedisNotificationGateway,
    RedisResponseQueue,
    ResponseQueue,
)
from recipe_feed.recipes import RecipeService
from recipe_feed.state import FeedCoordinator
from recipe_feed.storage import CosStorageClient, InMemoryStorageClient, StorageClient
from recipe_feed.store import InMemoryRecipeStore, RecipeStore, SqlRecipeStore

_store: RecipeStore | None = None
_storage_client: StorageClient | None = None
_gateway: NotificationGateway | None = None
_response_queue: ResponseQueue | None = None
_coordinator: FeedCoordinator | None = None


def get_store() -> RecipeStore:
    """
    Return a singleton store so session and rows persist across requests.
    """
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _store = InMemoryRecipeStore()
    else:
        _store = SqlRecipeStore(
            settings.database_url, session_user_id=settings.session_user_id
        )
    return _store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_notification_gateway() -> NotificationGateway:
    global _gateway
    if _gateway:
        return _gateway

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _gateway = RedisNotificationGateway(
            url=settings.redis_url,
            notification_key=settings.redis_notification_key,
        )
    else:
        _gateway = InMemoryNotificationGateway()
    return _gateway


def get_response_queue() -> ResponseQueue:
    global _response_queue
    if _response_queue:
        return _response_queue

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _response_queue = RedisResponseQueue(
            url=settings.redis_url,
            response_key=settings.redis_response_key,
        )
    else:
        _response_queue = InMemoryResponseQueue()
    return _response_queue


def get_coordinator() -> FeedCoordinator:
    """
    Return the single owner of the feed state.
    """
    global _coordinator
    if _coordinator:
        return _coordinator
    settings = get_settings()
    _coordinator = FeedCoordinator(
        get_store(),
        get_notification_gateway(),
        watermark=time.time() - settings.announce_since_seconds,
    )
    return _coordinator


def get_recipe_service() -> RecipeService:
    return RecipeService(get_store(), get_storage_client())


def reset_dependencies() -> None:
    """Drop cached singletons (useful in tests)."""
    global _store, _storage_client, _gateway, _response_queue, _coordinator
    _store = None
    _storage_client = None
    _gateway = None
    _response_queue = None
    _coordinator = None
