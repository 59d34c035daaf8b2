# ward_planner/sync/notifications.py
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..storage.redis_base import change_channel_name, create_redis_client
from ..tenants.models import TenantDocument

logger = logging.getLogger(__name__)

OnChange = Callable[[TenantDocument], None]
Unsubscribe = Callable[[], Awaitable[None]]


class AbstractChangeChannel(ABC):
    """
    Delivers "the plan of ward X was replaced" notifications.

    Subscribers receive the full new document. A channel may be a no-op, in
    which case clients only see remote changes when they fetch again.
    """

    async def initialize(self) -> None:
        """Prepare connections. No-op by default."""

    async def teardown(self) -> None:
        """Release connections. No-op by default."""

    @abstractmethod
    async def publish(self, tenant_id: str, document: TenantDocument) -> None:
        """Announce a new version of a ward's plan."""
        pass

    @abstractmethod
    async def subscribe(self, tenant_id: str, on_change: OnChange) -> Unsubscribe:
        """
        Start receiving changes for a ward.

        Returns:
            An async callable that stops the subscription
        """
        pass


class NullChangeChannel(AbstractChangeChannel):
    """Poll-only deployments: nothing is pushed to anyone."""

    async def publish(self, tenant_id: str, document: TenantDocument) -> None:
        return None

    async def subscribe(self, tenant_id: str, on_change: OnChange) -> Unsubscribe:
        async def _unsubscribe() -> None:
            return None
        return _unsubscribe


class LocalChangeChannel(AbstractChangeChannel):
    """In-process fan-out for a single server process (used with SQLite)."""

    def __init__(self):
        self._subscribers: Dict[str, List[OnChange]] = {}

    def subscriber_count(self, tenant_id: str) -> int:
        return len(self._subscribers.get(tenant_id, []))

    async def publish(self, tenant_id: str, document: TenantDocument) -> None:
        for callback in list(self._subscribers.get(tenant_id, [])):
            try:
                # Each subscriber gets its own copy to mutate
                callback(document.snapshot())
            except Exception as e:
                logger.error(f"Change subscriber for ward '{tenant_id}' failed: {e}", exc_info=True)

    async def subscribe(self, tenant_id: str, on_change: OnChange) -> Unsubscribe:
        self._subscribers.setdefault(tenant_id, []).append(on_change)
        logger.debug(f"LocalChangeChannel: subscribed to ward '{tenant_id}'.")

        async def _unsubscribe() -> None:
            callbacks = self._subscribers.get(tenant_id, [])
            if on_change in callbacks:
                callbacks.remove(on_change)
            if not callbacks:
                self._subscribers.pop(tenant_id, None)
            logger.debug(f"LocalChangeChannel: unsubscribed from ward '{tenant_id}'.")

        return _unsubscribe


class RedisChangeChannel(AbstractChangeChannel):
    """Redis pub/sub channel, one channel per ward, JSON document payloads."""

    def __init__(self, redis_client: Optional[aioredis.Redis] = None):
        self._redis_client = redis_client
        self._owns_client = redis_client is None

    async def initialize(self) -> None:
        if self._redis_client is None:
            self._redis_client = await create_redis_client()
        logger.info("RedisChangeChannel initialized.")

    async def teardown(self) -> None:
        if self._owns_client and self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None
        logger.info("RedisChangeChannel teardown complete.")

    def _client(self) -> aioredis.Redis:
        if self._redis_client is None:
            raise RuntimeError("RedisChangeChannel not initialized. Call initialize() first.")
        return self._redis_client

    async def publish(self, tenant_id: str, document: TenantDocument) -> None:
        payload = json.dumps(document.to_wire())
        receivers = await self._client().publish(change_channel_name(tenant_id), payload)
        logger.debug(f"Published plan change for ward '{tenant_id}' to {receivers} receiver(s).")

    async def subscribe(self, tenant_id: str, on_change: OnChange) -> Unsubscribe:
        channel = change_channel_name(tenant_id)
        pubsub = self._client().pubsub()
        await pubsub.subscribe(channel)
        listener = asyncio.create_task(self._listen(tenant_id, pubsub, on_change))
        logger.info(f"RedisChangeChannel: listening on '{channel}'.")

        async def _unsubscribe() -> None:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Listener for '{channel}' ended with an error: {e}", exc_info=True)
            finally:
                # The connection is released even if the listener already died
                try:
                    await pubsub.unsubscribe(channel)
                except RedisError as e:
                    logger.warning(f"Could not unsubscribe from '{channel}': {e}")
                await pubsub.aclose()
            logger.info(f"RedisChangeChannel: stopped listening on '{channel}'.")

        return _unsubscribe

    async def _listen(self, tenant_id: str, pubsub, on_change: OnChange) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    document = TenantDocument.model_validate(json.loads(message["data"]))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.error(f"Ignoring malformed change message for ward '{tenant_id}': {e}")
                    continue
                try:
                    on_change(document)
                except Exception as e:
                    logger.error(f"Change subscriber for ward '{tenant_id}' failed: {e}", exc_info=True)
        except RedisError as e:
            logger.error(f"Live updates for ward '{tenant_id}' stopped: {e}")
