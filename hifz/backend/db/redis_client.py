import logging
from typing import AsyncIterator
import redis.asyncio as redis
from pydantic import ValidationError

from ..models.event_models import RoomEvent

logger = logging.getLogger(__name__)

CHANNEL = "hifz:realtime"


class RedisClient:
    """
    Redis client used as the relay between worker processes for realtime room events.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    # ===== Room Event Relay =====

    async def publish_room_event(self, event: RoomEvent) -> int:
        """Publishes a room event to every subscribed process. Returns the number of subscribers."""
        return await self._redis.publish(CHANNEL, event.model_dump_json())

    async def listen_room_events(self) -> AsyncIterator[RoomEvent]:
        """Yields room events published by any process, including this one, until cancelled."""
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(CHANNEL)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield RoomEvent.model_validate_json(message["data"])
                except ValidationError as e:
                    logger.warning(f"Ignoring malformed relay message on '{CHANNEL}': {e}")
        finally:
            await pubsub.unsubscribe(CHANNEL)
            await pubsub.aclose()

    async def ping(self) -> bool:
        return await self._redis.ping()
