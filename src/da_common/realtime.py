"""Realtime notifier — publishes domain events on a Redis pub/sub channel.

The socket gateway in front of the dashboards subscribes to
settings.REALTIME_CHANNEL and forwards each message. Publishing is
best-effort: a Redis outage is logged and never fails the business call
that produced the event.
"""

import json
import logging

from redis.exceptions import RedisError

from config.settings import settings
from src.da_common.events import DomainEvent
from src.da_common.redis_client import get_redis

logger = logging.getLogger(__name__)


class RedisEventPublisher:
    def __init__(self, channel: str | None = None) -> None:
        self._channel = channel or settings.REALTIME_CHANNEL

    async def publish(self, event: DomainEvent) -> None:
        payload = json.dumps(event.to_message())
        try:
            redis = await get_redis()
            receivers = await redis.publish(self._channel, payload)
        except (RedisError, OSError):
            logger.warning("Realtime publish failed: event=%s", event.name, exc_info=True)
            return
        logger.debug("Published %s to %s (%d receivers)", event.name, self._channel, receivers)
