"""Best-effort outbox for non-critical side effects (audit fan-out, webhooks).

Contract of notify_best_effort: MAY SILENTLY FAIL. Failures are logged and
never propagated, so they can never roll back or block a ledger mutation.
Delivery is a Redis Pub/Sub publish on "<prefix>:<ledger_id>".
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from redis.exceptions import RedisError

from config.settings import settings
from src.lc_common.datetime_utils import utc_now
from src.lc_common.redis_client import get_redis

logger = logging.getLogger(__name__)


@dataclass
class LedgerEvent:
    ledger_id: str
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=utc_now)

    def to_json(self) -> str:
        return json.dumps(
            {
                "ledger_id": self.ledger_id,
                "event_type": self.event_type,
                "payload": self.payload,
                "occurred_at": self.occurred_at.isoformat(),
            },
            default=str,
        )


class EventOutbox(Protocol):
    async def notify_best_effort(self, event: LedgerEvent) -> None: ...


class RedisEventOutbox:
    async def notify_best_effort(self, event: LedgerEvent) -> None:
        channel = f"{settings.EVENTS_CHANNEL_PREFIX}:{event.ledger_id}"
        try:
            redis = await get_redis()
            await redis.publish(channel, event.to_json())
        except (RedisError, OSError) as exc:
            logger.warning(
                "Best-effort event dropped: type=%s ledger=%s error=%s",
                event.event_type,
                event.ledger_id,
                exc,
            )
