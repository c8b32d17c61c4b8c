import logging
import redis
from .events import Event

logger = logging.getLogger(__name__)


def channel_for(tournament_id: str) -> str:
    return f"tournament:{tournament_id}:events"


def event_log_key(tournament_id: str) -> str:
    return f"tournament:{tournament_id}:event_log"


class EventPublisher:
    """
    Publishes live match events to Redis.

    Each tournament has one pub/sub channel plus a capped list holding the
    most recent events so late subscribers can catch up.
    """

    EVENT_LOG_SIZE = 1000

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    @classmethod
    def from_url(cls, redis_url: str) -> "EventPublisher":
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        return cls(client)

    def publish_tournament_event(self, event: Event) -> bool:
        """Publish and log an event. Failures are logged, never raised."""
        try:
            payload = event.to_json()
            self.redis.publish(channel_for(event.tournament_id), payload)
            self.log_event(event)
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to publish {event.to_dict()['type']} for {event.tournament_id}: {e}")
            return False

    def log_event(self, event: Event):
        key = event_log_key(event.tournament_id)
        self.redis.lpush(key, event.to_json())
        self.redis.ltrim(key, 0, self.EVENT_LOG_SIZE - 1)

    def get_recent_events(self, tournament_id: str, count: int = 50) -> list:
        # lrange(0, -1) would return the whole log
        count = max(1, min(count, self.EVENT_LOG_SIZE))
        try:
            events_json = self.redis.lrange(event_log_key(tournament_id), 0, count - 1)
        except redis.RedisError as e:
            logger.error(f"Failed to read event log for {tournament_id}: {e}")
            return []
        return [Event.from_json(e) for e in events_json]

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.RedisError:
            return False
