"""
Change notification for bed and occupancy writes.

After a write commits, cached aggregates are invalidated and connected
dashboards receive a ``beds.changed`` event so they can refetch.

The stats cache is keyed by a version number that every committed write
bumps. A reader that computed its numbers before the bump stores them
under the old version, where no later reader looks.
"""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

BEDS_GROUP = "beds"
STATS_CACHE_KEY = "beds:stats"
STATS_VERSION_KEY = "beds:stats:version"


def stats_cache_key() -> str:
    version = cache.get_or_set(STATS_VERSION_KEY, 0, None)
    return f"{STATS_CACHE_KEY}:v{version}"


def invalidate_stats() -> None:
    cache.add(STATS_VERSION_KEY, 0, None)
    try:
        cache.incr(STATS_VERSION_KEY)
    except ValueError:
        # evicted between add and incr
        cache.set(STATS_VERSION_KEY, 1, None)


def _publish(event: str, payload: dict) -> None:
    invalidate_stats()
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    message = {"type": "beds.changed", "event": event, "ts": timezone.now().isoformat(), **payload}
    try:
        async_to_sync(channel_layer.group_send)(BEDS_GROUP, message)
    except Exception:
        # a broken channel layer must not turn a committed write into an error
        logger.exception("failed to broadcast %s", event)


def publish_on_commit(event: str, **payload) -> None:
    """Schedule the notification for when the surrounding transaction commits."""
    transaction.on_commit(lambda: _publish(event, payload))
