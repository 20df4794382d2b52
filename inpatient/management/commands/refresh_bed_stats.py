from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.cache import cache
from django.core.management.base import BaseCommand
from django.utils import timezone

from inpatient.services.broadcast import BEDS_GROUP, stats_cache_key
from inpatient.services.reporting import compute_occupancy_stats


class Command(BaseCommand):
    help = "Recompute the occupancy stats cache; broadcast WebSocket refresh event."

    def handle(self, *args, **options):
        now = timezone.now()
        key = stats_cache_key()
        stats = compute_occupancy_stats()
        cache.set(key, stats, settings.BED_STATS_CACHE_SECONDS)

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {"type": "beds.changed", "event": "stats.refreshed", "ts": now.isoformat(), "stats": stats}
            async_to_sync(channel_layer.group_send)(BEDS_GROUP, event)

        self.stdout.write(self.style.SUCCESS(
            f"Refreshed {key} at {now}: {stats['occupiedBeds']}/{stats['totalBeds']} occupied"
        ))
