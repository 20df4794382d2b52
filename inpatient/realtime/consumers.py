import json

from channels.generic.websocket import AsyncWebsocketConsumer

from inpatient.permissions import is_bed_manager
from inpatient.services.broadcast import BEDS_GROUP


class BedUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes bed and occupancy change notifications to bed managers."""

    GROUP = BEDS_GROUP

    async def connect(self):
        user = self.scope.get("user")
        if not is_bed_manager(user):
            await self.close(code=4403)
            return
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def beds_changed(self, event):
        # event: {"type": "beds.changed", "event": "...", "ts": "...", ...}
        await self.send(json.dumps(event, default=str))
