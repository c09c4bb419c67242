"""Sale event status maintenance."""

from datetime import datetime

import structlog

from ..models import JobStats
from ..services.records import event_from_item
from ..services.rules import determine_event_status
from .base import HOUR, SyncJob

log = structlog.stdlib.get_logger()


class UpdateEventStatusJob(SyncJob):
    name = "update-event-status"
    schedule = "30 * * * *"
    interval_seconds = HOUR
    description = "Mark sale events upcoming, active or ended"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        items = await self.session.read_items(
            "events", fields=["id", "title", "start_date", "end_date", "status"]
        )

        for item in items:
            if self.cancelled:
                break
            stats.processed += 1
            event = event_from_item(item)
            if event is None:
                log.warning("Event without date range", event_id=item.get("id"))
                stats.skipped += 1
                continue

            status = determine_event_status(event.start_date, event.end_date, now)
            stats.count(status.value)
            if status == event.status:
                continue

            try:
                await self.session.update_item("events", event.id, {"status": status.value})
            except Exception as e:
                self.record_failure(stats, e, "update_event", record_id=event.id, title=event.title, collection="events")
                continue
            stats.updated += 1
            log.info(
                "Event status changed",
                title=event.title,
                old=event.status.value if event.status else None,
                new=status.value,
            )

        return stats
