"""Weekly battery estimate refresh."""

from datetime import datetime

import structlog

from ..models import JobStats
from ..services.battery_estimator import estimate_all_devices, estimate_to_record, is_overwritable
from ..services.records import device_performance_to_dict, game_from_item
from .base import WEEK, SyncJob

log = structlog.stdlib.get_logger()


class EstimateBatteryJob(SyncJob):
    name = "estimate-battery"
    schedule = "0 3 * * 0"
    interval_seconds = WEEK
    description = "Recompute estimated battery life; measured records are kept"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        async for item in self.session.iter_items(
            "games",
            fields=["id", "title", "genre", "release_year", "deck_status", "protondb_tier", "device_performance"],
        ):
            if self.cancelled:
                break
            stats.processed += 1
            game = game_from_item(item)

            performance = dict(game.device_performance)
            changed = False
            for device, estimate in estimate_all_devices(game).items():
                existing = performance.get(device)
                if not is_overwritable(existing):
                    stats.count("measured_kept")
                    continue
                stats.count(f"{device.value}:{estimate.category.value}")
                record = estimate_to_record(estimate, existing)
                if record != existing:
                    performance[device] = record
                    changed = True

            if not changed:
                stats.skipped += 1
                continue

            try:
                await self.session.update_item(
                    "games", game.id or "", {"device_performance": device_performance_to_dict(performance)}
                )
            except Exception as e:
                self.record_failure(stats, e, "estimate_battery", record_id=game.id, title=game.title)
                continue
            stats.updated += 1
            log.debug("Battery estimates updated", title=game.title)

        return stats
