"""Steam metadata synchronization."""

from dataclasses import replace
from datetime import datetime
from typing import Any

import structlog

from ..models import DataReliability, Game, JobStats
from ..services.battery_estimator import estimate_all_devices, estimate_to_record
from ..services.records import device_performance_to_dict, game_from_item
from ..services.steam_client import SteamAppDetails
from .base import DAY, SyncJob

log = structlog.stdlib.get_logger()

GAME_FIELDS = [
    "id", "title", "steam_app_id", "genre", "release_year", "deck_status",
    "protondb_tier", "controller_support", "device_performance",
    "data_reliability", "steam_total_reviews",
]


class SyncSteamJob(SyncJob):
    name = "sync-steam"
    schedule = "0 2 * * *"
    interval_seconds = DAY
    description = "Fill in genres, release year and controller support from Steam"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        items = await self.session.read_items(
            "games",
            filter={"_and": [
                {"steam_app_id": {"_nnull": True}},
                {"_or": [
                    {"genre": {"_null": True}},
                    {"controller_support": {"_null": True}},
                    {"controller_support": {"_in": ["none", "unknown"]}},
                    {"release_year": {"_null": True}},
                ]},
            ]},
            fields=GAME_FIELDS,
            limit=self.config.batch_limit,
        )
        log.info("Games needing Steam data", count=len(items))

        for item in items:
            if self.cancelled:
                break
            stats.processed += 1
            game = game_from_item(item)
            try:
                details = await self.steam.fetch_app_details(game.steam_app_id or "")
                if details is None:
                    stats.skipped += 1
                    stats.count("no_data")
                    continue
                payload = await self._build_update(game, details)
                await self.session.update_item("games", game.id or "", payload)
            except Exception as e:
                self.record_failure(stats, e, "sync_steam", record_id=game.id, title=game.title)
                continue

            stats.updated += 1
            stats.count(payload["controller_support"])
            log.info(
                "Steam data synced",
                title=game.title,
                genres=payload.get("genre"),
                controller=payload["controller_support"],
                release_year=payload.get("release_year"),
            )

        return stats

    async def _build_update(self, game: Game, details: SteamAppDetails) -> dict[str, Any]:
        controller = await self.steam.resolve_controller_support(details)
        payload: dict[str, Any] = {"controller_support": controller.value}

        if details.genres:
            payload["genre"] = details.genres
        if details.release_year is not None:
            payload["release_year"] = details.release_year
        if details.metacritic_score is not None:
            payload["metacritic_score"] = details.metacritic_score
        if details.recommendations is not None and game.steam_total_reviews is None:
            payload["steam_total_reviews"] = details.recommendations
        if details.description:
            payload["description"] = details.description

        if not game.device_performance:
            updated = replace(
                game,
                genres=details.genres or game.genres,
                release_year=details.release_year or game.release_year,
                controller_support=controller,
            )
            performance = {
                device: estimate_to_record(estimate)
                for device, estimate in estimate_all_devices(updated).items()
            }
            payload["device_performance"] = device_performance_to_dict(performance)
            if game.data_reliability is None:
                payload["data_reliability"] = DataReliability.ESTIMATED_API.value

        return payload
