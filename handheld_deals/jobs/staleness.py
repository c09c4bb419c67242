"""Weekly staleness passes over hand-tested data and curator reviews."""

from datetime import datetime

import structlog

from ..models import DataReliability, JobStats
from ..services.records import game_from_item, review_from_item
from ..services.staleness import DataStalenessOutcome, classify_game_staleness, flag_stale_review
from .base import WEEK, SyncJob

log = structlog.stdlib.get_logger()


class DowngradeStaleDataJob(SyncJob):
    name = "downgrade-stale-data"
    schedule = "0 3 * * 1"
    interval_seconds = WEEK
    description = "Mark hand-tested games with old measurements as stale_tested"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        threshold = self.config.stale_threshold_days
        items = await self.session.read_items(
            "games",
            filter={"data_reliability": {"_eq": DataReliability.HAND_TESTED.value}},
            fields=["id", "title", "data_reliability", "device_performance"],
        )
        log.info("Checking hand-tested games", count=len(items), threshold_days=threshold)

        for item in items:
            if self.cancelled:
                break
            stats.processed += 1
            game = game_from_item(item)
            verdict = classify_game_staleness(game, now, threshold)
            stats.count(verdict.outcome.value)

            if verdict.outcome == DataStalenessOutcome.NO_TEST_DATA:
                log.warning("Hand-tested game has no test dates", title=game.title)
                stats.skipped += 1
                continue
            if not verdict.is_stale:
                continue

            try:
                await self.session.update_item(
                    "games", game.id or "", {"data_reliability": DataReliability.STALE_TESTED.value}
                )
            except Exception as e:
                self.record_failure(stats, e, "downgrade_game", record_id=game.id, title=game.title)
                continue

            stats.updated += 1
            log.info(
                "Downgraded stale game",
                title=game.title,
                oldest_device=verdict.oldest_device.value if verdict.oldest_device else None,
                oldest_test=verdict.oldest_test_date.date().isoformat() if verdict.oldest_test_date else None,
                age_days=verdict.age_days,
                age_months=verdict.age_months,
            )

        return stats


class FlagStaleReviewsJob(SyncJob):
    name = "flag-stale-reviews"
    schedule = "0 4 * * 1"
    interval_seconds = WEEK
    description = "Flag published curator reviews that need re-testing"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        threshold = self.config.stale_threshold_days
        items = await self.session.read_items(
            "curator_picks",
            filter={"status": {"_eq": "published"}},
            fields=["id", "game_id", "status", "confidence_level", "last_verified", "curator_note"],
        )
        log.info("Checking published reviews", count=len(items), threshold_days=threshold)

        for item in items:
            if self.cancelled:
                break
            stats.processed += 1
            review = review_from_item(item)
            verdict = flag_stale_review(review, now, threshold)
            stats.count(verdict.outcome.value)

            if not verdict.changed:
                stats.skipped += 1
                continue

            try:
                await self.session.update_item("curator_picks", review.id, verdict.update_payload())
            except Exception as e:
                self.record_failure(stats, e, "flag_review", record_id=review.id, collection="curator_picks")
                continue

            stats.updated += 1
            log.info(
                "Flagged stale review",
                review_id=review.id,
                age_months=verdict.age_months,
                confidence=verdict.review.confidence_level.value if verdict.review.confidence_level else None,
            )

        return stats
