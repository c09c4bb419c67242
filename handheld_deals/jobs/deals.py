"""Deal ingestion from CheapShark and removal of deals that stopped updating."""

from dataclasses import replace
from datetime import datetime, timedelta

import structlog

from ..models import DataReliability, Game, JobStats
from ..services.battery_estimator import estimate_all_devices, estimate_to_record
from ..services.cheapshark_client import CheapSharkDeal
from ..services.records import format_timestamp, game_from_item, game_to_item
from ..services.rules import QualityVerdict, check_quality, slugify
from .base import DAY, HOUR, SyncJob

log = structlog.stdlib.get_logger()

PAGE_SIZE = 100


class FetchDealsJob(SyncJob):
    name = "fetch-deals"
    schedule = "0 * * * *"
    interval_seconds = HOUR
    description = "Import the top CheapShark deals for supported stores"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        deals = await self.cheapshark.fetch_top_deals(PAGE_SIZE)
        if not deals:
            log.warning("No deals fetched")
            return stats

        log.info("Processing deals", count=len(deals))
        for deal in deals:
            if self.cancelled:
                break
            stats.processed += 1

            if deal.store is None:
                stats.skipped += 1
                stats.count("unsupported_store")
                continue
            if deal.savings <= 0:
                log.debug("Skipping deal without discount", title=deal.title)
                stats.skipped += 1
                stats.count("no_discount")
                continue
            if deal.steam_app_id is None:
                stats.skipped += 1
                stats.count("no_steam_app_id")
                continue

            try:
                game = await self._find_or_create_game(deal, now, stats)
                if game is None or game.id is None:
                    continue
                await self._upsert_deal(game, deal, now, stats)
            except Exception as e:
                self.record_failure(stats, e, "import_deal", record_id=deal.deal_id, title=deal.title)

        return stats

    async def _check_quality(self, game: Game) -> tuple[QualityVerdict, Game]:
        """Run the quality gate, fetching Steam reviews only when they matter."""
        verdict = check_quality(game)
        if not verdict.passed or game.manual_quality_override is True or self.context.steam is None:
            return verdict, game

        reviews = await self.steam.fetch_review_summary(game.steam_app_id or "")
        if reviews is None:
            return verdict, game

        game = replace(
            game,
            steam_positive_percent=reviews.positive_percent,
            steam_total_reviews=reviews.total_reviews,
        )
        return check_quality(game, reviews.positive_percent, reviews.total_reviews), game

    async def _find_or_create_game(self, deal: CheapSharkDeal, now: datetime, stats: JobStats) -> Game | None:
        slug = slugify(deal.title)
        items = await self.session.read_items(
            "games",
            filter={"_or": [
                {"steam_app_id": {"_eq": deal.steam_app_id}},
                {"slug": {"_eq": slug}},
            ]},
            limit=1,
        )

        if items:
            existing = game_from_item(items[0])
            verdict, checked = await self._check_quality(existing)
            if not verdict.passed:
                log.info("Quality gate failed", title=existing.title, reason=verdict.reason)
                stats.skipped += 1
                stats.count("quality_fail")
                return None
            if checked.steam_total_reviews != existing.steam_total_reviews or (
                checked.steam_positive_percent != existing.steam_positive_percent
            ):
                await self.session.update_item("games", existing.id or "", {
                    "steam_positive_percent": checked.steam_positive_percent,
                    "steam_total_reviews": checked.steam_total_reviews,
                })
            return checked

        candidate = Game(title=deal.title, slug=slug, steam_app_id=deal.steam_app_id)
        verdict, candidate = await self._check_quality(candidate)
        if not verdict.passed:
            log.info("Quality gate failed for new game", title=deal.title, reason=verdict.reason)
            stats.skipped += 1
            stats.count("quality_fail")
            return None

        performance = {
            device: estimate_to_record(estimate)
            for device, estimate in estimate_all_devices(candidate).items()
        }
        candidate = replace(
            candidate,
            device_performance=performance,
            data_reliability=DataReliability.ESTIMATED_API,
        )
        payload = game_to_item(candidate)
        payload["steam_positive_percent"] = candidate.steam_positive_percent
        payload["steam_total_reviews"] = candidate.steam_total_reviews

        created = await self.session.create_item("games", payload)
        stats.count("games_created")
        log.info("Created game", title=deal.title, reason=verdict.reason)
        return game_from_item(created) if created.get("id") is not None else None

    async def _upsert_deal(self, game: Game, deal: CheapSharkDeal, now: datetime, stats: JobStats) -> None:
        """One open (non-expiring) deal per game and store."""
        existing = await self.session.read_items(
            "deals",
            filter={"_and": [
                {"game_id": {"_eq": game.id}},
                {"store": {"_eq": deal.store}},
                {"expiry_date": {"_null": True}},
            ]},
            fields=["id"],
            limit=1,
        )
        payload = deal.to_deal_payload(game.id or "", format_timestamp(now) or "")

        if existing:
            await self.session.update_item("deals", str(existing[0]["id"]), payload)
            stats.updated += 1
            log.debug("Updated deal", title=game.title, store=deal.store, price=deal.sale_price)
            return

        await self.session.create_item("deals", payload)
        stats.created += 1
        await self.session.update_item("games", game.id or "", {"last_deal_date": now.date().isoformat()})
        log.info(
            "New deal",
            title=game.title,
            store=deal.store,
            price=deal.sale_price,
            discount=deal.discount_percent,
        )


class CleanupDealsJob(SyncJob):
    name = "cleanup-deals"
    schedule = "0 4 * * *"
    interval_seconds = DAY
    description = "Delete deals that have not been refreshed recently"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        cutoff = now - timedelta(days=self.config.deal_retention_days)
        items = await self.session.read_items(
            "deals",
            filter={"last_checked": {"_lt": format_timestamp(cutoff)}},
            fields=["id", "store", "last_checked"],
        )
        log.info("Found outdated deals", count=len(items), cutoff=cutoff.isoformat())

        for item in items:
            if self.cancelled:
                break
            stats.processed += 1
            deal_id = str(item.get("id"))
            try:
                await self.session.delete_item("deals", deal_id)
            except Exception as e:
                self.record_failure(stats, e, "delete_deal", record_id=deal_id, collection="deals")
                continue
            stats.count("deleted")

        return stats
