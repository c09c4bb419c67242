"""Catalog queries: search, device-aware deal lists and expiry helpers.

The selection logic is plain functions over models; ``CatalogService``
loads the records through a CMS session and applies them.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from ..models import DeckStatus, Deal, Device, Game, PerformanceStatus
from .cms_client import DirectusSession
from .records import deal_from_item, game_from_item
from .rules import cheapest_deal

log = structlog.stdlib.get_logger()

MIN_QUERY_LENGTH = 2
DEAL_OF_THE_DAY_MIN_DISCOUNT = 60
TOP_DISCOUNT_MIN_DISCOUNT = 50
BATTERY_SAVER_MIN_HOURS = 5.0
NEW_VERIFIED_WINDOW_DAYS = 7

SEARCH_STATUSES = {PerformanceStatus.EXCELLENT, PerformanceStatus.PLAYABLE}
COMPATIBLE_STATUSES = {PerformanceStatus.EXCELLENT, PerformanceStatus.GOOD, PerformanceStatus.PLAYABLE}
EXCLUDED_TOP_DISCOUNT_STATUSES = {PerformanceStatus.POOR, PerformanceStatus.UNTESTED}

_DEAL_FIELDS = ["*", "game_id.*"]


@dataclass(frozen=True)
class DealListing:
    """A deal together with its game, when the game could be loaded."""
    deal: Deal
    game: Game | None = None


@dataclass(frozen=True)
class SearchResult:
    game: Game
    best_deal: Deal | None = None


@dataclass(frozen=True)
class MissionStats:
    active_deals: int
    new_verified: int
    potential_savings: int


def is_deal_expired(deal: Deal, now: datetime) -> bool:
    return deal.expiry_date is not None and deal.expiry_date <= now


def filter_active_deals(deals: list[Deal], now: datetime) -> list[Deal]:
    """Deals without an expiry, or expiring after now."""
    return [deal for deal in deals if not is_deal_expired(deal, now)]


def format_time_remaining(expiry: datetime | None, now: datetime) -> str | None:
    """Remaining time as "3d 12h", "2h 30m", "45m" or "Expired"."""
    if expiry is None:
        return None
    remaining = int((expiry - now).total_seconds())
    if remaining <= 0:
        return "Expired"

    days, remainder = divmod(remaining, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def expiry_urgency(expiry: datetime | None, now: datetime) -> str | None:
    """critical under 6h, warning under 24h, otherwise normal."""
    if expiry is None:
        return None
    hours = (expiry - now).total_seconds() / 3600
    if hours <= 0:
        return None
    if hours < 6:
        return "critical"
    if hours < 24:
        return "warning"
    return "normal"


def _device_status(game: Game | None, device: Device) -> PerformanceStatus | None:
    if game is None:
        return None
    record = game.device_performance.get(device)
    return record.status if record else None


def rank_search_results(query: str, results: list[SearchResult]) -> list[SearchResult]:
    """Exact title match first, then prefix matches, then alphabetical."""
    needle = query.strip().lower()

    def sort_key(result: SearchResult) -> tuple[int, str]:
        title = result.game.title.lower()
        if title == needle:
            rank = 0
        elif title.startswith(needle):
            rank = 1
        else:
            rank = 2
        return rank, title

    return sorted(results, key=sort_key)


def filter_search_by_device(results: list[SearchResult], device: Device | None) -> list[SearchResult]:
    if device is None:
        return results
    return [r for r in results if _device_status(r.game, device) in SEARCH_STATUSES]


def select_deal_of_the_day(listings: list[DealListing], device: Device | None) -> DealListing | None:
    """Biggest discount playable on the device; Deck verified preferred for all devices.

    Listings are expected sorted by discount, highest first.
    """
    candidates = [entry for entry in listings if entry.deal.discount_percent >= DEAL_OF_THE_DAY_MIN_DISCOUNT]
    if not candidates:
        return None

    if device is None:
        compatible = [entry for entry in candidates if entry.game is not None and entry.game.device_performance]
        for listing in compatible:
            if listing.game is not None and listing.game.deck_status == DeckStatus.VERIFIED:
                return listing
    else:
        compatible = [entry for entry in candidates if _device_status(entry.game, device) in COMPATIBLE_STATUSES]

    if compatible:
        return compatible[0]
    return candidates[0]


def filter_deck_verified(listings: list[DealListing], device: Device | None) -> list[DealListing]:
    """Deck verified/playable for all devices; excellent on a specific device."""
    if device is None:
        return [
            entry for entry in listings
            if entry.game is not None and entry.game.deck_status in (DeckStatus.VERIFIED, DeckStatus.PLAYABLE)
        ]
    return [entry for entry in listings if _device_status(entry.game, device) == PerformanceStatus.EXCELLENT]


def filter_battery_saver(listings: list[DealListing], device: Device | None) -> list[DealListing]:
    """At least five hours of estimated battery life; Steam Deck for all devices."""
    target = device or Device.STEAM_DECK
    selected = []
    for listing in listings:
        if listing.game is None:
            continue
        record = listing.game.device_performance.get(target)
        if record is not None and record.battery_hours is not None and record.battery_hours >= BATTERY_SAVER_MIN_HOURS:
            selected.append(listing)
    return selected


def filter_top_discount(listings: list[DealListing], device: Device | None) -> list[DealListing]:
    """Half price or better; games known to run poorly or untested on the device are dropped."""
    candidates = [entry for entry in listings if entry.deal.discount_percent >= TOP_DISCOUNT_MIN_DISCOUNT]
    if device is None:
        return candidates
    return [entry for entry in candidates if _device_status(entry.game, device) not in EXCLUDED_TOP_DISCOUNT_STATUSES]


def compute_mission_stats(deals: list[Deal], games: list[Game], now: datetime) -> MissionStats:
    active = filter_active_deals(deals, now)
    week_ago = now - timedelta(days=NEW_VERIFIED_WINDOW_DAYS)
    new_verified = sum(
        1 for game in games
        if game.deck_status == DeckStatus.VERIFIED
        and game.date_updated is not None
        and game.date_updated >= week_ago
    )
    savings = sum(max(deal.normal_price - deal.price, 0.0) for deal in active)
    return MissionStats(
        active_deals=len(active),
        new_verified=new_verified,
        potential_savings=int(savings + 0.5),
    )


def listing_from_item(item: dict[str, Any]) -> DealListing:
    """Deal item with an optionally expanded ``game_id`` relation."""
    game_item = item.get("game_id")
    game = game_from_item(game_item) if isinstance(game_item, dict) else None
    return DealListing(deal=deal_from_item(item), game=game)


class CatalogService:
    """Read-side queries used by the site and the ``search`` command."""

    def __init__(self, session: DirectusSession) -> None:
        self.session = session

    async def _listings(self, filter: dict[str, Any], now: datetime, limit: int = 100) -> list[DealListing]:
        items = await self.session.read_items(
            "deals",
            filter=filter,
            fields=_DEAL_FIELDS,
            sort=["-discount_percent"],
            limit=limit,
        )
        listings = [listing_from_item(item) for item in items]
        return [entry for entry in listings if not is_deal_expired(entry.deal, now)]

    async def search_games(self, query: str, device: Device | None = None, limit: int = 8) -> list[SearchResult]:
        query = query.strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        items = await self.session.read_items(
            "games",
            filter={"title": {"_icontains": query}},
            sort=["title"],
            limit=limit,
        )
        results = []
        for item in items:
            game = game_from_item(item)
            deal_items = await self.session.read_items(
                "deals", filter={"game_id": {"_eq": game.id}}, sort=["price"], limit=1
            )
            best = cheapest_deal([deal_from_item(d) for d in deal_items])
            results.append(SearchResult(game=game, best_deal=best))

        ranked = rank_search_results(query, filter_search_by_device(results, device))
        log.debug("Search completed", query=query, results=len(ranked))
        return ranked

    async def deal_of_the_day(self, now: datetime, device: Device | None = None) -> DealListing | None:
        listings = await self._listings(
            {"discount_percent": {"_gte": DEAL_OF_THE_DAY_MIN_DISCOUNT}}, now, limit=50
        )
        return select_deal_of_the_day(listings, device)

    async def deck_verified_deals(self, now: datetime, device: Device | None = None, limit: int = 12) -> list[DealListing]:
        listings = await self._listings({"discount_percent": {"_gt": 0}}, now)
        return filter_deck_verified(listings, device)[:limit]

    async def battery_saver_deals(self, now: datetime, device: Device | None = None, limit: int = 12) -> list[DealListing]:
        listings = await self._listings({"discount_percent": {"_gt": 0}}, now)
        return filter_battery_saver(listings, device)[:limit]

    async def top_discount_deals(self, now: datetime, device: Device | None = None, limit: int = 12) -> list[DealListing]:
        listings = await self._listings(
            {"discount_percent": {"_gte": TOP_DISCOUNT_MIN_DISCOUNT}}, now
        )
        return filter_top_discount(listings, device)[:limit]

    async def mission_stats(self, now: datetime) -> MissionStats:
        deal_items = await self.session.read_items(
            "deals", fields=["id", "game_id", "normal_price", "price", "expiry_date"]
        )
        game_items = await self.session.read_items(
            "games", fields=["id", "title", "deck_status", "date_updated"]
        )
        return compute_mission_stats(
            [deal_from_item(item) for item in deal_items],
            [game_from_item(item) for item in game_items],
            now,
        )
