"""Small deterministic rules shared by the sync jobs."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from bs4 import BeautifulSoup

from ..models import ControllerSupport, Deal, Device, EventStatus, Game, PerformanceStatus, PriceAlert

MIN_POSITIVE_PERCENT = 60
MIN_REVIEW_COUNT = 50

_MULTIPLAYER_MARKERS = ("multiplayer", "co-op", "mmo")
_SINGLE_PLAYER_MARKERS = (
    "single", "rpg", "adventure", "strategy", "simulation",
    "indie", "action", "platformer", "puzzle",
)


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated, word characters only."""
    slug = str(text).lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def strip_html(markup: str | None) -> str | None:
    """Plain text from an HTML fragment, whitespace collapsed."""
    if not markup:
        return None
    text = BeautifulSoup(markup, "html.parser").get_text(" ", strip=True)
    text = re.sub(r"\s+", " ", text).strip()
    return text or None


def determine_event_status(start: datetime, end: datetime, now: datetime) -> EventStatus:
    """upcoming before start, active through end (inclusive), ended after."""
    if now < start:
        return EventStatus.UPCOMING
    if now <= end:
        return EventStatus.ACTIVE
    return EventStatus.ENDED


@dataclass(frozen=True)
class QualityVerdict:
    passed: bool
    reason: str


def is_multiplayer_only(genres: list[str]) -> bool:
    joined = " ".join(genres).lower()
    if not any(marker in joined for marker in _MULTIPLAYER_MARKERS):
        return False
    return not any(marker in joined for marker in _SINGLE_PLAYER_MARKERS)


def check_quality(
    game: Game,
    positive_percent: int | None = None,
    total_reviews: int | None = None,
) -> QualityVerdict:
    """Decide whether a game's deals are worth listing.

    Review numbers are optional; a game without review data passes.
    """
    if game.manual_quality_override is True:
        return QualityVerdict(True, "manual override")
    if game.manual_quality_override is False:
        return QualityVerdict(False, "manually excluded")

    if game.controller_support == ControllerSupport.NONE:
        return QualityVerdict(False, "no controller support")

    if game.genres and is_multiplayer_only(game.genres):
        return QualityVerdict(False, "multiplayer only")

    if positive_percent is None or total_reviews is None:
        return QualityVerdict(True, "no review data")

    if positive_percent < MIN_POSITIVE_PERCENT:
        return QualityVerdict(False, f"{positive_percent}% positive reviews")
    if total_reviews < MIN_REVIEW_COUNT:
        return QualityVerdict(False, f"only {total_reviews} reviews")

    return QualityVerdict(True, f"{positive_percent}% of {total_reviews} reviews positive")


def cheapest_deal(deals: list[Deal]) -> Deal | None:
    if not deals:
        return None
    return min(deals, key=lambda deal: deal.price)


class AlertDecision(Enum):
    """Outcome of evaluating one price alert."""
    SEND = "send"
    NOT_VERIFIED = "not_verified"
    ALREADY_SENT = "already_sent"
    NO_GAME = "no_game"
    NO_DEAL = "no_deal"
    ABOVE_TARGET = "above_target"
    POOR_ON_DEVICE = "poor_on_device"


def parse_device(value: str | None) -> Device | None:
    if not value:
        return None
    try:
        return Device(value.strip().lower())
    except ValueError:
        return None


def evaluate_price_alert(alert: PriceAlert, game: Game | None, deal: Deal | None) -> AlertDecision:
    """Whether a verified alert should fire for the game's cheapest deal."""
    if not alert.verified:
        return AlertDecision.NOT_VERIFIED
    if alert.alert_sent:
        return AlertDecision.ALREADY_SENT
    if game is None:
        return AlertDecision.NO_GAME
    if deal is None:
        return AlertDecision.NO_DEAL
    if deal.price > alert.target_price:
        return AlertDecision.ABOVE_TARGET

    device = parse_device(alert.device_context)
    if device is not None:
        record = game.device_performance.get(device)
        if record is not None and record.status == PerformanceStatus.POOR:
            return AlertDecision.POOR_ON_DEVICE

    return AlertDecision.SEND
