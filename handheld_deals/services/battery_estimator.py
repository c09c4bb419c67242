"""Heuristic battery-life estimator for handheld gaming PCs.

The estimate starts from a per-device baseline and applies additive
modifiers: genre (first matching rule only), device-specific adjustments,
release-year age, and optimization signals (Deck verification, ProtonDB
tier). The result is clamped to the device's plausible range, categorized
with the device's thresholds and rounded to one decimal.

Every applied modifier is recorded in the estimate's ``notes`` so an
estimate shown to users can be traced back to its inputs.

All functions here are pure: same inputs, same output, no clock access.
"""

import math
from dataclasses import dataclass

from ..models import (
    BatteryCategory,
    BatteryEstimate,
    DeckStatus,
    Device,
    DevicePerformanceRecord,
    Game,
    PerformanceStatus,
    ProtonTier,
)


@dataclass(frozen=True)
class DeviceProfile:
    """Battery characteristics of one handheld."""
    baseline_hours: float
    min_hours: float
    max_hours: float
    low_drain_threshold: float  # hours at or above -> low drain
    medium_drain_threshold: float  # hours at or above -> medium drain


DEVICE_PROFILES: dict[Device, DeviceProfile] = {
    Device.STEAM_DECK: DeviceProfile(4.0, 1.5, 8.0, 5.0, 3.0),
    Device.ROG_ALLY: DeviceProfile(3.5, 1.0, 7.0, 4.5, 2.5),
    Device.LEGION_GO: DeviceProfile(3.8, 1.2, 7.5, 4.8, 2.8),
}

# Priority ordered; the first rule with a keyword found in any tag wins.
GENRE_MODIFIERS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("indie", "2d", "puzzle"), 2.0),
    (("turn-based", "roguelike", "card"), 1.0),
    (("aaa", "fps", "action", "shooter", "racing"), -1.5),
    (("strategy",), -0.5),
)

LEGION_GO_BATTERY_BONUS = 0.3
ROG_ALLY_THERMAL_KEYWORDS = ("action", "fps", "shooter")
ROG_ALLY_THERMAL_PENALTY = -0.5

OLD_RELEASE_BEFORE = 2020
OLD_RELEASE_BONUS = 0.5
NEW_RELEASE_FROM = 2023
NEW_RELEASE_PENALTY = -0.5

DECK_VERIFIED_BONUS = 0.5
PLATINUM_BONUS = 0.25

MEASURED_STATUSES = frozenset({
    PerformanceStatus.EXCELLENT,
    PerformanceStatus.GOOD,
    PerformanceStatus.PLAYABLE,
    PerformanceStatus.POOR,
})


def _round_half_up(hours: float) -> float:
    return math.floor(hours * 10 + 0.5) / 10


def _signed(value: float) -> str:
    return f"{value:+.2f}".rstrip("0").rstrip(".") + "h"


def _normalized_tags(genres: list[str] | None) -> list[str]:
    return [g.strip().lower() for g in (genres or []) if g and g.strip()]


def genre_modifier(genres: list[str] | None) -> tuple[str, float] | None:
    """Return the matched keyword and its modifier, or None.

    Keywords match case-insensitively as substrings of the tags, so
    "Action RPG" matches "action".
    """
    tags = _normalized_tags(genres)
    if not tags:
        return None
    for keywords, modifier in GENRE_MODIFIERS:
        for keyword in keywords:
            if any(keyword in tag for tag in tags):
                return keyword, modifier
    return None


def categorize(hours: float, device: Device) -> BatteryCategory:
    """Drain category for an hours value using the device's thresholds."""
    profile = DEVICE_PROFILES[device]
    if hours >= profile.low_drain_threshold:
        return BatteryCategory.LOW
    if hours >= profile.medium_drain_threshold:
        return BatteryCategory.MEDIUM
    return BatteryCategory.HIGH


def estimate_battery(
    device: Device,
    genres: list[str] | None = None,
    release_year: int | None = None,
    deck_status: DeckStatus | None = None,
    protondb_tier: ProtonTier | None = None,
) -> BatteryEstimate:
    """Estimate battery life for one device.

    Args:
        device: Target handheld
        genres: Genre tags; empty or None skips the genre step
        release_year: Release year; None skips the age step
        deck_status: Steam Deck verification status
        protondb_tier: ProtonDB community tier

    Returns:
        BatteryEstimate with clamped, rounded hours and a modifier trace
    """
    profile = DEVICE_PROFILES[device]
    hours = profile.baseline_hours
    trace = [f"baseline {profile.baseline_hours:.1f}h ({device.value})"]

    matched = genre_modifier(genres)
    if matched is not None:
        keyword, modifier = matched
        hours += modifier
        trace.append(f"genre '{keyword}' {_signed(modifier)}")

    tags = _normalized_tags(genres)
    if device == Device.LEGION_GO:
        hours += LEGION_GO_BATTERY_BONUS
        trace.append(f"larger battery {_signed(LEGION_GO_BATTERY_BONUS)}")
    elif device == Device.ROG_ALLY and any(
        keyword in tag for keyword in ROG_ALLY_THERMAL_KEYWORDS for tag in tags
    ):
        hours += ROG_ALLY_THERMAL_PENALTY
        trace.append(f"thermal throttling {_signed(ROG_ALLY_THERMAL_PENALTY)}")

    if release_year is not None:
        if release_year < OLD_RELEASE_BEFORE:
            hours += OLD_RELEASE_BONUS
            trace.append(f"released {release_year} {_signed(OLD_RELEASE_BONUS)}")
        elif release_year >= NEW_RELEASE_FROM:
            hours += NEW_RELEASE_PENALTY
            trace.append(f"released {release_year} {_signed(NEW_RELEASE_PENALTY)}")

    if device == Device.STEAM_DECK and deck_status == DeckStatus.VERIFIED:
        hours += DECK_VERIFIED_BONUS
        trace.append(f"deck verified {_signed(DECK_VERIFIED_BONUS)}")

    if protondb_tier == ProtonTier.PLATINUM:
        hours += PLATINUM_BONUS
        trace.append(f"protondb platinum {_signed(PLATINUM_BONUS)}")

    clamped = min(max(hours, profile.min_hours), profile.max_hours)
    if clamped != hours:
        trace.append(f"clamped to [{profile.min_hours:.1f}, {profile.max_hours:.1f}]")

    # Category comes from the unrounded hours
    category = categorize(clamped, device)
    rounded = _round_half_up(clamped)

    return BatteryEstimate(
        device=device,
        category=category,
        hours=rounded,
        notes=f"Estimated {rounded:.1f}h: " + "; ".join(trace),
        estimated=True,
    )


def estimate_for_game(game: Game, device: Device) -> BatteryEstimate:
    """Estimate battery life for a game record on one device."""
    return estimate_battery(
        device,
        genres=game.genres,
        release_year=game.release_year,
        deck_status=game.deck_status,
        protondb_tier=game.protondb_tier,
    )


def estimate_all_devices(game: Game) -> dict[Device, BatteryEstimate]:
    """Estimate battery life for a game on every supported device."""
    return {device: estimate_for_game(game, device) for device in Device}


def estimate_to_record(
    estimate: BatteryEstimate,
    previous: DevicePerformanceRecord | None = None,
) -> DevicePerformanceRecord:
    """Build an estimated performance record, keeping measured fps and settings."""
    return DevicePerformanceRecord(
        status=PerformanceStatus.ESTIMATED,
        fps_avg=previous.fps_avg if previous else None,
        battery_hours=estimate.hours,
        tested_settings=previous.tested_settings if previous else None,
        tested_date=None,
        notes=estimate.notes,
        estimated=True,
    )


def is_overwritable(record: DevicePerformanceRecord | None) -> bool:
    """True when a record may be replaced by a fresh estimate."""
    if record is None:
        return True
    if record.tested_date is not None or record.status in MEASURED_STATUSES:
        return False
    return record.estimated or record.status in (PerformanceStatus.ESTIMATED, PerformanceStatus.UNTESTED)
