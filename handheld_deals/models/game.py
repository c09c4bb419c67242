"""Game-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Device(Enum):
    """Supported handheld gaming PCs."""
    STEAM_DECK = "steam_deck"
    ROG_ALLY = "rog_ally"
    LEGION_GO = "legion_go"


class PerformanceStatus(Enum):
    """How well a game runs on a given device."""
    EXCELLENT = "excellent"
    GOOD = "good"
    PLAYABLE = "playable"
    POOR = "poor"
    UNTESTED = "untested"
    ESTIMATED = "estimated"


class DataReliability(Enum):
    """Provenance of a game's performance data."""
    HAND_TESTED = "hand_tested"
    COMMUNITY_VERIFIED = "community_verified"
    ESTIMATED_API = "estimated_api"
    STALE_TESTED = "stale_tested"


class DeckStatus(Enum):
    """Steam Deck verification program status."""
    VERIFIED = "verified"
    PLAYABLE = "playable"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


class ProtonTier(Enum):
    """ProtonDB community compatibility tier."""
    PLATINUM = "platinum"
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    BORKED = "borked"
    UNKNOWN = "unknown"


class ControllerSupport(Enum):
    """Controller support advertised by the store."""
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"
    UNKNOWN = "unknown"


class BatteryCategory(Enum):
    """Coarse battery drain category (low drain = long play time)."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class DevicePerformanceRecord:
    """Performance of one game on one device."""
    status: PerformanceStatus = PerformanceStatus.UNTESTED
    fps_avg: float | None = None
    battery_hours: float | None = None
    tested_settings: str | None = None
    tested_date: datetime | None = None
    notes: str | None = None
    estimated: bool = True


@dataclass(frozen=True)
class BatteryEstimate:
    """Result of the battery estimator for a single device."""
    device: Device
    category: BatteryCategory
    hours: float
    notes: str
    estimated: bool = True


@dataclass(frozen=True)
class Game:
    """Game record as stored in the CMS."""
    title: str
    id: str | None = None
    slug: str | None = None
    steam_app_id: str | None = None
    genres: list[str] = field(default_factory=list)
    release_year: int | None = None
    deck_status: DeckStatus = DeckStatus.UNKNOWN
    protondb_tier: ProtonTier = ProtonTier.UNKNOWN
    controller_support: ControllerSupport = ControllerSupport.UNKNOWN
    data_reliability: DataReliability | None = None
    device_performance: dict[Device, DevicePerformanceRecord] = field(default_factory=dict)
    description: str | None = None
    metacritic_score: int | None = None
    steam_positive_percent: int | None = None
    steam_total_reviews: int | None = None
    manual_quality_override: bool | None = None  # True = always list, False = never list
    last_deal_date: datetime | None = None
    date_updated: datetime | None = None
