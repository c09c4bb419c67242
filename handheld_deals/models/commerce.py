"""Deal, alert, event and preference data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EventStatus(Enum):
    """Lifecycle of a store sale event."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(frozen=True)
class Deal:
    """A discounted offer for a game at one store."""
    id: str
    game_id: str
    store: str
    price: float
    normal_price: float
    discount_percent: int
    url: str | None = None
    is_historical_low: bool = False
    cheapest_price_ever: float | None = None
    deal_rating: float | None = None
    last_checked: datetime | None = None
    expiry_date: datetime | None = None


@dataclass(frozen=True)
class PriceAlert:
    """Email subscription that fires when a game drops to a target price."""
    id: str
    game_id: str
    email: str
    target_price: float
    current_price: float | None = None
    device_context: str | None = None
    verified: bool = False
    alert_sent: bool = False
    alert_sent_at: datetime | None = None


@dataclass(frozen=True)
class SaleEvent:
    """Store-wide sale with a fixed date range."""
    id: str
    title: str
    start_date: datetime
    end_date: datetime
    status: EventStatus | None = None


@dataclass(frozen=True)
class UserPreference:
    """Anonymous visitor device preference."""
    id: str
    device: str | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None
