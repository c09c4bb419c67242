"""Data models for the Handheld Deals sync toolkit."""

from .commerce import Deal, EventStatus, PriceAlert, SaleEvent, UserPreference
from .config import AppConfig
from .game import (
    BatteryCategory,
    BatteryEstimate,
    ControllerSupport,
    DataReliability,
    DeckStatus,
    Device,
    DevicePerformanceRecord,
    Game,
    PerformanceStatus,
    ProtonTier,
)
from .job import JobStats
from .review import ConfidenceLevel, CuratorReview, ReviewStatus

__all__ = [
    "AppConfig",
    "BatteryCategory",
    "BatteryEstimate",
    "ConfidenceLevel",
    "ControllerSupport",
    "CuratorReview",
    "DataReliability",
    "Deal",
    "DeckStatus",
    "Device",
    "DevicePerformanceRecord",
    "EventStatus",
    "Game",
    "JobStats",
    "PerformanceStatus",
    "PriceAlert",
    "ProtonTier",
    "ReviewStatus",
    "SaleEvent",
    "UserPreference",
]
