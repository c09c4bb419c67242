"""Tests for CMS item conversion."""

import json
from datetime import datetime, timezone

from handheld_deals.models import (
    ConfidenceLevel,
    ControllerSupport,
    DataReliability,
    DeckStatus,
    Device,
    DevicePerformanceRecord,
    EventStatus,
    Game,
    PerformanceStatus,
    ProtonTier,
    ReviewStatus,
)
from handheld_deals.services.records import (
    alert_from_item,
    deal_from_item,
    event_from_item,
    format_timestamp,
    game_from_item,
    game_to_item,
    parse_device_performance,
    parse_genres,
    parse_timestamp,
    preference_from_item,
    review_from_item,
)


GAME_ITEM = {
    "id": 42,
    "title": "Hollow Knight",
    "slug": "hollow-knight",
    "steam_app_id": 367520,
    "genre": "Indie, Action, Metroidvania",
    "release_year": "2017",
    "deck_status": "verified",
    "protondb_tier": "Platinum",
    "controller_support": "full",
    "data_reliability": "hand_tested",
    "device_performance": {
        "steam_deck": {
            "status": "excellent",
            "fps_avg": 60,
            "battery_hours": "5.5",
            "tested_date": "2025-01-15T10:00:00Z",
            "estimated": False,
        },
        "switch": {"status": "good"},
    },
    "date_updated": "2025-05-30T08:00:00",
}


class TestTimestamps:
    def test_parse_z_suffix(self) -> None:
        assert parse_timestamp("2025-01-15T10:00:00Z") == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)

    def test_naive_is_utc(self) -> None:
        assert parse_timestamp("2025-01-15T10:00:00").tzinfo == timezone.utc

    def test_invalid_and_empty(self) -> None:
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None

    def test_format(self) -> None:
        assert format_timestamp(datetime(2025, 1, 15, 10, tzinfo=timezone.utc)) == "2025-01-15T10:00:00Z"
        assert format_timestamp(None) is None


def test_parse_genres() -> None:
    assert parse_genres("Indie, Action ,") == ["Indie", "Action"]
    assert parse_genres(["RPG", " ", "Strategy"]) == ["RPG", "Strategy"]
    assert parse_genres(None) == []


def test_game_from_item() -> None:
    game = game_from_item(GAME_ITEM)

    assert game.id == "42"
    assert game.steam_app_id == "367520"
    assert game.genres == ["Indie", "Action", "Metroidvania"]
    assert game.release_year == 2017
    assert game.deck_status == DeckStatus.VERIFIED
    assert game.protondb_tier == ProtonTier.PLATINUM
    assert game.controller_support == ControllerSupport.FULL
    assert game.data_reliability == DataReliability.HAND_TESTED
    assert set(game.device_performance) == {Device.STEAM_DECK}
    record = game.device_performance[Device.STEAM_DECK]
    assert record.status == PerformanceStatus.EXCELLENT
    assert record.battery_hours == 5.5
    assert record.estimated is False
    assert record.tested_date == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
    assert game.date_updated == datetime(2025, 5, 30, 8, tzinfo=timezone.utc)


def test_game_from_sparse_item() -> None:
    game = game_from_item({"id": "7", "title": "Unknown", "deck_status": "bogus"})

    assert game.deck_status == DeckStatus.UNKNOWN
    assert game.protondb_tier == ProtonTier.UNKNOWN
    assert game.data_reliability is None
    assert game.device_performance == {}


def test_device_performance_json_string() -> None:
    raw = json.dumps({"rog_ally": {"status": "playable", "battery_hours": 2.5}})

    performance = parse_device_performance(raw)

    assert performance[Device.ROG_ALLY].status == PerformanceStatus.PLAYABLE
    assert parse_device_performance("{broken") == {}
    assert parse_device_performance(None) == {}


def test_estimated_flag_defaults_from_status() -> None:
    performance = parse_device_performance({
        "steam_deck": {"status": "excellent", "battery_hours": 5.5, "tested_date": "2025-01-10T00:00:00Z"},
        "rog_ally": {"status": "estimated", "battery_hours": 4.0},
        "legion_go": {"status": "untested"},
    })

    assert performance[Device.STEAM_DECK].estimated is False
    assert performance[Device.ROG_ALLY].estimated is True
    assert performance[Device.LEGION_GO].estimated is True


def test_game_to_item_round_trip() -> None:
    game = Game(
        title="Celeste",
        slug="celeste",
        steam_app_id="504230",
        genres=["Indie", "Platformer"],
        deck_status=DeckStatus.VERIFIED,
        data_reliability=DataReliability.ESTIMATED_API,
        device_performance={Device.STEAM_DECK: DevicePerformanceRecord(battery_hours=6.0)},
    )

    item = game_to_item(game)

    assert item["genre"] == ["Indie", "Platformer"]
    assert item["data_reliability"] == "estimated_api"
    assert item["device_performance"]["steam_deck"]["battery_hours"] == 6.0
    assert game_from_item(item) == game


def test_review_from_item_with_expanded_game() -> None:
    review = review_from_item({
        "id": 3,
        "game_id": {"id": 42, "title": "Hollow Knight"},
        "status": "published",
        "confidence_level": "high",
        "last_verified": "2024-10-01T00:00:00Z",
    })

    assert review.game_id == "42"
    assert review.status == ReviewStatus.PUBLISHED
    assert review.confidence_level == ConfidenceLevel.HIGH


def test_deal_and_alert_from_item() -> None:
    deal = deal_from_item({
        "id": 9, "game_id": 42, "store": "gog", "price": "4.99", "normal_price": 19.99,
        "discount_percent": 75, "expiry_date": "2025-06-02T00:00:00Z",
    })
    assert deal.price == 4.99
    assert deal.expiry_date == datetime(2025, 6, 2, tzinfo=timezone.utc)

    alert = alert_from_item({"id": 1, "game_id": 42, "email": "a@b.c", "target_price": 5, "verified": True})
    assert alert.target_price == 5.0
    assert alert.verified and not alert.alert_sent


def test_event_requires_both_dates() -> None:
    assert event_from_item({"id": 1, "title": "Summer Sale", "start_date": "2025-06-20"}) is None

    event = event_from_item({
        "id": 1, "title": "Summer Sale", "start_date": "2025-06-20", "end_date": "2025-07-04", "status": "upcoming",
    })
    assert event.status == EventStatus.UPCOMING


def test_preference_created_at_fallback() -> None:
    pref = preference_from_item({"id": 1, "device": "legion_go", "created_at": "2025-01-01T00:00:00Z"})
    assert pref.created_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
