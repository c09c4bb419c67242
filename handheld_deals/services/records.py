"""Conversion between CMS item dictionaries and the frozen models."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

import structlog

from ..models import (
    ConfidenceLevel,
    ControllerSupport,
    CuratorReview,
    DataReliability,
    Deal,
    DeckStatus,
    Device,
    DevicePerformanceRecord,
    EventStatus,
    Game,
    PerformanceStatus,
    PriceAlert,
    ProtonTier,
    ReviewStatus,
    SaleEvent,
    UserPreference,
)

log = structlog.stdlib.get_logger()

E = TypeVar("E", bound=Enum)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            log.warning("Unparseable timestamp ignored", value=str(value)[:40])
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _enum(enum_cls: type[E], value: Any, default: E | None) -> E | None:
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int | None:
    number = _float(value)
    return int(number) if number is not None else None


def _str_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, dict):
        # Relational fields may be expanded
        value = value.get("id")
    return str(value) if value is not None else None


def parse_genres(value: Any) -> list[str]:
    """Genres arrive as a list or a comma-separated string."""
    if not value:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = [str(v) for v in value]
    return [p.strip() for p in parts if p and p.strip()]


def performance_from_dict(data: dict[str, Any]) -> DevicePerformanceRecord:
    status = _enum(PerformanceStatus, data.get("status"), PerformanceStatus.UNTESTED)
    tested_date = parse_timestamp(data.get("tested_date"))
    estimated = data.get("estimated")
    if estimated is None:
        # Records entered by hand in the CMS often omit the flag.
        estimated = status == PerformanceStatus.ESTIMATED or (
            status == PerformanceStatus.UNTESTED and tested_date is None
        )
    return DevicePerformanceRecord(
        status=status,
        fps_avg=_float(data.get("fps_avg")),
        battery_hours=_float(data.get("battery_hours")),
        tested_settings=data.get("tested_settings"),
        tested_date=tested_date,
        notes=data.get("notes"),
        estimated=bool(estimated),
    )


def performance_to_dict(record: DevicePerformanceRecord) -> dict[str, Any]:
    return {
        "status": record.status.value,
        "fps_avg": record.fps_avg,
        "battery_hours": record.battery_hours,
        "tested_settings": record.tested_settings,
        "tested_date": format_timestamp(record.tested_date),
        "notes": record.notes,
        "estimated": record.estimated,
    }


def parse_device_performance(value: Any) -> dict[Device, DevicePerformanceRecord]:
    """Parse the device_performance JSON object; unknown devices are dropped."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            log.warning("Invalid device_performance JSON ignored")
            return {}
    if not isinstance(value, dict):
        return {}

    performance: dict[Device, DevicePerformanceRecord] = {}
    for key, raw in value.items():
        device = _enum(Device, key, None)
        if device is None or not isinstance(raw, dict):
            continue
        performance[device] = performance_from_dict(raw)
    return performance


def device_performance_to_dict(performance: dict[Device, DevicePerformanceRecord]) -> dict[str, Any]:
    return {device.value: performance_to_dict(record) for device, record in performance.items()}


def game_from_item(item: dict[str, Any]) -> Game:
    return Game(
        id=_str_id(item.get("id")),
        title=str(item.get("title") or ""),
        slug=item.get("slug"),
        steam_app_id=_str_id(item.get("steam_app_id")),
        genres=parse_genres(item.get("genre")),
        release_year=_int(item.get("release_year")),
        deck_status=_enum(DeckStatus, item.get("deck_status"), DeckStatus.UNKNOWN),
        protondb_tier=_enum(ProtonTier, item.get("protondb_tier"), ProtonTier.UNKNOWN),
        controller_support=_enum(ControllerSupport, item.get("controller_support"), ControllerSupport.UNKNOWN),
        data_reliability=_enum(DataReliability, item.get("data_reliability"), None),
        device_performance=parse_device_performance(item.get("device_performance")),
        description=item.get("description"),
        metacritic_score=_int(item.get("metacritic_score")),
        steam_positive_percent=_int(item.get("steam_positive_percent")),
        steam_total_reviews=_int(item.get("steam_total_reviews")),
        manual_quality_override=item.get("manual_quality_override"),
        last_deal_date=parse_timestamp(item.get("last_deal_date")),
        date_updated=parse_timestamp(item.get("date_updated")),
    )


def game_to_item(game: Game) -> dict[str, Any]:
    """Payload for creating a game; ids and server timestamps are omitted."""
    item: dict[str, Any] = {
        "title": game.title,
        "slug": game.slug,
        "steam_app_id": game.steam_app_id,
        "genre": list(game.genres) or None,
        "release_year": game.release_year,
        "deck_status": game.deck_status.value,
        "protondb_tier": game.protondb_tier.value,
        "controller_support": game.controller_support.value,
        "device_performance": device_performance_to_dict(game.device_performance),
    }
    if game.data_reliability is not None:
        item["data_reliability"] = game.data_reliability.value
    if game.description is not None:
        item["description"] = game.description
    if game.last_deal_date is not None:
        item["last_deal_date"] = format_timestamp(game.last_deal_date)
    return item


def review_from_item(item: dict[str, Any]) -> CuratorReview:
    return CuratorReview(
        id=str(item.get("id")),
        game_id=_str_id(item.get("game_id")),
        status=_enum(ReviewStatus, item.get("status"), ReviewStatus.DRAFT),
        confidence_level=_enum(ConfidenceLevel, item.get("confidence_level"), None),
        last_verified=parse_timestamp(item.get("last_verified")),
        curator_note=item.get("curator_note"),
    )


def deal_from_item(item: dict[str, Any]) -> Deal:
    return Deal(
        id=str(item.get("id")),
        game_id=_str_id(item.get("game_id")) or "",
        store=str(item.get("store") or ""),
        price=_float(item.get("price")) or 0.0,
        normal_price=_float(item.get("normal_price")) or 0.0,
        discount_percent=_int(item.get("discount_percent")) or 0,
        url=item.get("url"),
        is_historical_low=bool(item.get("is_historical_low")),
        cheapest_price_ever=_float(item.get("cheapest_price_ever")),
        deal_rating=_float(item.get("deal_rating")),
        last_checked=parse_timestamp(item.get("last_checked")),
        expiry_date=parse_timestamp(item.get("expiry_date")),
    )


def alert_from_item(item: dict[str, Any]) -> PriceAlert:
    return PriceAlert(
        id=str(item.get("id")),
        game_id=_str_id(item.get("game_id")) or "",
        email=str(item.get("email") or ""),
        target_price=_float(item.get("target_price")) or 0.0,
        current_price=_float(item.get("current_price")),
        device_context=item.get("device_context"),
        verified=bool(item.get("verified")),
        alert_sent=bool(item.get("alert_sent")),
        alert_sent_at=parse_timestamp(item.get("alert_sent_at")),
    )


def event_from_item(item: dict[str, Any]) -> SaleEvent | None:
    """None when the event lacks a usable date range."""
    start = parse_timestamp(item.get("start_date"))
    end = parse_timestamp(item.get("end_date"))
    if start is None or end is None:
        return None
    return SaleEvent(
        id=str(item.get("id")),
        title=str(item.get("title") or ""),
        start_date=start,
        end_date=end,
        status=_enum(EventStatus, item.get("status"), None),
    )


def preference_from_item(item: dict[str, Any]) -> UserPreference:
    return UserPreference(
        id=str(item.get("id")),
        device=item.get("device"),
        created_at=parse_timestamp(item.get("created_at") or item.get("date_created")),
        expires_at=parse_timestamp(item.get("expires_at")),
    )
