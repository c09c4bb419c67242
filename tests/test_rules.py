"""Tests for the shared sync rules."""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from handheld_deals.models import (
    ControllerSupport,
    Deal,
    Device,
    DevicePerformanceRecord,
    EventStatus,
    Game,
    PerformanceStatus,
    PriceAlert,
)
from handheld_deals.services.rules import (
    AlertDecision,
    check_quality,
    cheapest_deal,
    determine_event_status,
    evaluate_price_alert,
    is_multiplayer_only,
    parse_device,
    slugify,
    strip_html,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_deal(price: float, deal_id: str = "d1") -> Deal:
    return Deal(id=deal_id, game_id="g1", store="steam", price=price, normal_price=40.0, discount_percent=50)


def make_alert(**overrides) -> PriceAlert:
    values = dict(id="a1", game_id="g1", email="player@example.com", target_price=15.0, verified=True)
    values.update(overrides)
    return PriceAlert(**values)


class TestSlugify:
    @pytest.mark.parametrize("title,expected", [
        ("Hollow Knight", "hollow-knight"),
        ("  Celeste  ", "celeste"),
        ("Baldur's Gate 3", "baldurs-gate-3"),
        ("DOOM: Eternal", "doom-eternal"),
        ("Half - Life", "half-life"),
    ])
    def test_examples(self, title: str, expected: str) -> None:
        assert slugify(title) == expected

    @given(st.text(max_size=60))
    def test_slug_has_no_spaces_or_edge_hyphens(self, title: str) -> None:
        slug = slugify(title)
        assert " " not in slug
        assert not slug.startswith("-")
        assert not slug.endswith("-")
        assert "--" not in slug


def test_strip_html() -> None:
    assert strip_html("<p>A <b>tight</b>\n platformer</p>") == "A tight platformer"
    assert strip_html("") is None
    assert strip_html(None) is None
    assert strip_html("<br/>") is None


class TestEventStatus:
    def test_upcoming(self) -> None:
        assert determine_event_status(NOW + timedelta(days=1), NOW + timedelta(days=5), NOW) == EventStatus.UPCOMING

    def test_active_includes_end(self) -> None:
        assert determine_event_status(NOW - timedelta(days=1), NOW, NOW) == EventStatus.ACTIVE
        assert determine_event_status(NOW, NOW + timedelta(days=1), NOW) == EventStatus.ACTIVE

    def test_ended(self) -> None:
        assert determine_event_status(NOW - timedelta(days=5), NOW - timedelta(seconds=1), NOW) == EventStatus.ENDED

    @given(
        start_offset=st.integers(min_value=-1000, max_value=1000),
        length=st.integers(min_value=0, max_value=1000),
    )
    def test_status_matches_date_range(self, start_offset: int, length: int) -> None:
        """
        **Feature: handheld-deals, Property 6: Event status follows the date range**
        """
        start = NOW + timedelta(hours=start_offset)
        end = start + timedelta(hours=length)

        status = determine_event_status(start, end, NOW)

        if NOW < start:
            assert status == EventStatus.UPCOMING
        elif NOW <= end:
            assert status == EventStatus.ACTIVE
        else:
            assert status == EventStatus.ENDED


class TestQualityGate:
    def test_manual_override_wins(self) -> None:
        game = Game(title="X", controller_support=ControllerSupport.NONE, manual_quality_override=True)
        assert check_quality(game, 10, 5).passed

        excluded = Game(title="X", manual_quality_override=False)
        assert not check_quality(excluded, 99, 10000).passed

    def test_no_controller_support_fails(self) -> None:
        verdict = check_quality(Game(title="X", controller_support=ControllerSupport.NONE))
        assert not verdict.passed
        assert verdict.reason == "no controller support"

    def test_multiplayer_only_fails(self) -> None:
        assert not check_quality(Game(title="X", genres=["Massively Multiplayer"])).passed
        assert check_quality(Game(title="X", genres=["Co-op", "Action"])).passed

    def test_missing_reviews_pass(self) -> None:
        assert check_quality(Game(title="X")).passed
        assert check_quality(Game(title="X"), positive_percent=90).passed

    def test_review_thresholds(self) -> None:
        game = Game(title="X", controller_support=ControllerSupport.FULL)
        assert not check_quality(game, 59, 1000).passed
        assert not check_quality(game, 95, 49).passed
        assert check_quality(game, 60, 50).passed

    def test_is_multiplayer_only(self) -> None:
        assert is_multiplayer_only(["MMO"])
        assert not is_multiplayer_only(["MMO", "RPG"])
        assert not is_multiplayer_only(["Puzzle"])


def test_cheapest_deal() -> None:
    deals = [make_deal(20.0, "a"), make_deal(9.99, "b"), make_deal(14.0, "c")]
    assert cheapest_deal(deals).id == "b"
    assert cheapest_deal([]) is None


def test_parse_device() -> None:
    assert parse_device("steam_deck") == Device.STEAM_DECK
    assert parse_device(" ROG_ALLY ") == Device.ROG_ALLY
    assert parse_device("switch") is None
    assert parse_device(None) is None


class TestPriceAlertDecision:
    def test_send_when_price_at_target(self) -> None:
        assert evaluate_price_alert(make_alert(), Game(title="X"), make_deal(15.0)) == AlertDecision.SEND

    def test_above_target(self) -> None:
        assert evaluate_price_alert(make_alert(), Game(title="X"), make_deal(15.01)) == AlertDecision.ABOVE_TARGET

    def test_unverified_and_already_sent(self) -> None:
        game, deal = Game(title="X"), make_deal(5.0)
        assert evaluate_price_alert(make_alert(verified=False), game, deal) == AlertDecision.NOT_VERIFIED
        assert evaluate_price_alert(make_alert(alert_sent=True), game, deal) == AlertDecision.ALREADY_SENT

    def test_missing_game_or_deal(self) -> None:
        assert evaluate_price_alert(make_alert(), None, make_deal(5.0)) == AlertDecision.NO_GAME
        assert evaluate_price_alert(make_alert(), Game(title="X"), None) == AlertDecision.NO_DEAL

    def test_poor_performance_on_alert_device(self) -> None:
        game = Game(
            title="X",
            device_performance={Device.ROG_ALLY: DevicePerformanceRecord(status=PerformanceStatus.POOR)},
        )
        decision = evaluate_price_alert(make_alert(device_context="rog_ally"), game, make_deal(5.0))
        assert decision == AlertDecision.POOR_ON_DEVICE

        other_device = evaluate_price_alert(make_alert(device_context="steam_deck"), game, make_deal(5.0))
        assert other_device == AlertDecision.SEND
