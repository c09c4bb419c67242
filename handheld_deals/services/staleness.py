"""Staleness decisions for hand-tested performance data and curator reviews.

Both classifiers take an explicit ``now`` and return a verdict; the caller
persists whatever the verdict says should change.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from ..models import ConfidenceLevel, CuratorReview, DataReliability, Device, Game, ReviewStatus

DEFAULT_THRESHOLD_DAYS = 180
AUTO_FLAG_SENTINEL = "[AUTO-FLAGGED]"


def age_in_months(days: int) -> int:
    return days // 30


class DataStalenessOutcome(Enum):
    """Result of checking a game's hand-tested data."""
    STALE = "stale"
    FRESH = "fresh"
    NO_TEST_DATA = "no_test_data"
    NOT_HAND_TESTED = "not_hand_tested"


@dataclass(frozen=True)
class DataStalenessVerdict:
    outcome: DataStalenessOutcome
    oldest_device: Device | None = None
    oldest_test_date: datetime | None = None
    age_days: int | None = None

    @property
    def is_stale(self) -> bool:
        return self.outcome == DataStalenessOutcome.STALE

    @property
    def age_months(self) -> int | None:
        return age_in_months(self.age_days) if self.age_days is not None else None


def classify_game_staleness(
    game: Game,
    now: datetime,
    threshold_days: int = DEFAULT_THRESHOLD_DAYS,
) -> DataStalenessVerdict:
    """Decide whether a hand-tested game should become ``stale_tested``.

    The game is stale when any device's test date is older than the
    threshold, even if other devices were retested recently. The verdict
    reports the oldest test date found.
    """
    if game.data_reliability != DataReliability.HAND_TESTED:
        return DataStalenessVerdict(DataStalenessOutcome.NOT_HAND_TESTED)

    dated = [
        (record.tested_date, device)
        for device, record in game.device_performance.items()
        if record.tested_date is not None
    ]
    if not dated:
        return DataStalenessVerdict(DataStalenessOutcome.NO_TEST_DATA)

    oldest_date, oldest_device = min(dated, key=lambda pair: pair[0])
    age_days = (now - oldest_date).days
    cutoff = now - timedelta(days=threshold_days)
    outcome = DataStalenessOutcome.STALE if oldest_date < cutoff else DataStalenessOutcome.FRESH

    return DataStalenessVerdict(
        outcome=outcome,
        oldest_device=oldest_device,
        oldest_test_date=oldest_date,
        age_days=age_days,
    )


class ReviewFlagOutcome(Enum):
    """Result of checking a curator review."""
    FLAGGED = "flagged"
    FRESH = "fresh"
    ALREADY_FLAGGED = "already_flagged"
    UNVERIFIED = "unverified"
    NOT_PUBLISHED = "not_published"


@dataclass(frozen=True)
class ReviewFlagVerdict:
    outcome: ReviewFlagOutcome
    review: CuratorReview
    age_days: int | None = None

    @property
    def changed(self) -> bool:
        return self.outcome == ReviewFlagOutcome.FLAGGED

    @property
    def age_months(self) -> int | None:
        return age_in_months(self.age_days) if self.age_days is not None else None

    def update_payload(self) -> dict[str, str | None]:
        """Fields to write back for a flagged review."""
        return {
            "confidence_level": self.review.confidence_level.value if self.review.confidence_level else None,
            "curator_note": self.review.curator_note,
        }


def build_flag_note(now: datetime, months: int, last_verified: datetime) -> str:
    return (
        f"{AUTO_FLAG_SENTINEL} {now.date().isoformat()}: Needs re-testing "
        f"({months} months old, last verified: {last_verified.date().isoformat()})"
    )


def flag_stale_review(
    review: CuratorReview,
    now: datetime,
    threshold_days: int = DEFAULT_THRESHOLD_DAYS,
) -> ReviewFlagVerdict:
    """Flag a published review whose last verification is too old.

    A flagged review drops from high to medium confidence (medium and low
    are kept) and gets a dated note appended after any existing note.
    Reviews that already carry the sentinel are left alone, so running
    this twice changes nothing the second time.
    """
    if review.status != ReviewStatus.PUBLISHED:
        return ReviewFlagVerdict(ReviewFlagOutcome.NOT_PUBLISHED, review)

    if review.last_verified is None:
        return ReviewFlagVerdict(ReviewFlagOutcome.UNVERIFIED, review)

    age_days = (now - review.last_verified).days
    cutoff = now - timedelta(days=threshold_days)
    if review.last_verified >= cutoff:
        return ReviewFlagVerdict(ReviewFlagOutcome.FRESH, review, age_days)

    if review.curator_note and AUTO_FLAG_SENTINEL in review.curator_note:
        return ReviewFlagVerdict(ReviewFlagOutcome.ALREADY_FLAGGED, review, age_days)

    confidence = review.confidence_level
    if confidence == ConfidenceLevel.HIGH:
        confidence = ConfidenceLevel.MEDIUM

    flag_note = build_flag_note(now, age_in_months(age_days), review.last_verified)
    note = f"{review.curator_note}\n\n{flag_note}" if review.curator_note else flag_note

    return ReviewFlagVerdict(
        outcome=ReviewFlagOutcome.FLAGGED,
        review=replace(review, confidence_level=confidence, curator_note=note),
        age_days=age_days,
    )
