"""Curator review data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ConfidenceLevel(Enum):
    """Curator confidence in a published review."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReviewStatus(Enum):
    """Editorial status of a review."""
    DRAFT = "draft"
    PUBLISHED = "published"


@dataclass(frozen=True)
class CuratorReview:
    """Hand-tested curator pick."""
    id: str
    game_id: str | None = None
    status: ReviewStatus = ReviewStatus.DRAFT
    confidence_level: ConfidenceLevel | None = None
    last_verified: datetime | None = None
    curator_note: str | None = None
