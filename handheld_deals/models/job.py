"""Job bookkeeping models."""

from dataclasses import dataclass, field


@dataclass
class JobStats:
    """Counters collected while a scheduled job runs."""
    job_name: str
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    distribution: dict[str, int] = field(default_factory=dict)
    error_messages: list[str] = field(default_factory=list)

    def count(self, bucket: str) -> None:
        """Increment a named distribution bucket (tier, category, status...)."""
        self.distribution[bucket] = self.distribution.get(bucket, 0) + 1

    @property
    def succeeded(self) -> int:
        return self.processed - self.errors

    @property
    def error_rate(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.errors / self.processed

    def as_log_fields(self) -> dict[str, object]:
        """Flatten counters for a structured log event."""
        return {
            "job": self.job_name,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "distribution": dict(self.distribution),
        }
