"""ProtonDB summary client."""

from dataclasses import dataclass

import httpx
import structlog

from ..models import ProtonTier
from .errors import NetworkError
from .http_client import HttpClientService

log = structlog.stdlib.get_logger()

MIN_REPORTS = 5
VALID_TIERS = (
    ProtonTier.PLATINUM,
    ProtonTier.GOLD,
    ProtonTier.SILVER,
    ProtonTier.BRONZE,
    ProtonTier.BORKED,
)


@dataclass(frozen=True)
class ProtonSummary:
    total_reports: int
    best_reported_tier: str | None = None
    trending_tier: str | None = None


@dataclass(frozen=True)
class TierVerdict:
    tier: ProtonTier | None
    reason: str

    @property
    def valid(self) -> bool:
        return self.tier is not None


def validate_summary(summary: ProtonSummary, min_reports: int = MIN_REPORTS) -> TierVerdict:
    """Accept a tier only with enough reports and a recognised tier name."""
    if summary.total_reports < min_reports:
        return TierVerdict(None, f"insufficient reports ({summary.total_reports} < {min_reports})")

    raw = summary.best_reported_tier or summary.trending_tier
    if not raw:
        return TierVerdict(None, "no tier")
    try:
        tier = ProtonTier(raw.strip().lower())
    except ValueError:
        return TierVerdict(None, f"invalid tier '{raw}'")
    if tier not in VALID_TIERS:
        return TierVerdict(None, f"invalid tier '{raw}'")
    return TierVerdict(tier, f"{summary.total_reports} reports")


class ProtonDbClient:
    def __init__(
        self,
        http_client: HttpClientService,
        summaries_url: str = "https://www.protondb.com/api/v1/reports/summaries",
    ) -> None:
        self.http_client = http_client
        self.summaries_url = summaries_url.rstrip("/")

    async def fetch_summary(self, app_id: str) -> ProtonSummary | None:
        """Community summary for an app; None when ProtonDB has no reports (404).

        Raises:
            NetworkError: On any other failure
        """
        url = f"{self.summaries_url}/{app_id}.json"
        try:
            response = await self.http_client.get(url)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                log.debug("No ProtonDB data", app_id=app_id)
                return None
            raise NetworkError(
                "ProtonDB request failed", original_error=e, url=url, status_code=e.response.status_code
            ) from e
        except httpx.RequestError as e:
            raise NetworkError("ProtonDB is unreachable", original_error=e, url=url) from e

        data = response.json() or {}
        return ProtonSummary(
            total_reports=int(data.get("total") or 0),
            best_reported_tier=data.get("bestReportedTier"),
            trending_tier=data.get("trendingTier"),
        )
