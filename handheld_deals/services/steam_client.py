"""Steam store and SteamSpy API client."""

import re
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from ..models import ControllerSupport
from .errors import NetworkError
from .http_client import HttpClientService
from .rules import strip_html

log = structlog.stdlib.get_logger()

_YEAR_PATTERN = re.compile(r"\b(19[7-9]\d|20\d\d)\b")


@dataclass(frozen=True)
class SteamReviewSummary:
    positive_percent: int
    total_reviews: int


@dataclass(frozen=True)
class SteamAppDetails:
    """Fields the sync jobs take from Steam's appdetails payload."""
    app_id: str
    name: str | None = None
    genres: list[str] = field(default_factory=list)
    release_year: int | None = None
    metacritic_score: int | None = None
    recommendations: int | None = None
    description: str | None = None
    controller_support: ControllerSupport | None = None  # None when Steam says nothing


def parse_release_year(date_text: str | None) -> int | None:
    """First plausible 4-digit year in a Steam release date string."""
    if not date_text:
        return None
    match = _YEAR_PATTERN.search(date_text)
    return int(match.group(1)) if match else None


def parse_steam_controller_support(value: Any) -> ControllerSupport | None:
    if not value:
        return None
    text = str(value).lower()
    if "full" in text:
        return ControllerSupport.FULL
    if "partial" in text or "controller" in text:
        return ControllerSupport.PARTIAL
    return None


def parse_steamspy_controller_support(data: dict[str, Any] | None) -> ControllerSupport:
    """Controller support from SteamSpy categories and tags; none when absent."""
    if not data:
        return ControllerSupport.NONE
    parts = [str(data.get("category") or "")]
    tags = data.get("tags")
    if isinstance(tags, dict):
        parts.extend(tags.keys())
    text = " ".join(parts).lower()
    if "full controller support" in text:
        return ControllerSupport.FULL
    if "partial controller support" in text:
        return ControllerSupport.PARTIAL
    return ControllerSupport.NONE


def parse_app_details(app_id: str, data: dict[str, Any]) -> SteamAppDetails:
    genres = [g.get("description") for g in data.get("genres") or [] if g.get("description")]
    release = data.get("release_date") or {}
    metacritic = data.get("metacritic") or {}
    recommendations = data.get("recommendations") or {}
    description = data.get("short_description") or data.get("about_the_game")

    return SteamAppDetails(
        app_id=app_id,
        name=data.get("name"),
        genres=genres,
        release_year=parse_release_year(release.get("date")),
        metacritic_score=metacritic.get("score"),
        recommendations=recommendations.get("total"),
        description=strip_html(description),
        controller_support=parse_steam_controller_support(data.get("controller_support")),
    )


class SteamClient:
    """Reads app details and review summaries from the Steam store."""

    def __init__(
        self,
        http_client: HttpClientService,
        store_url: str = "https://store.steampowered.com",
        steamspy_http: HttpClientService | None = None,
        steamspy_url: str = "https://steamspy.com/api.php",
    ) -> None:
        self.http_client = http_client
        self.store_url = store_url.rstrip("/")
        self.steamspy_http = steamspy_http
        self.steamspy_url = steamspy_url

    async def fetch_app_details(self, app_id: str) -> SteamAppDetails | None:
        """App details, or None when Steam has no data for the id.

        Raises:
            NetworkError: If the store cannot be reached
        """
        url = f"{self.store_url}/api/appdetails"
        try:
            response = await self.http_client.get(url, params={"appids": app_id})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise NetworkError(
                "Steam appdetails request failed", original_error=e, url=url, status_code=e.response.status_code
            ) from e
        except httpx.RequestError as e:
            raise NetworkError("Steam store is unreachable", original_error=e, url=url) from e

        entry = (response.json() or {}).get(str(app_id)) or {}
        if not entry.get("success") or not entry.get("data"):
            log.info("No Steam data for app", app_id=app_id)
            return None

        return parse_app_details(str(app_id), entry["data"])

    async def fetch_review_summary(self, app_id: str) -> SteamReviewSummary | None:
        """Positive share of all reviews; None when unavailable.

        Review data only feeds the quality gate, so lookup failures are
        logged and treated as missing data.
        """
        url = f"{self.store_url}/appreviews/{app_id}"
        try:
            response = await self.http_client.get(
                url, params={"json": 1, "purchase_type": "all", "language": "all", "num_per_page": 0}
            )
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            log.warning("Steam review lookup failed", app_id=app_id, error=str(e))
            return None

        summary = (response.json() or {}).get("query_summary") or {}
        total = summary.get("total_reviews") or 0
        if total <= 0:
            return None
        positive = summary.get("total_positive") or 0
        return SteamReviewSummary(
            positive_percent=round(positive / total * 100),
            total_reviews=int(total),
        )

    async def fetch_steamspy_controller_support(self, app_id: str) -> ControllerSupport:
        """Fallback controller lookup; failures count as no support."""
        if self.steamspy_http is None:
            return ControllerSupport.NONE
        try:
            response = await self.steamspy_http.get(
                self.steamspy_url, params={"request": "appdetails", "appid": app_id}
            )
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            log.warning("SteamSpy lookup failed", app_id=app_id, error=str(e))
            return ControllerSupport.NONE
        return parse_steamspy_controller_support(response.json())

    async def resolve_controller_support(self, details: SteamAppDetails) -> ControllerSupport:
        """Steam's own field first, then SteamSpy."""
        if details.controller_support is not None:
            return details.controller_support
        return await self.fetch_steamspy_controller_support(details.app_id)
