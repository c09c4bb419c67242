"""CheapShark deals client."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from .errors import NetworkError
from .http_client import HttpClientService

log = structlog.stdlib.get_logger()

REDIRECT_URL = "https://www.cheapshark.com/redirect?dealID="

# CheapShark store id -> store name used on the site
SUPPORTED_STORES: dict[str, str] = {
    "1": "steam",
    "7": "gog",
    "25": "epic",
    "11": "humble",
    "3": "gmg",
    "15": "fanatical",
}


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CheapSharkDeal:
    deal_id: str
    title: str
    store_id: str
    steam_app_id: str | None
    sale_price: float
    normal_price: float
    savings: float
    cheapest_price_ever: float | None = None
    deal_rating: float | None = None

    @property
    def store(self) -> str | None:
        return SUPPORTED_STORES.get(self.store_id)

    @property
    def discount_percent(self) -> int:
        return int(self.savings + 0.5)

    @property
    def url(self) -> str:
        return f"{REDIRECT_URL}{self.deal_id}"

    @property
    def is_historical_low(self) -> bool:
        lowest = self.cheapest_price_ever if self.cheapest_price_ever is not None else self.sale_price
        return self.sale_price <= lowest

    def to_deal_payload(self, game_id: str, checked_at: str) -> dict[str, Any]:
        """CMS ``deals`` item for this offer."""
        return {
            "game_id": game_id,
            "store": self.store,
            "price": self.sale_price,
            "normal_price": self.normal_price,
            "discount_percent": self.discount_percent,
            "url": self.url,
            "is_historical_low": self.is_historical_low,
            "cheapest_price_ever": (
                self.cheapest_price_ever if self.cheapest_price_ever is not None else self.sale_price
            ),
            "deal_rating": self.deal_rating,
            "last_checked": checked_at,
        }


def parse_deal(data: dict[str, Any]) -> CheapSharkDeal | None:
    """Parse one deal from the API; None when required prices are missing."""
    sale_price = _to_float(data.get("salePrice"))
    normal_price = _to_float(data.get("normalPrice"))
    if sale_price is None or normal_price is None:
        return None

    steam_app_id = data.get("steamAppID")
    return CheapSharkDeal(
        deal_id=str(data.get("dealID") or ""),
        title=str(data.get("title") or "").strip(),
        store_id=str(data.get("storeID") or ""),
        steam_app_id=str(steam_app_id) if steam_app_id not in (None, "", "0") else None,
        sale_price=sale_price,
        normal_price=normal_price,
        savings=_to_float(data.get("savings")) or 0.0,
        cheapest_price_ever=_to_float(data.get("cheapestPriceEver")),
        deal_rating=_to_float(data.get("dealRating")),
    )


class CheapSharkClient:
    def __init__(self, http_client: HttpClientService, base_url: str = "https://www.cheapshark.com/api/1.0") -> None:
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")

    async def fetch_top_deals(self, page_size: int = 100) -> list[CheapSharkDeal]:
        """Current deals sorted by savings, best first.

        Raises:
            NetworkError: If CheapShark cannot be reached
        """
        url = f"{self.base_url}/deals"
        try:
            response = await self.http_client.get(
                url, params={"sortBy": "Savings", "desc": 1, "pageSize": page_size}
            )
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                "CheapShark request failed", original_error=e, url=url, status_code=e.response.status_code
            ) from e
        except httpx.RequestError as e:
            raise NetworkError("CheapShark is unreachable", original_error=e, url=url) from e

        deals = []
        for raw in response.json() or []:
            deal = parse_deal(raw)
            if deal is None:
                log.debug("Skipping malformed deal", deal_id=raw.get("dealID"))
                continue
            deals.append(deal)

        log.info("Fetched CheapShark deals", count=len(deals))
        return deals
