"""Price alert processing."""

from datetime import datetime

import structlog

from ..models import Deal, Game, JobStats, PriceAlert
from ..services.catalog import filter_active_deals
from ..services.records import alert_from_item, deal_from_item, format_timestamp, game_from_item
from ..services.rules import AlertDecision, cheapest_deal, evaluate_price_alert
from .base import HOUR, SyncJob

log = structlog.stdlib.get_logger()


def render_alert_email(alert: PriceAlert, game: Game, deal: Deal, sender: str) -> dict[str, str]:
    """Plain-text notification for a triggered alert."""
    lines = [
        "Your price alert has been triggered!",
        "",
        f"{game.title} is now available at your target price.",
        "",
        f"Current price: ${deal.price:.2f}",
        f"Your target: ${alert.target_price:.2f}",
        f"Store: {deal.store}",
        f"Discount: {deal.discount_percent}%",
    ]
    if alert.device_context:
        lines.append(f"Your device: {alert.device_context}")
    if deal.url:
        lines.extend(["", f"Get the deal: {deal.url}"])
    return {
        "from": sender,
        "to": alert.email,
        "subject": f"Price Alert: {game.title} is now ${deal.price:.2f}!",
        "body": "\n".join(lines),
    }


class ProcessPriceAlertsJob(SyncJob):
    name = "process-price-alerts"
    schedule = "15 * * * *"
    interval_seconds = HOUR
    description = "Notify subscribers whose target price has been reached"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        items = await self.session.read_items(
            "price_alerts",
            filter={"_and": [
                {"verified": {"_eq": True}},
                {"alert_sent": {"_eq": False}},
            ]},
            fields=["id", "game_id", "email", "target_price", "device_context", "verified", "alert_sent"],
        )
        log.info("Active price alerts", count=len(items))

        for item in items:
            if self.cancelled:
                break
            alert = alert_from_item(item)
            stats.processed += 1
            try:
                await self._process_alert(alert, now, stats)
            except Exception as e:
                self.record_failure(stats, e, "process_alert", record_id=alert.id, collection="price_alerts")

        return stats

    async def _process_alert(self, alert: PriceAlert, now: datetime, stats: JobStats) -> None:
        game_item = await self.session.read_item("games", alert.game_id) if alert.game_id else None
        game = game_from_item(game_item) if game_item else None

        deal: Deal | None = None
        if game is not None:
            deal_items = await self.session.read_items(
                "deals",
                filter={"game_id": {"_eq": alert.game_id}},
                sort=["price"],
                limit=10,
            )
            deal = cheapest_deal(filter_active_deals([deal_from_item(d) for d in deal_items], now))

        decision = evaluate_price_alert(alert, game, deal)
        stats.count(decision.value)
        if decision != AlertDecision.SEND or game is None or deal is None:
            log.debug("Alert not triggered", alert_id=alert.id, decision=decision.value)
            stats.skipped += 1
            return

        self._send_notification(alert, game, deal)
        await self.session.update_item("price_alerts", alert.id, {
            "alert_sent": True,
            "alert_sent_at": format_timestamp(now),
            "current_price": deal.price,
        })
        stats.updated += 1

    def _send_notification(self, alert: PriceAlert, game: Game, deal: Deal) -> None:
        # Delivery is handled outside this package; the rendered message is logged
        email = render_alert_email(alert, game, deal, self.config.email_from)
        if self.config.email_enabled:
            log.info("Price alert email queued", to=email["to"], subject=email["subject"])
        else:
            log.info("Price alert email (delivery disabled)", to=email["to"], subject=email["subject"], body=email["body"])
