"""Command-line entry point for the Handheld Deals sync jobs.

This module provides:
- Command-line argument parsing (run, list-jobs, health-check, estimate, search)
- Lazy construction of services and API clients
- The job runner: session handling, error alerting, healthcheck pings
- Graceful shutdown handling
"""

import argparse
import asyncio
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path

import structlog

from handheld_deals.jobs import JOBS, JobContext, SyncJob, job_intervals
from handheld_deals.models import AppConfig, DeckStatus, Device, ProtonTier
from handheld_deals.services.battery_estimator import estimate_battery
from handheld_deals.services.catalog import CatalogService
from handheld_deals.services.cheapshark_client import CheapSharkClient
from handheld_deals.services.cms_client import DirectusSession
from handheld_deals.services.config import ConfigurationService
from handheld_deals.services.errors import AppError, get_error_service, handle_error
from handheld_deals.services.http_client import HttpClientService
from handheld_deals.services.logging import setup_logging
from handheld_deals.services.monitoring import (
    AlertSeverity,
    DiscordAlerter,
    HealthcheckPinger,
    check_job_logs,
)
from handheld_deals.services.protondb_client import ProtonDbClient
from handheld_deals.services.records import parse_timestamp
from handheld_deals.services.steam_client import SteamClient

__version__ = "1.0.0"

log = structlog.stdlib.get_logger()

DEFAULT_LOG_DIR = Path("logs")


class ApplicationContext:
    """Container for services and API clients.

    Every upstream API gets its own HttpClientService so request pacing is
    tracked per API. All clients are closed by ``cleanup``.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path: Path | None = config_path

        self._config_service: ConfigurationService | None = None
        self._config: AppConfig | None = None
        self._http_clients: dict[str, HttpClientService] = {}

        self._cheapshark: CheapSharkClient | None = None
        self._steam: SteamClient | None = None
        self._protondb: ProtonDbClient | None = None
        self._alerter: DiscordAlerter | None = None
        self._pinger: HealthcheckPinger | None = None

        self.active_job: SyncJob | None = None
        self._shutdown_requested: bool = False

    @property
    def config_service(self) -> ConfigurationService:
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self.config_service.load_config()
        return self._config

    def _http(self, name: str, base_url: str = "", rate_limit_delay: float | None = None) -> HttpClientService:
        if name not in self._http_clients:
            self._http_clients[name] = HttpClientService(
                base_url=base_url,
                timeout=self.config.request_timeout,
                max_retries=self.config.max_retries,
                rate_limit_delay=self.config.request_delay if rate_limit_delay is None else rate_limit_delay,
            )
        return self._http_clients[name]

    @property
    def cheapshark(self) -> CheapSharkClient:
        if self._cheapshark is None:
            self._cheapshark = CheapSharkClient(self._http("cheapshark"), self.config.cheapshark_base_url)
        return self._cheapshark

    @property
    def steam(self) -> SteamClient:
        if self._steam is None:
            self._steam = SteamClient(
                self._http("steam"),
                store_url=self.config.steam_store_url,
                steamspy_http=self._http("steamspy"),
                steamspy_url=self.config.steamspy_url,
            )
        return self._steam

    @property
    def protondb(self) -> ProtonDbClient:
        if self._protondb is None:
            self._protondb = ProtonDbClient(self._http("protondb"), self.config.protondb_url)
        return self._protondb

    @property
    def alerter(self) -> DiscordAlerter:
        if self._alerter is None:
            self._alerter = DiscordAlerter(self._http("monitoring", rate_limit_delay=0.0), self.config.discord_webhook_url)
        return self._alerter

    @property
    def pinger(self) -> HealthcheckPinger:
        if self._pinger is None:
            self._pinger = HealthcheckPinger(self._http("monitoring", rate_limit_delay=0.0), self.config.healthcheck_urls)
        return self._pinger

    def create_session(self) -> DirectusSession:
        """New CMS session; raises ConfigurationError without credentials."""
        ConfigurationService.require_cms_credentials(self.config)
        return DirectusSession(
            self._http("cms", base_url=self.config.cms_url.rstrip("/"), rate_limit_delay=0.0),
            email=self.config.cms_email,
            password=self.config.cms_password,
            static_token=self.config.cms_static_token,
        )

    def job_context(self, session: DirectusSession) -> JobContext:
        return JobContext(
            session=session,
            config=self.config,
            cheapshark=self.cheapshark,
            steam=self.steam,
            protondb=self.protondb,
        )

    def request_shutdown(self) -> None:
        """Ask the running job to stop after its current record."""
        self._shutdown_requested = True
        log.info("Shutdown requested")
        if self.active_job is not None:
            self.active_job.cancel()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    async def cleanup(self) -> None:
        """Close every HTTP client."""
        for client in self._http_clients.values():
            await client.close()
        self._http_clients.clear()
        log.debug("Application cleanup complete")


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        command: str,
        config: Path | None,
        log_level: str | None,
        log_dir: Path | None,
        now: datetime,
        job: str | None = None,
        query: str | None = None,
        device: Device | None = None,
        limit: int = 8,
        genres: list[str] | None = None,
        release_year: int | None = None,
        deck_status: DeckStatus | None = None,
        protondb_tier: ProtonTier | None = None,
    ) -> None:
        self.command: str = command
        self.config: Path | None = config
        self.log_level: str | None = log_level
        self.log_dir: Path | None = log_dir
        self.now: datetime = now
        self.job: str | None = job
        self.query: str | None = query
        self.device: Device | None = device
        self.limit: int = limit
        self.genres: list[str] | None = genres
        self.release_year: int | None = release_year
        self.deck_status: DeckStatus | None = deck_status
        self.protondb_tier: ProtonTier | None = protondb_tier


def _parse_now(value: str) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid ISO timestamp: {value}")
    return parsed


def _parse_device(value: str) -> Device | None:
    if value == "all":
        return None
    try:
        return Device(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"unknown device: {value}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="handheld-deals",
        description="Sync jobs and catalog tools for the Handheld Deals site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  handheld-deals list-jobs
  handheld-deals run fetch-deals --log-dir /var/log/handheld-deals
  handheld-deals estimate --genres indie --year 2018 --device steam_deck
  handheld-deals search hades --device rog_ally
        """,
    )

    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/handheld-deals/config.json)",
    )
    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set the logging level (default: from configuration, INFO)",
    )
    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: ./logs for run and health-check)",
    )
    _ = parser.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Treat this ISO timestamp as the current time",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one scheduled job")
    _ = run_parser.add_argument("job", choices=sorted(JOBS), help="Job name")

    subparsers.add_parser("list-jobs", help="List jobs and their schedules")
    subparsers.add_parser("health-check", help="Check that every job ran recently")

    estimate_parser = subparsers.add_parser("estimate", help="Show a battery estimate and its trace")
    _ = estimate_parser.add_argument("--genres", default="", help="Comma-separated genre tags")
    _ = estimate_parser.add_argument("--year", type=int, default=None, help="Release year")
    _ = estimate_parser.add_argument(
        "--deck-status", choices=[s.value for s in DeckStatus], default=None, help="Steam Deck status"
    )
    _ = estimate_parser.add_argument(
        "--tier", choices=[t.value for t in ProtonTier], default=None, help="ProtonDB tier"
    )
    _ = estimate_parser.add_argument("--device", type=_parse_device, default=None, help="Device or 'all'")

    search_parser = subparsers.add_parser("search", help="Search games in the catalog")
    _ = search_parser.add_argument("query", help="Title to search for")
    _ = search_parser.add_argument("--device", type=_parse_device, default=None, help="Device or 'all'")
    _ = search_parser.add_argument("--limit", type=int, default=8, help="Maximum results")

    return parser


def parse_arguments(argv: list[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments.

    Returns:
        Parsed arguments container
    """
    ns = build_parser().parse_args(argv)
    command: str = ns.command
    genres_raw: str = getattr(ns, "genres", "") or ""
    deck_raw: str | None = getattr(ns, "deck_status", None)
    tier_raw: str | None = getattr(ns, "tier", None)

    return ParsedArgs(
        command=command,
        config=ns.config,
        log_level=ns.log_level,
        log_dir=ns.log_dir,
        now=ns.now or datetime.now(timezone.utc),
        job=getattr(ns, "job", None),
        query=getattr(ns, "query", None),
        device=getattr(ns, "device", None),
        limit=getattr(ns, "limit", 8),
        genres=[g.strip() for g in genres_raw.split(",") if g.strip()],
        release_year=getattr(ns, "year", None),
        deck_status=DeckStatus(deck_raw) if deck_raw else None,
        protondb_tier=ProtonTier(tier_raw) if tier_raw else None,
    )


def setup_signal_handlers(context: ApplicationContext) -> None:
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum: int, frame: object) -> None:
        _ = frame
        log.info("Received signal", signal=signal.Signals(signum).name)
        context.request_shutdown()

    _ = signal.signal(signal.SIGINT, signal_handler)
    _ = signal.signal(signal.SIGTERM, signal_handler)


async def run_job(context: ApplicationContext, job_name: str, now: datetime) -> int:
    """Run one job inside a CMS session.

    Returns:
        0 when the run completed (even with per-record errors), 1 when it
        could not run at all
    """
    job_cls = JOBS[job_name]
    get_error_service().clear_history()
    log.info("Job started", job=job_name, schedule=job_cls.schedule, now=now.isoformat())

    try:
        async with context.create_session() as session:
            job = job_cls(context.job_context(session))
            context.active_job = job
            stats = await job.run(now)
    except Exception as e:
        user_error = handle_error(e, operation="run_job", component=job_name)
        log.error("Job failed", job=job_name, error=user_error.message)
        await context.alerter.send_alert(
            job_name,
            f"{user_error.message}\n{user_error.technical_details or ''}".strip(),
            AlertSeverity.CRITICAL,
            now,
        )
        return 1
    finally:
        context.active_job = None

    log.info("Job completed", **stats.as_log_fields())
    await context.alerter.check_error_threshold(stats, now)
    if not context.shutdown_requested:
        await context.pinger.ping(job_name)
    return 0


async def run_search(context: ApplicationContext, args: ParsedArgs) -> int:
    async with context.create_session() as session:
        results = await CatalogService(session).search_games(args.query or "", args.device, args.limit)

    if not results:
        print("No matching games")
        return 0
    for result in results:
        deal = result.best_deal
        price = f"${deal.price:.2f} at {deal.store} (-{deal.discount_percent}%)" if deal else "no deal"
        print(f"{result.game.title}: {price}")
    return 0


def show_estimate(args: ParsedArgs) -> int:
    devices = [args.device] if args.device else list(Device)
    for device in devices:
        estimate = estimate_battery(
            device,
            genres=args.genres,
            release_year=args.release_year,
            deck_status=args.deck_status,
            protondb_tier=args.protondb_tier,
        )
        print(f"{device.value}: {estimate.hours:.1f}h ({estimate.category.value} drain)")
        print(f"  {estimate.notes}")
    return 0


def list_jobs() -> int:
    width = max(len(name) for name in JOBS)
    for name, job in JOBS.items():
        print(f"{name.ljust(width)}  {job.schedule.ljust(12)}  {job.description}")
    return 0


def health_check(log_dir: Path, now: datetime) -> int:
    report = check_job_logs(log_dir, job_intervals(), now)
    for check in report.checks:
        if check.healthy:
            print(f"OK    {check.job_name} (last run {round((check.age_seconds or 0) / 60)} min ago)")
        else:
            print(f"FAIL  {check.job_name}: {check.reason}")
    print("All systems healthy" if report.healthy else "Some jobs need attention")
    return 0 if report.healthy else 1


async def dispatch(context: ApplicationContext, args: ParsedArgs, log_dir: Path | None) -> int:
    try:
        if args.command == "run":
            return await run_job(context, args.job or "", args.now)
        if args.command == "search":
            return await run_search(context, args)
        if args.command == "health-check":
            return health_check(log_dir or DEFAULT_LOG_DIR, args.now)
        if args.command == "estimate":
            return show_estimate(args)
        return list_jobs()
    finally:
        await context.cleanup()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)
    context = ApplicationContext(config_path=args.config)

    log_dir = args.log_dir
    if log_dir is None and args.command in ("run", "health-check"):
        log_dir = DEFAULT_LOG_DIR

    try:
        log_level = args.log_level or context.config.log_level
    except AppError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        sys.exit(1)

    _ = setup_logging(
        log_level=log_level,
        log_dir=log_dir if args.command == "run" else args.log_dir,
        job_name=args.job if args.command == "run" else None,
    )
    log.debug("Starting handheld-deals", version=__version__, command=args.command)

    setup_signal_handlers(context)

    try:
        exit_code = asyncio.run(dispatch(context, args, log_dir))
    except KeyboardInterrupt:
        log.info("Interrupted by user")
        exit_code = 130
    except AppError as e:
        user_error = handle_error(e, operation=args.command, component="cli")
        print(get_error_service().create_user_message(user_error), file=sys.stderr)
        exit_code = 1
    except Exception as e:
        log.error("Unhandled exception", error=str(e), exc_info=True)
        print(f"Fatal error: {e}", file=sys.stderr)
        exit_code = 1

    log.debug("Exiting", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
