"""Logging configuration for the Handheld Deals sync jobs."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

MB = 1024 * 1024


def job_log_path(log_dir: Path, job_name: str) -> Path:
    """Path of the per-job log file watched by the health check."""
    return log_dir / f"cron-{job_name}.log"


class LoggingService:
    """Service for configuring and managing application logging."""

    def __init__(
        self,
        log_level: str = "INFO",
        log_dir: Path | None = None,
        job_name: str | None = None,
        console: bool = True,
    ) -> None:
        """Initialize the logging service.

        Args:
            log_level: The minimum log level to capture
            log_dir: Directory for log files (None for console only)
            job_name: When set, also write to cron-<job_name>.log in log_dir
            console: Whether to log to stdout
        """
        self.log_level = log_level.upper()
        self.log_dir = log_dir
        self.job_name = job_name
        self.console = console
        self.is_development = os.getenv("ENVIRONMENT", "development") == "development"

    def configure(self) -> None:
        """Configure structlog with appropriate processors and handlers."""
        self._configure_stdlib_logging()

        structlog.configure(
            processors=self._get_processors(),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _configure_stdlib_logging(self) -> None:
        """Configure standard library logging handlers."""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        numeric_level = getattr(logging, self.log_level, logging.INFO)
        root_logger.setLevel(numeric_level)

        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

        if self.console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(numeric_level)
            console_handler.setFormatter(logging.Formatter("%(message)s"))
            root_logger.addHandler(console_handler)

        if self.log_dir:
            self._setup_file_logging(root_logger, numeric_level)

    def _setup_file_logging(self, root_logger: logging.Logger, level: int) -> None:
        """Attach rotating JSON-line files: app.log, error.log and the job's cron log."""
        if not self.log_dir:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        files = [
            (self.log_dir / "app.log", level, 10 * MB, 5),
            (self.log_dir / "error.log", logging.ERROR, 5 * MB, 3),
        ]
        if self.job_name:
            files.append((job_log_path(self.log_dir, self.job_name), level, 5 * MB, 3))

        for path, handler_level, max_bytes, backups in files:
            handler = logging.handlers.RotatingFileHandler(
                filename=path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
            )
            handler.setLevel(handler_level)
            handler.setFormatter(logging.Formatter("%(message)s"))
            root_logger.addHandler(handler)

    def _get_processors(self) -> list[Any]:
        """Get the appropriate structlog processors for the environment."""
        common_processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if self.is_development and not self.log_dir:
            # Console only: readable output
            return common_processors + [
                structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
            ]
        # Files and production: JSON lines
        return common_processors + [
            structlog.processors.JSONRenderer()
        ]

    def get_logger(self, name: str | None = None) -> structlog.stdlib.BoundLogger:
        """Get a configured logger instance."""
        return structlog.stdlib.get_logger(name)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    environment: str | None = None,
    job_name: str | None = None,
    console: bool = True,
) -> LoggingService:
    """Set up application logging with the specified configuration.

    Args:
        log_level: Minimum log level to capture
        log_dir: Directory for log files (None for console only)
        environment: Environment name (development/production)
        job_name: Job whose cron-<job>.log should also receive events
        console: Whether to log to stdout

    Returns:
        Configured LoggingService instance
    """
    if environment:
        os.environ["ENVIRONMENT"] = environment

    service = LoggingService(log_level=log_level, log_dir=log_dir, job_name=job_name, console=console)
    service.configure()
    if job_name:
        structlog.contextvars.bind_contextvars(job=job_name)
    return service
