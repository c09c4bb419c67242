"""Error taxonomy for the sync jobs.

Every failure a job meets is turned into an ``AppError`` subclass carrying a
category, a severity, operator-facing suggestions and technical details.
``ErrorHandlingService`` performs that conversion for arbitrary exceptions,
logs the result and keeps a short history so a run can report what failed
without stopping at the first bad record.
"""

import json
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()

HISTORY_SIZE = 100
MAX_SUGGESTIONS = 3


class ErrorCategory(Enum):
    """What kind of thing went wrong."""
    NETWORK = "network"
    CMS = "cms"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    SYNC = "sync"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorContext:
    operation: str
    component: str
    details: dict[str, Any]


@dataclass(frozen=True)
class UserFriendlyError:
    """An error as shown to whoever reads the job output or the alert."""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    suggested_actions: list[str]
    technical_details: str | None = None
    recoverable: bool = True


def _details(*pairs: tuple[str, Any]) -> str | None:
    """Join the non-empty ``(label, value)`` pairs into ``Label: value`` lines."""
    lines = [f"{label}: {value}" for label, value in pairs if value is not None and value != ""]
    return "\n".join(lines) or None


def _describe(error: Exception | None) -> str | None:
    if error is None:
        return None
    return f"{type(error).__name__}: {error}"


class AppError(Exception):
    """Base class for errors raised by this package."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        suggested_actions: list[str] | None = None,
        technical_details: str | None = None,
        recoverable: bool = True,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.suggested_actions = list(suggested_actions or [])
        self.technical_details = technical_details
        self.recoverable = recoverable
        self.context = context

    def to_user_friendly(self) -> UserFriendlyError:
        return UserFriendlyError(
            message=self.message,
            category=self.category,
            severity=self.severity,
            suggested_actions=self.suggested_actions,
            technical_details=self.technical_details,
            recoverable=self.recoverable,
        )


_NETWORK_ACTIONS: dict[int, list[str]] = {
    404: [
        "The requested record does not exist upstream",
        "Check the Steam app id stored for the game",
    ],
    429: [
        "The API is rate limiting this host",
        "Increase request_delay in the configuration",
    ],
}
_NETWORK_SERVER_ACTIONS = [
    "The upstream API is experiencing issues",
    "Try again later",
]
_NETWORK_DEFAULT_ACTIONS = [
    "Check the network connection of the job host",
    "Verify the API base URL in the configuration",
    "The next scheduled run will retry automatically",
]


class NetworkError(AppError):
    """A third-party API could not be reached or answered with an error."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        if status_code is not None and status_code >= 500:
            actions = _NETWORK_SERVER_ACTIONS
        else:
            actions = _NETWORK_ACTIONS.get(status_code or 0, _NETWORK_DEFAULT_ACTIONS)

        super().__init__(
            message=message,
            category=ErrorCategory.NETWORK,
            suggested_actions=actions,
            technical_details=_details(
                ("Status", status_code),
                ("URL", url),
                ("Error", _describe(original_error)),
            ),
        )
        self.original_error = original_error
        self.url = url
        self.status_code = status_code


_CMS_ACTIONS: dict[int, list[str]] = {
    400: [
        "The payload does not match the collection schema",
        "Check field names and enum values",
    ],
    401: [
        "Check DIRECTUS_ADMIN_EMAIL and DIRECTUS_ADMIN_PASSWORD",
        "Or provide a static token with DIRECTUS_ADMIN_TOKEN",
    ],
    403: [
        "The CMS role lacks permission for this collection",
        "Grant the sync user read/write access in the CMS",
    ],
}
_CMS_DEFAULT_ACTIONS = [
    "Check that the CMS is running and reachable",
    "Re-run the job once the CMS is healthy",
]


class CmsError(AppError):
    """A Directus read or write failed.

    A 401 means the job cannot authenticate at all, so it is critical and
    not recoverable within the run.
    """

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        item_id: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        unauthorized = status_code == 401
        super().__init__(
            message=message,
            category=ErrorCategory.CMS,
            severity=ErrorSeverity.CRITICAL if unauthorized else ErrorSeverity.ERROR,
            suggested_actions=_CMS_ACTIONS.get(status_code or 0, _CMS_DEFAULT_ACTIONS),
            technical_details=_details(
                ("Collection", collection),
                ("Item", item_id),
                ("Operation", operation),
                ("Status", status_code),
                ("Error", _describe(original_error)),
            ),
            recoverable=not unauthorized,
        )
        self.collection = collection
        self.item_id = item_id
        self.operation = operation
        self.status_code = status_code
        self.original_error = original_error


class ValidationError(AppError):
    """Upstream or CMS data that does not have the expected shape."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        constraints: list[str] | None = None,
    ) -> None:
        actions = ["Review the input requirements"]
        actions += [f"Ensure: {constraint}" for constraint in constraints or []]

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=actions,
            technical_details=_details(
                ("Field", field),
                ("Value", None if value is None else str(value)[:100]),
            ),
        )
        self.field = field
        self.value = value
        self.constraints = constraints or []


class ConfigurationError(AppError):
    """Settings a job cannot run without are missing or invalid."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        current_value: Any = None,
        expected: str | None = None,
    ) -> None:
        actions = [
            "Check the configuration file and environment variables",
            "Reset to default values if needed",
        ]
        if expected:
            actions.append(f"Expected: {expected}")

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            suggested_actions=actions,
            technical_details=_details(("Setting", setting), ("Current", current_value)),
            recoverable=False,
        )
        self.setting = setting
        self.current_value = current_value
        self.expected = expected


class SyncError(AppError):
    """One record was skipped; the batch it belongs to carried on."""

    def __init__(
        self,
        message: str,
        job_name: str | None = None,
        record_id: str | None = None,
        title: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.SYNC,
            severity=ErrorSeverity.WARNING,
            suggested_actions=[
                "The record was skipped; the rest of the batch continued",
                "Inspect the record in the CMS",
                "It will be retried on the next scheduled run",
            ],
            technical_details=_details(
                ("Job", job_name),
                ("Record", record_id),
                ("Title", title),
                ("Error", _describe(original_error)),
            ),
        )
        self.job_name = job_name
        self.record_id = record_id
        self.title = title
        self.original_error = original_error


HTTP_STATUS_MESSAGES: dict[int, str] = {
    400: "The request was invalid. Please check the payload.",
    401: "Authentication required. Please check the credentials.",
    403: "Access denied. The account lacks permission for this resource.",
    404: "The requested resource was not found.",
    408: "The request timed out. Please try again.",
    429: "Too many requests. Please wait before trying again.",
    500: "The server encountered an error. Please try again later.",
    502: "The server is temporarily unavailable. Please try again later.",
    503: "The service is temporarily unavailable. Please try again later.",
    504: "The server took too long to respond. Please try again.",
}

# Checked in order; subclasses first
_TRANSPORT_MESSAGES: list[tuple[type[httpx.RequestError], str]] = [
    (httpx.ConnectError, "Unable to connect to the API. Please check the network connection."),
    (httpx.TimeoutException, "The request timed out. The API may be slow or unavailable."),
    (httpx.RequestError, "A network error occurred. Please check the connection."),
]


class ErrorHandlingService:
    """Converts, logs and remembers errors raised during a job run."""

    def __init__(self) -> None:
        self._history: deque[tuple[float, AppError]] = deque(maxlen=HISTORY_SIZE)

    def handle_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> UserFriendlyError:
        """Classify ``error``, log it and record it in the history.

        Args:
            error: The exception that occurred
            operation: What was being done, e.g. ``update_item``
            component: The job or service name
            context: Extra fields; ``collection`` and ``item_id`` mark CMS
                failures, ``url``, ``field`` and ``value`` enrich the details

        Returns:
            User-friendly error representation
        """
        app_error = self._to_app_error(error, operation, component, context or {})
        self._log(app_error, operation, component, context)
        self._history.append((time.time(), app_error))
        return app_error.to_user_friendly()

    def _to_app_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any],
    ) -> AppError:
        if isinstance(error, AppError):
            return error

        if isinstance(error, httpx.HTTPStatusError):
            return self._from_status_error(error, operation, context)

        for error_type, message in _TRANSPORT_MESSAGES:
            if isinstance(error, error_type):
                return NetworkError(message, original_error=error, url=context.get("url"))

        # JSONDecodeError subclasses ValueError
        if isinstance(error, json.JSONDecodeError):
            return ValidationError("Invalid JSON format. The response could not be parsed.", field="json_content")
        if isinstance(error, (ValueError, KeyError)):
            return ValidationError(
                f"Unexpected record content: {error}",
                field=context.get("field"),
                value=context.get("value"),
            )
        if isinstance(error, TypeError):
            return ValidationError(f"Invalid data type: {error}", field=context.get("field"))

        return AppError(
            "An unexpected error occurred.",
            technical_details=_describe(error),
            context=ErrorContext(operation=operation, component=component, details=context),
        )

    @staticmethod
    def _from_status_error(
        error: httpx.HTTPStatusError,
        operation: str,
        context: dict[str, Any],
    ) -> AppError:
        status_code = error.response.status_code
        message = HTTP_STATUS_MESSAGES.get(status_code, f"HTTP error {status_code} occurred.")
        if context.get("collection"):
            return CmsError(
                message,
                collection=context["collection"],
                item_id=context.get("item_id"),
                operation=operation,
                status_code=status_code,
                original_error=error,
            )
        return NetworkError(
            message,
            original_error=error,
            url=str(error.request.url) if error.request else None,
            status_code=status_code,
        )

    @staticmethod
    def _log(error: AppError, operation: str, component: str, context: dict[str, Any] | None) -> None:
        emit = log.warning if error.severity == ErrorSeverity.WARNING else log.error
        emit(
            "Error occurred",
            error_message=error.message,
            category=error.category.value,
            severity=error.severity.value,
            operation=operation,
            component=component,
            technical_details=error.technical_details,
            recoverable=error.recoverable,
            context=context,
        )

    def get_recent_errors(self, count: int = 10) -> list[AppError]:
        """The last ``count`` errors, oldest first."""
        return [error for _, error in list(self._history)[-count:]]

    def get_error_count_by_category(self) -> dict[ErrorCategory, int]:
        counts: dict[ErrorCategory, int] = {}
        for _, error in self._history:
            counts[error.category] = counts.get(error.category, 0) + 1
        return counts

    def clear_history(self) -> None:
        """Forget previous errors (called at the start of each job run)."""
        self._history.clear()

    def create_user_message(self, error: UserFriendlyError, include_suggestions: bool = True) -> str:
        """Render an error for the terminal, with at most three suggestions."""
        lines = [error.message]
        if include_suggestions and error.suggested_actions:
            lines.append("\nSuggested actions:")
            lines.extend(f"  • {action}" for action in error.suggested_actions[:MAX_SUGGESTIONS])
        return "\n".join(lines)


_error_service: ErrorHandlingService | None = None


def get_error_service() -> ErrorHandlingService:
    """Process-wide error service shared by the jobs and the CLI."""
    global _error_service
    if _error_service is None:
        _error_service = ErrorHandlingService()
    return _error_service


def handle_error(
    error: Exception,
    operation: str,
    component: str,
    context: dict[str, Any] | None = None,
) -> UserFriendlyError:
    return get_error_service().handle_error(error, operation, component, context)
