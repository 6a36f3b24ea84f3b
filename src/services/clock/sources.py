"""
Clock Sources

DESIGN DECISION: "Today" is never read ad hoc. Every operation that
needs the current date asks a clock source, and the source decides
which calendar the ledger lives in (Asia/Hong_Kong by default).

Two sources exist:
1. TimezoneClock - computes the date locally in the configured timezone
2. HttpClockSource - asks a time server for {currentDate, currentMonth}

Both are wrapped by ResilientClock, which substitutes the device date
when the source fails and flags the reading as a fallback. A failing
clock source never fails a user operation.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from src.config import get_settings
from src.models.ledger import ClockReading
from src.periods.keys import month_key, parse_day, validate_month_key


logger = structlog.get_logger("ledger.clock")


class ClockUnavailableError(Exception):
    """The clock source could not produce a date."""
    pass


class ClockSourceInterface(ABC):
    """Anything that can report the current calendar date."""

    @abstractmethod
    async def read(self) -> ClockReading:
        """
        Read the current date.

        Returns:
            ClockReading for today in the source's calendar

        Raises:
            ClockUnavailableError: If the source cannot answer
        """
        pass


class TimezoneClock(ClockSourceInterface):
    """Current date in a fixed IANA timezone."""

    def __init__(
        self,
        timezone: str = "Asia/Hong_Kong",
        now: Optional[Callable[[ZoneInfo], datetime]] = None,
    ):
        self._zone = ZoneInfo(timezone)
        self._now = now or (lambda zone: datetime.now(zone))

    async def read(self) -> ClockReading:
        try:
            today = self._now(self._zone).date()
        except (OverflowError, OSError, ValueError) as e:
            raise ClockUnavailableError(f"Cannot read system time: {e}")
        return ClockReading(date=today, month_key=month_key(today))


class HttpClockSource(ClockSourceInterface):
    """
    Time server client.

    Expects a JSON body shaped like:
        {"currentDate": "2025-01-31", "currentMonth": "2025-01"}
    currentMonth is optional and derived from currentDate when absent.
    """

    def __init__(self, url: str, timeout_seconds: float = 5.0):
        self._url = url
        self._timeout = timeout_seconds

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.5),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def _fetch(self) -> dict:
        response = requests.get(
            self._url,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    async def read(self) -> ClockReading:
        try:
            body = self._fetch()
        except (requests.RequestException, ValueError) as e:
            raise ClockUnavailableError(f"Time server request failed: {e}")

        if not isinstance(body, dict) or not isinstance(body.get("currentDate"), str):
            raise ClockUnavailableError(f"Malformed time server response: {body!r}")

        try:
            today = parse_day(body["currentDate"])
            current_month = body.get("currentMonth") or month_key(today)
            validate_month_key(current_month)
        except (AttributeError, TypeError, ValueError) as e:
            raise ClockUnavailableError(f"Malformed time server response: {e}")

        if current_month != month_key(today):
            raise ClockUnavailableError(
                f"Time server returned inconsistent month {current_month} for {today}"
            )
        return ClockReading(date=today, month_key=current_month)


class ResilientClock(ClockSourceInterface):
    """
    Clock that never fails.

    Reads the primary source; on ClockUnavailableError returns the
    device's local date with is_fallback=True and records the fallback.
    """

    def __init__(
        self,
        primary: ClockSourceInterface,
        audit_logger=None,
        device_today: Optional[Callable[[], date]] = None,
    ):
        self._primary = primary
        self._audit = audit_logger
        self._device_today = device_today or date.today

    async def read(self) -> ClockReading:
        try:
            return await self._primary.read()
        except ClockUnavailableError as e:
            today = self._device_today()
            logger.warning(
                "clock_fallback",
                reason=str(e),
                fallback_date=today.isoformat(),
            )
            if self._audit:
                await self._audit.log_clock_fallback(str(e), today)
            return ClockReading(date=today, month_key=month_key(today), is_fallback=True)


def create_clock(settings=None, audit_logger=None) -> ResilientClock:
    """
    Build the configured clock.

    Args:
        settings: Root Settings; loaded from the environment when None
        audit_logger: Receives clock fallback events
    """
    if settings is None:
        settings = get_settings()

    clock_settings = settings.clock
    if clock_settings.source == "http":
        primary: ClockSourceInterface = HttpClockSource(
            clock_settings.server_url,
            timeout_seconds=clock_settings.timeout_seconds,
        )
    else:
        primary = TimezoneClock(settings.app.timezone)
    return ResilientClock(primary, audit_logger=audit_logger)
