"""
Automatic Period Boundary Trigger

Runs once per session with the clock's current date and decides whether
a day or month boundary has been crossed since the last close.

DESIGN DECISION: The decision itself (evaluate_boundaries) is a pure
function of today's date and the persisted CloseMarkers. Nothing is kept
in module or process state, so the same inputs always give the same
transitions and repeated page loads on one day are no-ops.

Transitions:
    NORMAL -> DAY_BOUNDARY_CROSSED
        last_daily_close_date != today: close yesterday, then set the
        marker to today. If the close fails the marker is left alone so
        the next session retries.
    NORMAL -> MONTH_BOUNDARY_CROSSED
        today is the 1st and the previous month is neither marked closed
        nor archived: ask for confirmation, close the previous month and
        record it. A declined prompt records nothing and fires again on
        the next session of that day.
Both return to NORMAL once handled.
"""

import inspect
from datetime import date
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

from src.closing.engine import ClosingEngine
from src.ledger.repository import LedgerRepository
from src.models.ledger import BoundaryCheckResult, BoundaryState, CloseMarkers
from src.periods.keys import previous_day, previous_month_key
from src.services.clock import ClockSourceInterface


# Called with the month-key awaiting closure; returns whether to close it
ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]


def is_month_close_due(today: date, markers: CloseMarkers, previous_month_archived: bool) -> bool:
    if today.day != 1:
        return False
    previous = previous_month_key(today)
    return previous not in markers.closed_months and not previous_month_archived


def evaluate_boundaries(
    today: date,
    markers: CloseMarkers,
    previous_month_archived: bool = False,
) -> list[BoundaryState]:
    """
    Boundary states crossed as of today.

    Args:
        today: Current date from the clock
        markers: The user's persisted close markers
        previous_month_archived: Whether a MonthlyArchive exists for the
            month before today's

    Returns:
        Crossed boundaries in the order they must be handled (day first),
        or [NORMAL] when there is nothing to do
    """
    states = []
    if markers.last_daily_close_date != today:
        states.append(BoundaryState.DAY_BOUNDARY_CROSSED)
    if is_month_close_due(today, markers, previous_month_archived):
        states.append(BoundaryState.MONTH_BOUNDARY_CROSSED)
    return states or [BoundaryState.NORMAL]


class BoundaryTrigger:
    """Applies evaluate_boundaries against the store and the engine."""

    def __init__(
        self,
        engine: ClosingEngine,
        repository: LedgerRepository,
        clock: ClockSourceInterface,
        audit_logger=None,
    ):
        self._engine = engine
        self._repo = repository
        self._clock = clock
        self._audit = audit_logger

    async def _confirm(self, confirm: ConfirmCallback, month: str) -> bool:
        answer = confirm(month)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def run(
        self,
        username: str,
        confirm: Optional[ConfirmCallback] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BoundaryCheckResult:
        """
        Handle any crossed boundaries for a user.

        Args:
            username: Ledger owner
            confirm: Asked before a month close. When None the month close
                is only reported as due (month_close_due) and nothing is
                recorded, so a UI can ask and call again.
            correlation_id: Ties the audit events of one session together

        Raises:
            StorageError: If a close or marker write fails
        """
        reading = await self._clock.read()
        today = reading.date
        previous_month = previous_month_key(today)

        markers = await self._repo.get_markers(username)
        archived = False
        if today.day == 1:
            archived = await self._repo.monthly_archive_exists(username, previous_month)

        states = evaluate_boundaries(today, markers, archived)
        result = BoundaryCheckResult(
            today=today,
            states=states,
            used_fallback_clock=reading.is_fallback,
            correlation_id=correlation_id,
        )

        if BoundaryState.DAY_BOUNDARY_CROSSED in states:
            result.day_close = await self._engine.close_day(
                username, previous_day(today), correlation_id
            )
            markers = await self._repo.get_markers(username)
            markers.last_daily_close_date = today
            await self._repo.save_markers(username, markers)

        if BoundaryState.MONTH_BOUNDARY_CROSSED in states:
            if confirm is None:
                result.month_close_due = previous_month
            elif await self._confirm(confirm, previous_month):
                result.month_close = await self._engine.close_month(
                    username, previous_month, correlation_id
                )
                # Recorded even when there was nothing to close
                markers = await self._repo.get_markers(username)
                markers.closed_months.add(previous_month)
                await self._repo.save_markers(username, markers)
            else:
                result.month_close_declined = True
                if self._audit:
                    await self._audit.log_month_close_declined(
                        username, previous_month, correlation_id
                    )

        if self._audit:
            await self._audit.log_boundary_checked(
                username, today, [state.value for state in states], correlation_id
            )
        return result
