"""Dashboard session — one pipeline state, async file reads, no stale results.

Every call to :meth:`DashboardSession.process` takes a new request id.  The
file is read in a worker thread (the only suspension point); when it comes
back, the outcome is published only if no newer request was started and the
request was not cancelled in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from invoice_dashboard.io import read_raw_rows
from invoice_dashboard.localization import Locale, get_locale
from invoice_dashboard.models import (
    ColumnSpec,
    DashboardResult,
    Failure,
    FailureReason,
    Idle,
    Loading,
    PipelineState,
    RawRow,
    Success,
)
from invoice_dashboard.pipeline import run_rows_safely

logger = logging.getLogger(__name__)

Reader = Callable[[Path], tuple[list[str], list[RawRow]]]
Listener = Callable[[PipelineState], None]


class DashboardSession:
    """Holds the current :data:`PipelineState` of one dashboard."""

    def __init__(
        self,
        *,
        columns: ColumnSpec | None = None,
        locale: Locale | str | None = None,
        dayfirst: bool = False,
        reader: Reader = read_raw_rows,
    ) -> None:
        self.columns = columns or ColumnSpec()
        self.locale = get_locale(locale)
        self.dayfirst = dayfirst
        self._reader = reader
        self._state: PipelineState = Idle()
        self._latest = 0
        self._listeners: list[Listener] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def latest_request(self) -> int:
        return self._latest

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* on every published state; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_state(self, state: PipelineState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _publish(self, request_id: int, state: PipelineState) -> bool:
        if request_id != self._latest:
            logger.debug("Discarding result of request %d (latest is %d)", request_id, self._latest)
            return False
        self._set_state(state)
        return True

    def cancel(self) -> None:
        """Abandon the request in flight; its result will never be published."""
        self._latest += 1
        self._set_state(Idle())

    async def process(self, path: Path) -> Success | Failure | None:
        """Read and process *path*.

        Returns the published state, or ``None`` when the result was
        discarded because a newer request (or a cancel) superseded it.
        """
        self._latest += 1
        request_id = self._latest
        self._set_state(Loading(request_id))

        try:
            header, rows = await asyncio.to_thread(self._reader, Path(path))
        except asyncio.CancelledError:
            if request_id == self._latest:
                self._set_state(Idle())
            raise
        except (FileNotFoundError, ValueError, OSError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            outcome: DashboardResult | FailureReason = FailureReason(
                kind="io", detail={"reason": str(exc)}
            )
        except Exception as exc:
            logger.exception("Unexpected error while reading %s", path)
            outcome = FailureReason(kind="processing", detail={"reason": str(exc)})
        else:
            if request_id != self._latest:
                logger.debug("Request %d superseded before processing", request_id)
                return None
            outcome = run_rows_safely(
                rows,
                header,
                columns=self.columns,
                locale=self.locale,
                dayfirst=self.dayfirst,
            )

        state: Success | Failure
        if isinstance(outcome, DashboardResult):
            state = Success(request_id, outcome)
        else:
            state = Failure(request_id, outcome)
        return state if self._publish(request_id, state) else None

    def message(self) -> str:
        """User-facing text for the current state ("" while idle or loading)."""
        state = self._state
        if isinstance(state, Failure):
            return state.reason.message(self.locale)
        if isinstance(state, Success):
            return self.locale.message("success")
        return ""
