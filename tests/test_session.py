from __future__ import annotations

import asyncio
import threading
from pathlib import Path

from invoice_dashboard import REQUIRED_COLUMNS
from invoice_dashboard.models import Failure, Idle, Loading, PipelineState, Success
from invoice_dashboard.session import DashboardSession

_GOOD_ROWS = [
    {REQUIRED_COLUMNS[0]: 45292, REQUIRED_COLUMNS[1]: "10", REQUIRED_COLUMNS[2]: 1},
    {REQUIRED_COLUMNS[0]: 45293, REQUIRED_COLUMNS[1]: "20", REQUIRED_COLUMNS[2]: 2},
]


def _reader(rows: list[dict[str, object]], header: list[str] | None = None):  # type: ignore[no-untyped-def]
    def _read(path: Path) -> tuple[list[str], list[dict[str, object]]]:
        del path
        return list(header if header is not None else REQUIRED_COLUMNS), rows

    return _read


def test_success_is_published_after_loading() -> None:
    session = DashboardSession(reader=_reader(_GOOD_ROWS))
    seen: list[PipelineState] = []
    session.subscribe(seen.append)

    state = asyncio.run(session.process(Path("ventas.xlsx")))

    assert isinstance(state, Success)
    assert session.state is state
    assert seen == [Loading(1), state]
    assert state.result.qc.rows_in == 2
    assert session.message() == "¡Archivo procesado con éxito!"


def test_structural_failure_is_a_failure_state() -> None:
    session = DashboardSession(reader=_reader(_GOOD_ROWS, header=["Otra"]), locale="en")

    state = asyncio.run(session.process(Path("x.xlsx")))

    assert isinstance(state, Failure)
    assert state.reason.kind == "missing_columns"
    assert session.message().startswith("Missing required columns")


def test_read_errors_are_io_failures() -> None:
    def _broken(path: Path) -> tuple[list[str], list[dict[str, object]]]:
        raise ValueError(f"Could not read workbook {path}")

    session = DashboardSession(reader=_broken)

    state = asyncio.run(session.process(Path("bad.xlsx")))

    assert isinstance(state, Failure)
    assert state.reason.kind == "io"
    assert "bad.xlsx" in session.message()


def test_stale_result_is_discarded_when_a_newer_file_is_selected() -> None:
    release = threading.Event()
    slow_rows = [{REQUIRED_COLUMNS[0]: 45292, REQUIRED_COLUMNS[1]: "999", REQUIRED_COLUMNS[2]: 9}]

    def _read(path: Path) -> tuple[list[str], list[dict[str, object]]]:
        if path.name == "slow.xlsx":
            release.wait(timeout=5)
            return list(REQUIRED_COLUMNS), slow_rows
        return list(REQUIRED_COLUMNS), _GOOD_ROWS

    session = DashboardSession(reader=_read)

    async def _scenario() -> tuple[object, object]:
        slow = asyncio.create_task(session.process(Path("slow.xlsx")))
        await asyncio.sleep(0)
        fast = await session.process(Path("fast.xlsx"))
        release.set()
        return await slow, fast

    slow_state, fast_state = asyncio.run(_scenario())

    assert slow_state is None
    assert isinstance(fast_state, Success)
    assert session.state is fast_state
    assert fast_state.request_id == 2
    assert session.latest_request == 2


def test_cancel_returns_to_idle_and_drops_the_result() -> None:
    release = threading.Event()

    def _read(path: Path) -> tuple[list[str], list[dict[str, object]]]:
        release.wait(timeout=5)
        return list(REQUIRED_COLUMNS), _GOOD_ROWS

    session = DashboardSession(reader=_read)
    seen: list[PipelineState] = []
    unsubscribe = session.subscribe(seen.append)

    async def _scenario() -> object:
        task = asyncio.create_task(session.process(Path("a.xlsx")))
        await asyncio.sleep(0)
        session.cancel()
        release.set()
        return await task

    result = asyncio.run(_scenario())
    unsubscribe()
    session.cancel()

    assert result is None
    assert seen == [Loading(1), Idle()]
    assert isinstance(session.state, Idle)


def test_unexpected_reader_error_is_a_processing_failure() -> None:
    def _crash(path: Path) -> tuple[list[str], list[dict[str, object]]]:
        raise RuntimeError(f"reader crashed on {path.name}")

    session = DashboardSession(reader=_crash, locale="en")
    seen: list[PipelineState] = []
    session.subscribe(seen.append)

    state = asyncio.run(session.process(Path("ventas.xlsx")))

    assert isinstance(state, Failure)
    assert state.reason.kind == "processing"
    assert session.state is state
    assert seen == [Loading(1), state]
    assert "reader crashed on ventas.xlsx" in session.message()
