from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from openpyxl import Workbook

from invoice_dashboard.io import frame_to_raw_rows, load_table, read_raw_rows, write_json


def test_load_table_xlsx_keeps_cell_types(tmp_path: Path) -> None:
    path = tmp_path / "data.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.append(["fecha", "importe", "numero"])
    ws.append([45292, "1.000,00", 7])
    ws.append([datetime(2024, 1, 2), "5", 8])
    second = wb.create_sheet("Otra")
    second.append(["ignored"])
    wb.save(path)

    df = load_table(path)

    assert list(df.columns) == ["fecha", "importe", "numero"]
    assert df.iloc[0]["fecha"] == 45292
    assert isinstance(df.iloc[1]["fecha"], (datetime, pd.Timestamp))
    assert df.iloc[0]["importe"] == "1.000,00"


def test_load_table_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="not found"):
        load_table(tmp_path / "missing.xlsx")


def test_load_table_unsupported_suffix_raises(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text("{}", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported file type"):
        load_table(path)


def test_load_table_corrupt_workbook_raises_value_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"\x00\x01 definitely not a workbook")

    with pytest.raises(ValueError, match="Could not read workbook"):
        load_table(path)


def test_load_table_csv_retries_encodings(tmp_path: Path) -> None:
    path = tmp_path / "data.csv"
    path.write_bytes("fecha;importe;cliente\n2024-01-01;10.5;Peña\n".encode("latin-1"))

    df = load_table(path)

    assert list(df.columns) == ["fecha", "importe", "cliente"]
    assert df.iloc[0]["cliente"] == "Peña"


def test_frame_to_raw_rows_drops_blank_cells_and_rows() -> None:
    df = pd.DataFrame(
        {
            "a": [1, np.nan, 3],
            "b": ["x", np.nan, None],
            "c": [pd.Timestamp("2024-01-01"), pd.NaT, pd.NaT],
        }
    )

    rows = frame_to_raw_rows(df)

    assert rows == [
        {"a": 1.0, "b": "x", "c": datetime(2024, 1, 1)},
        {"a": 3.0},
    ]
    assert type(rows[0]["a"]) is float


def test_frame_to_raw_rows_unwraps_numpy_scalars() -> None:
    df = pd.DataFrame({"n": np.array([5, 6], dtype="int64")})

    rows = frame_to_raw_rows(df)

    assert rows == [{"n": 5}, {"n": 6}]
    assert type(rows[0]["n"]) is int


def test_read_raw_rows_returns_header_and_rows(tmp_path: Path) -> None:
    path = tmp_path / "data.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.append(["x", "y"])
    ws.append([1, None])
    wb.save(path)

    header, rows = read_raw_rows(path)

    assert header == ["x", "y"]
    assert rows == [{"x": 1}]


def test_write_json_is_sorted_atomic_and_nan_safe(tmp_path: Path) -> None:
    out = write_json(
        tmp_path / "nested" / "data.json",
        {"b": float("nan"), "a": [1.5, float("nan")], "when": datetime(2024, 1, 2, 3, 4)},
    )

    text = out.read_text(encoding="utf-8")
    assert json.loads(text) == {"a": [1.5, None], "b": None, "when": "2024-01-02T03:04:00"}
    assert text.index('"a"') < text.index('"b"')
    assert not (tmp_path / "nested" / "data.json.tmp").exists()


def test_write_json_rejects_unknown_objects(tmp_path: Path) -> None:
    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "x.json", {"obj": object()})
