"""I/O helpers — decode workbooks into raw rows, write JSON artifacts."""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from invoice_dashboard.models import RawRow

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def load_table(path: Path) -> pd.DataFrame:
    """Load the first sheet of an Excel file (or a CSV) as a raw DataFrame.

    Cell types are kept as decoded: numeric serial dates stay numbers and
    date-formatted cells come back as timestamps.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not supported or the file cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))

    if suffix in EXCEL_SUFFIXES:
        try:
            return read_excel(path, engine="openpyxl", sheet_name=0)
        except (ValueError, KeyError, OSError) as exc:
            raise ValueError(f"Could not read workbook {path}: {exc}") from exc
        except Exception as exc:  # zipfile.BadZipFile and friends from openpyxl
            raise ValueError(f"Could not read workbook {path} (corrupt file?)") from exc

    if suffix == ".xls":
        try:
            return read_excel(path, engine="xlrd", sheet_name=0)
        except ImportError as exc:
            raise ValueError(
                "Unsupported .xls input unless 'xlrd' is installed. "
                "Either convert to .xlsx or add dependency: pip install xlrd"
            ) from exc
        except Exception as exc:
            raise ValueError(f"Could not read workbook {path} (corrupt file?)") from exc

    if suffix == ".csv":
        last_exc: Exception | None = None
        for encoding in ("utf-8-sig", "utf-8", "latin-1"):
            try:
                return pd.read_csv(
                    path,
                    sep=None,
                    engine="python",
                    encoding=encoding,
                    encoding_errors="strict",
                )
            except (UnicodeDecodeError, pd.errors.ParserError) as exc:
                last_exc = exc
            except pd.errors.EmptyDataError:
                return pd.DataFrame()
        raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc

    raise ValueError(f"Unsupported file type: {suffix!r}. Use .xlsx, .xls or .csv")


def _python_value(val: Any) -> Any:
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    item = getattr(val, "item", None)
    if callable(item) and not isinstance(val, (str, bytes)):
        return item()
    return val


def _is_blank(val: Any) -> bool:
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def frame_to_raw_rows(df: pd.DataFrame) -> list[RawRow]:
    """One mapping per sheet row, header names as keys.

    Empty cells are left out of the mapping and rows with no cells at all
    are skipped, the way spreadsheet-to-JSON decoders behave.
    """
    columns = [str(c) for c in df.columns]
    rows: list[RawRow] = []
    for values in df.itertuples(index=False, name=None):
        row = {
            col: _python_value(val)
            for col, val in zip(columns, values)
            if not _is_blank(val)
        }
        if row:
            rows.append(row)
    return rows


def read_raw_rows(path: Path) -> tuple[list[str], list[RawRow]]:
    """Load *path* and return ``(header columns, raw rows)``."""
    df = load_table(path)
    rows = frame_to_raw_rows(df)
    logger.info("Read %d rows x %d columns from %s", len(rows), len(df.columns), path)
    return [str(c) for c in df.columns], rows


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _replace_nan(data: Any) -> Any:
    if isinstance(data, float) and math.isnan(data):
        return None
    if isinstance(data, dict):
        return {k: _replace_nan(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [_replace_nan(v) for v in data]
    return data


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic).

    ``nan`` values are written as ``null``.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        _replace_nan(data),
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
