"""Display strings — month/weekday names, summary labels, user messages.

Aggregation works on locale-neutral keys (``2024-03``, weekday ``0``..``6``);
everything a person reads is looked up here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Weekday indexes follow the Sunday-first convention: 0 = Sunday .. 6 = Saturday.


@dataclass(frozen=True)
class Locale:
    """One display language."""

    code: str
    months: tuple[str, ...]
    weekdays: tuple[str, ...]
    summary_labels: dict[str, str] = field(default_factory=dict)
    messages: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if len(self.months) != 12:
            raise ValueError(f"Locale {self.code!r} must define 12 month names")
        if len(self.weekdays) != 7:
            raise ValueError(f"Locale {self.code!r} must define 7 weekday names")

    def month_name(self, month: int) -> str:
        """Return the name for *month* (1-12)."""
        if not 1 <= month <= 12:
            raise ValueError(f"month must be in 1..12, got {month}")
        return self.months[month - 1]

    def weekday_name(self, index: int) -> str:
        """Return the name for weekday *index* (0 = Sunday)."""
        if not 0 <= index <= 6:
            raise ValueError(f"weekday must be in 0..6, got {index}")
        return self.weekdays[index]

    def month_label(self, year: int, month: int) -> str:
        return f"{self.month_name(month)} {year}"

    def summary_label(self, name: str) -> str:
        return self.summary_labels.get(name, name)

    def message(self, code: str, **detail: Any) -> str:
        """Render the user-facing message for *code*.

        Unknown codes fall back to the code itself so nothing is dropped.
        """
        template = self.messages.get(code)
        if template is None:
            return code
        if "columns" in detail and not isinstance(detail["columns"], str):
            detail = {**detail, "columns": ", ".join(str(c) for c in detail["columns"])}
        try:
            return template.format(**detail)
        except KeyError:
            return template


SPANISH = Locale(
    code="es",
    months=(
        "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
        "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
    ),
    weekdays=("Domingo", "Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado"),
    summary_labels={
        "mean": "Promedio",
        "max": "Máximo",
        "min": "Mínimo",
        "std_dev_population": "Desviación",
        "count": "Facturas válidas",
    },
    messages={
        "empty": "El archivo no contiene datos.",
        "missing_columns": "Faltan las siguientes columnas obligatorias: {columns}",
        "io": "Error al leer el archivo. Asegúrese de que no esté corrupto. ({reason})",
        "processing": "Error al procesar el archivo. Verifique el formato de los datos. ({reason})",
        "no_valid_data": (
            "No hay valores numéricos válidos en la columna {column} para graficar."
        ),
        "insufficient_data": (
            "Se requieren al menos dos puntos de datos para la regresión ({points} disponibles)."
        ),
        "no_duplicates": "No se detectaron facturas duplicadas.",
        "duplicates_found": "Se detectaron {count} facturas duplicadas.",
        "success": "¡Archivo procesado con éxito!",
    },
)

ENGLISH = Locale(
    code="en",
    months=(
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
    weekdays=("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"),
    summary_labels={
        "mean": "Mean",
        "max": "Maximum",
        "min": "Minimum",
        "std_dev_population": "Std. deviation",
        "count": "Valid invoices",
    },
    messages={
        "empty": "The file contains no data.",
        "missing_columns": "Missing required columns: {columns}",
        "io": "Could not read the file; make sure it is not corrupt. ({reason})",
        "processing": "Could not process the file; check the data format. ({reason})",
        "no_valid_data": "No valid numeric values in column {column} to chart.",
        "insufficient_data": (
            "At least two data points are required for the regression ({points} available)."
        ),
        "no_duplicates": "No duplicate invoices detected.",
        "duplicates_found": "Detected {count} duplicate invoices.",
        "success": "File processed successfully!",
    },
)

LOCALES: dict[str, Locale] = {SPANISH.code: SPANISH, ENGLISH.code: ENGLISH}
DEFAULT_LOCALE = SPANISH


def get_locale(code: str | Locale | None = None) -> Locale:
    """Look up a locale by code; ``None`` gives the default (Spanish)."""
    if code is None:
        return DEFAULT_LOCALE
    if isinstance(code, Locale):
        return code
    try:
        return LOCALES[code.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown locale: {code!r}. Use one of: {', '.join(sorted(LOCALES))}"
        ) from None
