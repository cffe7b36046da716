from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

import pandas as pd

from domain import Shift, ShiftType, ShiftVariable

MESES = ["Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio", "Julio",
         "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre"]
DIAS_CORTOS = ["lun", "mar", "mié", "jue", "vie", "sáb", "dom"]
MESES_CORTOS = ["ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sept", "oct", "nov", "dic"]


def eur(x: float) -> str:
    return f"{x:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_currency(amount: float) -> str:
    """es-ES euros: thousands are only grouped from five integer digits on."""
    text = eur(amount) if abs(amount) >= 10000 else f"{amount:.2f}".replace(".", ",")
    return f"{text} €"


def parse_day(day: str) -> date:
    y, m, d = day.split("-")
    return date(int(y), int(m), int(d))


def format_date(day: str) -> str:
    if not day:
        return ""
    d = parse_day(day)
    return f"{DIAS_CORTOS[d.weekday()]}, {d.day} {MESES_CORTOS[d.month - 1]}"


def month_label(year: int, month: int) -> str:
    return f"{MESES[month - 1]} {year}"


def sort_newest_first(shifts: Iterable[Shift]) -> list[Shift]:
    return sorted(shifts, key=lambda s: (s.start_date, s.start_time), reverse=True)


def group_by_month(shifts: Iterable[Shift]) -> dict[str, list[Shift]]:
    """{"Enero 2024": [...]} newest month first, newest shift first inside each month."""
    grouped: dict[str, list[Shift]] = {}
    for s in sort_newest_first(shifts):
        y, m = s.year_month
        grouped.setdefault(month_label(y, m), []).append(s)
    return grouped


def shifts_to_dataframe(
    shifts: Iterable[Shift],
    shift_types: Iterable[ShiftType],
    variables: Iterable[ShiftVariable],
) -> pd.DataFrame:
    types = {t.id: t for t in shift_types}
    names = {v.id: v.name for v in variables}
    rows = []
    for s in sort_newest_first(shifts):
        t = types.get(s.shift_type_id)
        bonos = [names[vid] for vid in s.variable_ids if vid in names]
        rows.append({
            "Fecha": format_date(s.start_date),
            "Teórico": f"{s.start_time} - {s.end_time}",
            "Real": s.real_end_time or "",
            "Excesos (min)": round(float(s.excess_minutes or 0.0), 2),
            "Tipo": t.name if t else "-",
            "Bonos": ", ".join(bonos) or "-",
            "Horas": round(float(s.hours_worked or 0.0), 2),
            "Total (€)": round(float(s.total_earnings or 0.0), 2),
        })
    return pd.DataFrame(rows)


@dataclass
class CalendarDay:
    day: str
    is_sunday: bool
    shifts: list[Shift] = field(default_factory=list)
    has_excess: bool = False
    is_special: bool = False


def month_calendar(
    year: int,
    month: int,
    shifts: Iterable[Shift],
    shift_types: Iterable[ShiftType],
) -> list[CalendarDay | None]:
    """
    Monday-first month grid. Leading None cells pad the first week; each day
    carries its shifts and the Sunday / excess / day-off flags.
    """
    categories = {t.id: t.category for t in shift_types}
    by_day: dict[str, list[Shift]] = {}
    for s in shifts:
        by_day.setdefault(s.start_date, []).append(s)

    first_weekday, days_in_month = calendar.monthrange(year, month)
    cells: list[CalendarDay | None] = [None] * first_weekday
    for n in range(1, days_in_month + 1):
        d = date(year, month, n)
        key = d.isoformat()
        day_shifts = by_day.get(key, [])
        cells.append(CalendarDay(
            day=key,
            is_sunday=d.weekday() == 6,
            shifts=day_shifts,
            has_excess=any((s.excess_minutes or 0) > 0 for s in day_shifts),
            is_special=any(
                categories[s.shift_type_id].is_special
                for s in day_shifts if s.shift_type_id in categories
            ),
        ))
    return cells
