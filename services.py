# services.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Sequence

from domain import (
    DEFAULT_SUNDAY_RATE,
    EXCESS_VARIABLE_ID,
    SUNDAY_VARIABLE_ID,
    AppState,
    Shift,
    ShiftCategory,
    ShiftDraft,
    ShiftType,
    ShiftVariable,
    VariableKind,
    default_catalog,
)

logger = logging.getLogger(__name__)

BASELINE_MINUTES = 480
# (width of the tier in excess minutes, multiplier); None = unbounded
EXCESS_TIERS = ((60, 1.25), (30, 1.50), (None, 1.00))

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"

DAY_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
TIME_RE = re.compile(r"\d{2}:\d{2}(:\d{2})?")


def round2(value: float) -> float:
    """Half-up rounding to cents on the exact binary value of ``value``."""
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def parse_instant(day: str | None, hhmm: str | None) -> datetime | None:
    """Combines YYYY-MM-DD and HH:MM (seconds optional) into a naive local datetime."""
    if not isinstance(day, str) or not isinstance(hhmm, str) \
            or not DAY_RE.fullmatch(day) or not TIME_RE.fullmatch(hhmm):
        return None
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(f"{day} {hhmm}", fmt)
        except (TypeError, ValueError):
            continue
    return None


def parse_date(day: str | None) -> date | None:
    if not isinstance(day, str) or not DAY_RE.fullmatch(day):
        return None
    try:
        return datetime.strptime(day, "%Y-%m-%d").date()
    except ValueError:
        return None


def is_sunday(day: str | None) -> bool:
    try:
        y, m, d = str(day).split("-")
        return date(int(y), int(m), int(d)).weekday() == 6
    except (TypeError, ValueError):
        return False


def calculate_hours(start_date: str, start_time: str, end_date: str, end_time: str) -> float:
    """Hours between both instants, 2 decimals, never negative. 0 on bad input."""
    start = parse_instant(start_date, start_time)
    end = parse_instant(end_date, end_time)
    if start is None or end is None:
        return 0.0
    diff_hours = (end - start).total_seconds() / 3600.0
    return max(0.0, round2(diff_hours))


def calculate_excess_minutes(start_date: str, start_time: str, real_end_date: str, real_end_time: str) -> float:
    """
    Compensated minutes beyond the 8 h baseline, accumulated by tiers:
    excess minutes 1-60 count x1.25, 61-90 count x1.50 and the rest x1.00.
    """
    start = parse_instant(start_date, start_time)
    real_end = parse_instant(real_end_date, real_end_time)
    if start is None or real_end is None:
        return 0.0

    remaining = (real_end - start).total_seconds() / 60.0 - BASELINE_MINUTES
    if remaining <= 0:
        return 0.0

    compensated = 0.0
    for width, multiplier in EXCESS_TIERS:
        portion = remaining if width is None else min(remaining, width)
        compensated += portion * multiplier
        remaining -= portion
        if remaining <= 0:
            break
    return round2(compensated)


def calculate_earnings(
    start_date: str,
    hours: float,
    shift_type: ShiftType,
    applied_variables: Iterable[ShiftVariable],
    sunday_rate: float = DEFAULT_SUNDAY_RATE,
) -> float:
    """Daily (or Sunday) base plus every applied variable; LIBRE earns nothing."""
    if shift_type.category is ShiftCategory.LIBRE:
        return 0.0

    base = sunday_rate if is_sunday(start_date) else (shift_type.daily_rate or 0.0)
    extra = 0.0
    for v in applied_variables:
        # the Sunday bonus is already the base rate
        if v.id == SUNDAY_VARIABLE_ID:
            continue
        if v.kind is VariableKind.HOURLY_BONUS:
            extra += v.amount * hours
        elif v.kind is VariableKind.FIXED:
            extra += v.amount
    return round2(base + extra)


@dataclass(frozen=True)
class AssignmentContext:
    hours: float
    start_date: str
    start_time: str
    real_end_time: str
    category: ShiftCategory


def dcp_target(context: AssignmentContext) -> int:
    """Number of v_dcp occurrences a travel leg is entitled to."""
    # HH:MM is zero-padded, so string order is time order
    if context.category is ShiftCategory.IDA:
        return 1 if context.start_time >= "15:00" else 2
    if context.category is ShiftCategory.VUELTA:
        if context.real_end_time > "21:00":
            return 2
        if context.real_end_time >= "13:00":
            return 1
    return 0


def auto_assign_variables(current_ids: Sequence[str], context: AssignmentContext) -> list[str]:
    """
    Returns the next variable multiset for a shift.

    Special categories clear the list. Otherwise the automatic variables
    (v_sun, v_tl1, v_tl2, v_pi, v_dcp, v_dsp) are added or removed to match
    the context and manual variables are left where they are. Running it
    twice with the same context changes nothing.
    """
    if context.category.is_special:
        return []

    ids = list(current_ids)
    hours = context.hours
    flags = (
        (SUNDAY_VARIABLE_ID, is_sunday(context.start_date)),
        ("v_tl1", 8 < hours <= 9),
        ("v_tl2", hours > 9),
        ("v_pi", hours > 9.5),
    )
    for var_id, wanted in flags:
        if wanted and var_id not in ids:
            ids.append(var_id)
        elif not wanted and var_id in ids:
            ids = [i for i in ids if i != var_id]

    counted = (
        ("v_dcp", dcp_target(context)),
        ("v_dsp", 1 if context.category is ShiftCategory.IDA_VUELTA else 0),
    )
    for var_id, target in counted:
        if ids.count(var_id) != target:
            ids = [i for i in ids if i != var_id] + [var_id] * target
    return ids


class ShiftCalculator:
    """Applies the engine to shifts using the configured catalog."""
    def __init__(self, shift_types: Iterable[ShiftType], variables: Iterable[ShiftVariable]):
        self.shift_types = {t.id: t for t in shift_types}
        self.variables = {v.id: v for v in variables}

    @property
    def sunday_rate(self) -> float:
        sunday = self.variables.get(SUNDAY_VARIABLE_ID)
        return sunday.amount if sunday is not None else DEFAULT_SUNDAY_RATE

    def shift_type(self, shift_type_id: str | None) -> ShiftType | None:
        return self.shift_types.get(shift_type_id or "")

    def applied_variables(self, variable_ids: Iterable[str]) -> list[ShiftVariable]:
        applied = []
        for var_id in variable_ids:
            v = self.variables.get(var_id)
            if v is None:
                logger.warning(f"Variable desconocida ignorada: {var_id}")
                continue
            applied.append(v)
        return applied

    def resolve_draft(self, draft: ShiftDraft, today: date | None = None) -> Shift:
        """Fills the blanks of a draft with the entry-form defaults."""
        default_day = (today or date.today()).isoformat()
        start_date = draft.start_date or default_day
        end_date = draft.end_date or start_date
        end_time = draft.end_time or DEFAULT_END_TIME
        real_end_date = draft.real_end_date or end_date
        real_end_time = draft.real_end_time or end_time

        # fechas de fin nunca anteriores al inicio
        if start_date > end_date:
            end_date = start_date
        if start_date > real_end_date:
            real_end_date = start_date

        return Shift(
            id=draft.id,
            start_date=start_date,
            start_time=draft.start_time or DEFAULT_START_TIME,
            end_date=end_date,
            end_time=end_time,
            real_end_date=real_end_date,
            real_end_time=real_end_time,
            shift_type_id=draft.shift_type_id or "",
            variable_ids=list(draft.variable_ids),
            notes=(draft.notes or "").strip() or None,
        )

    def complete_shift(self, shift: Shift) -> Shift:
        """Recomputes variables, hours, excess and earnings of a shift in place."""
        shift_type = self.shift_type(shift.shift_type_id)
        if shift_type is None:
            raise ValueError(f"Tipo de turno no válido: {shift.shift_type_id!r}")

        real_end_date, real_end_time = shift.effective_end
        hours = calculate_hours(shift.start_date, shift.start_time, real_end_date, real_end_time)
        category = shift_type.category
        context = AssignmentContext(
            hours=hours,
            start_date=shift.start_date,
            start_time=shift.start_time,
            real_end_time=real_end_time,
            category=category,
        )
        shift.variable_ids = auto_assign_variables(shift.variable_ids, context)
        shift.real_end_date = real_end_date
        shift.real_end_time = real_end_time
        shift.hours_worked = hours
        shift.excess_minutes = calculate_excess_minutes(
            shift.start_date, shift.start_time, real_end_date, real_end_time
        )
        if category.is_special:
            shift.total_earnings = 0.0
        else:
            shift.total_earnings = calculate_earnings(
                shift.start_date, hours, shift_type,
                self.applied_variables(shift.variable_ids), self.sunday_rate,
            )
        return shift

    def build_shift(self, draft: ShiftDraft, today: date | None = None) -> Shift:
        return self.complete_shift(self.resolve_draft(draft, today))


def restore_state(payload: Any) -> AppState:
    """
    Parses a backup (``shifts``, ``shiftTypes``, ``variables``) and recomputes
    the derived fields of every shift. Shifts whose type is not in the
    backup, or whose start date is not a YYYY-MM-DD date, are dropped.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("shifts"), list) \
            or not isinstance(payload.get("shiftTypes"), list):
        raise ValueError("El archivo no parece ser una copia de seguridad válida.")

    try:
        shift_types = [ShiftType.from_dict(t) for t in payload["shiftTypes"]]
        if payload.get("variables"):
            variables = [ShiftVariable.from_dict(v) for v in payload["variables"]]
        else:
            variables = default_catalog()[1]
        shifts = [Shift.from_dict(s) for s in payload["shifts"]]
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Copia de seguridad con datos incorrectos: {e}") from e

    calc = ShiftCalculator(shift_types, variables)
    restored = []
    for s in shifts:
        if parse_date(s.start_date) is None:
            logger.warning(f"Turno descartado: fecha de inicio incorrecta {s.start_date!r}")
            continue
        try:
            restored.append(calc.complete_shift(s))
        except ValueError as e:
            logger.warning(f"Turno del {s.start_date} descartado: {e}")
    return AppState(shifts=restored, shift_types=shift_types, variables=variables)


@dataclass
class VariableCount:
    id: str
    name: str
    count: int


@dataclass
class PeriodSummary:
    year: int
    month: int | None
    shift_count: int = 0
    total_earnings: float = 0.0
    total_excess: float = 0.0
    libre_count: int = 0
    vacaciones_count: int = 0
    reserva_count: int = 0
    formacion_count: int = 0
    variable_counts: list[VariableCount] = field(default_factory=list)


def period_shifts(shifts: Iterable[Shift], year: int, month: int | None = None) -> list[Shift]:
    """Shifts starting in the given year, or in the given month of it."""
    selected = []
    for s in shifts:
        y, m = s.year_month
        if y == year and (month is None or m == month):
            selected.append(s)
    return selected


def summarize_period(
    shifts: Iterable[Shift],
    shift_types: Iterable[ShiftType],
    variables: Iterable[ShiftVariable],
    year: int,
    month: int | None = None,
) -> PeriodSummary:
    """Monthly (or yearly when month is None) totals and counters."""
    selected = period_shifts(shifts, year, month)
    categories = {t.id: t.category for t in shift_types}

    summary = PeriodSummary(year=year, month=month, shift_count=len(selected))
    summary.total_earnings = round2(sum(s.total_earnings for s in selected))
    summary.total_excess = round2(sum(s.excess_minutes or 0.0 for s in selected))

    for s in selected:
        category = categories.get(s.shift_type_id)
        if category is ShiftCategory.LIBRE:
            summary.libre_count += 1
        elif category is ShiftCategory.VACACIONES:
            summary.vacaciones_count += 1
        elif category is ShiftCategory.RESERVA:
            summary.reserva_count += 1
        elif category is ShiftCategory.FORMACION:
            summary.formacion_count += 1

    for v in variables:
        if v.id == EXCESS_VARIABLE_ID:
            # EXCESOS cuenta días con exceso, no apariciones
            count = sum(1 for s in selected if (s.excess_minutes or 0) > 0)
        else:
            count = sum(s.variable_count(v.id) for s in selected)
        summary.variable_counts.append(VariableCount(id=v.id, name=v.name, count=count))
    return summary
