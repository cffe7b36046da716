# domain.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

SUNDAY_VARIABLE_ID = "v_sun"
EXCESS_VARIABLE_ID = "v_exc"
CORE_VARIABLE_IDS = ("v_exc", "v_tl1", "v_tl2", "v_tdl", "v_pi", "v_dcp", "v_dsp", "v_de", "v_sun")
DEFAULT_SUNDAY_RATE = 92.25


class ShiftCategory(str, Enum):
    """Closed set of shift categories; configured names map here once."""
    REGULAR = "REGULAR"
    LIBRE = "LIBRE"
    VACACIONES = "VACACIONES"
    IDA = "IDA"
    VUELTA = "VUELTA"
    IDA_VUELTA = "IDA/VUELTA"
    RESERVA = "RESERVA"
    FORMACION = "FORMACIÓN"

    @classmethod
    def from_name(cls, name: str | None) -> "ShiftCategory":
        key = (name or "").upper()
        for category in cls:
            if category is not cls.REGULAR and category.value == key:
                return category
        return cls.REGULAR

    @property
    def is_special(self) -> bool:
        """Special days earn nothing and take no variables."""
        return self in (ShiftCategory.LIBRE, ShiftCategory.VACACIONES)


class VariableKind(str, Enum):
    FIXED = "fixed"
    HOURLY_BONUS = "hourly_bonus"


@dataclass
class ShiftType:
    id: str
    name: str
    daily_rate: float = 0.0
    color: str = "bg-gray-100 text-gray-800"

    @property
    def category(self) -> ShiftCategory:
        return ShiftCategory.from_name(self.name)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "dailyRate": self.daily_rate, "color": self.color}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ShiftType":
        return ShiftType(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            daily_rate=float(data.get("dailyRate") or 0.0),
            color=data.get("color") or "bg-gray-100 text-gray-800",
        )


@dataclass
class ShiftVariable:
    """A bonus definition: added once (fixed) or per worked hour (hourly_bonus)."""
    id: str
    name: str
    kind: VariableKind = VariableKind.FIXED
    amount: float = 0.0

    @property
    def is_core(self) -> bool:
        return self.id in CORE_VARIABLE_IDS

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.kind.value, "amount": self.amount}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ShiftVariable":
        return ShiftVariable(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            kind=VariableKind(data.get("type", VariableKind.FIXED.value)),
            amount=float(data.get("amount") or 0.0),
        )


@dataclass
class Shift:
    """A recorded work period. The last three fields are derived at save time."""
    start_date: str
    start_time: str
    end_date: str
    end_time: str
    shift_type_id: str
    real_end_date: str | None = None
    real_end_time: str | None = None
    variable_ids: list[str] = field(default_factory=list)
    notes: str | None = None
    id: int | None = None
    hours_worked: float = 0.0
    total_earnings: float = 0.0
    excess_minutes: float = 0.0

    @property
    def effective_end(self) -> tuple[str, str]:
        """Real end when recorded, theoretical end otherwise."""
        return (self.real_end_date or self.end_date, self.real_end_time or self.end_time)

    @property
    def year_month(self) -> tuple[int, int]:
        y, m, _ = self.start_date.split("-")
        return (int(y), int(m))

    def variable_count(self, variable_id: str) -> int:
        return self.variable_ids.count(variable_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startDate": self.start_date,
            "startTime": self.start_time,
            "endDate": self.end_date,
            "endTime": self.end_time,
            "realEndDate": self.real_end_date,
            "realEndTime": self.real_end_time,
            "shiftTypeId": self.shift_type_id,
            "variableIds": list(self.variable_ids),
            "notes": self.notes or "",
            "hoursWorked": self.hours_worked,
            "totalEarnings": self.total_earnings,
            "excessMinutes": self.excess_minutes,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Shift":
        # Los ids de las copias antiguas son cadenas ("shift_..."); se reasignan al guardar
        raw_id = data.get("id")
        return Shift(
            id=raw_id if isinstance(raw_id, int) else None,
            start_date=data["startDate"],
            start_time=data["startTime"],
            end_date=data.get("endDate") or data["startDate"],
            end_time=data["endTime"],
            real_end_date=data.get("realEndDate") or None,
            real_end_time=data.get("realEndTime") or None,
            shift_type_id=data.get("shiftTypeId", ""),
            variable_ids=list(data.get("variableIds") or []),
            notes=data.get("notes") or None,
            hours_worked=float(data.get("hoursWorked") or 0.0),
            total_earnings=float(data.get("totalEarnings") or 0.0),
            excess_minutes=float(data.get("excessMinutes") or 0.0),
        )


@dataclass
class ShiftDraft:
    """Partial shift as it arrives from a form, a calendar click or a text parser."""
    start_date: str | None = None
    start_time: str | None = None
    end_date: str | None = None
    end_time: str | None = None
    real_end_date: str | None = None
    real_end_time: str | None = None
    shift_type_id: str | None = None
    variable_ids: list[str] = field(default_factory=list)
    notes: str | None = None
    id: int | None = None

    @staticmethod
    def from_shift(shift: Shift) -> "ShiftDraft":
        return ShiftDraft(
            start_date=shift.start_date,
            start_time=shift.start_time,
            end_date=shift.end_date,
            end_time=shift.end_time,
            real_end_date=shift.real_end_date,
            real_end_time=shift.real_end_time,
            shift_type_id=shift.shift_type_id,
            variable_ids=list(shift.variable_ids),
            notes=shift.notes,
            id=shift.id,
        )


@dataclass
class AppState:
    shifts: list[Shift] = field(default_factory=list)
    shift_types: list[ShiftType] = field(default_factory=list)
    variables: list[ShiftVariable] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shifts": [s.to_dict() for s in self.shifts],
            "shiftTypes": [t.to_dict() for t in self.shift_types],
            "variables": [v.to_dict() for v in self.variables],
        }


DEFAULT_SHIFT_TYPES = (
    ShiftType("t_normal", "NORMAL", 15.0, "bg-blue-100 text-blue-800"),
    ShiftType("t_libre", "LIBRE", 0.0, "bg-emerald-100 text-emerald-800"),
    ShiftType("t_vacaciones", "VACACIONES", 0.0, "bg-rose-100 text-rose-800"),
    ShiftType("t_ida", "IDA", 15.0, "bg-indigo-100 text-indigo-800"),
    ShiftType("t_vuelta", "VUELTA", 15.0, "bg-purple-100 text-purple-800"),
    ShiftType("t_ida_vuelta", "IDA/VUELTA", 15.0, "bg-violet-100 text-violet-800"),
    ShiftType("t_reserva", "RESERVA", 15.0, "bg-amber-100 text-amber-800"),
    ShiftType("t_formacion", "FORMACIÓN", 15.0, "bg-cyan-100 text-cyan-800"),
)

DEFAULT_VARIABLES = (
    ShiftVariable("v_exc", "EXCESOS", VariableKind.FIXED, 0.0),
    ShiftVariable("v_tl1", "TL1", VariableKind.FIXED, 0.0),
    ShiftVariable("v_tl2", "TL2", VariableKind.FIXED, 0.0),
    ShiftVariable("v_tdl", "TDL", VariableKind.FIXED, 0.0),
    ShiftVariable("v_pi", "PI", VariableKind.FIXED, 0.0),
    ShiftVariable("v_dcp", "DIETA C/P", VariableKind.FIXED, 0.0),
    ShiftVariable("v_dsp", "DIETA S/P", VariableKind.FIXED, 0.0),
    ShiftVariable("v_de", "DE", VariableKind.FIXED, 0.0),
    ShiftVariable("v_sun", "DOMINGO", VariableKind.FIXED, DEFAULT_SUNDAY_RATE),
)


def default_catalog() -> tuple[list[ShiftType], list[ShiftVariable]]:
    """Fresh copies of the default shift types and variables."""
    return [replace(t) for t in DEFAULT_SHIFT_TYPES], [replace(v) for v in DEFAULT_VARIABLES]
