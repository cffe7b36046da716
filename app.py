# app.py
# -----------------------------------------------
# ShiftCash: turnos, ganancias y excesos
# -----------------------------------------------
# Une configuración, repositorio y cálculo. La capa de presentación llama
# a preview() en cada cambio del formulario y a save_shift() al guardar.
from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path

from config import Settings, configure_logging, load_env, load_settings
from domain import AppState, Shift, ShiftCategory, ShiftDraft
from report import archive_month_pdf, build_month_pdf
from repository import ShiftRepository
from services import (
    AssignmentContext,
    PeriodSummary,
    ShiftCalculator,
    auto_assign_variables,
    calculate_excess_minutes,
    calculate_hours,
    restore_state,
    summarize_period,
)
from utils import group_by_month, month_calendar

logger = logging.getLogger(__name__)


class ShiftCashApp:
    def __init__(self, repo: ShiftRepository, settings: Settings | None = None):
        self.repo = repo
        self.settings = settings

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "ShiftCashApp":
        load_env(dotenv_path)
        configure_logging()
        settings = load_settings()
        return cls(ShiftRepository(settings.database_url), settings)

    def today(self) -> date:
        return self.settings.today() if self.settings else date.today()

    def calculator(self) -> ShiftCalculator:
        return ShiftCalculator(self.repo.list_shift_types(), self.repo.list_variables())

    # ---- formulario ----

    def preview(self, draft: ShiftDraft) -> Shift:
        """Live values for the form; without a shift type everything but the earnings is filled."""
        calc = self.calculator()
        shift = calc.resolve_draft(draft, self.today())
        if calc.shift_type(shift.shift_type_id) is not None:
            return calc.complete_shift(shift)
        real_end_date, real_end_time = shift.effective_end
        shift.hours_worked = calculate_hours(shift.start_date, shift.start_time, real_end_date, real_end_time)
        shift.variable_ids = auto_assign_variables(shift.variable_ids, AssignmentContext(
            hours=shift.hours_worked,
            start_date=shift.start_date,
            start_time=shift.start_time,
            real_end_time=real_end_time,
            category=ShiftCategory.REGULAR,
        ))
        shift.excess_minutes = calculate_excess_minutes(
            shift.start_date, shift.start_time, real_end_date, real_end_time
        )
        return shift

    def save_shift(self, draft: ShiftDraft) -> Shift:
        """Computes and stores a shift. Raises ValueError without a valid shift type."""
        shift = self.calculator().build_shift(draft, self.today())
        self.repo.save(shift)
        logger.info(
            f"Guardado {shift.start_date}: {shift.hours_worked}h · "
            f"{shift.total_earnings}€ · excesos {shift.excess_minutes} min"
        )
        return shift

    def edit_draft(self, shift_id: int) -> ShiftDraft:
        shift = self.repo.get(shift_id)
        if shift is None:
            raise ValueError(f"No existe el turno {shift_id}.")
        draft = ShiftDraft.from_shift(shift)
        # an untouched real end keeps following the theoretical end
        if (draft.real_end_date, draft.real_end_time) == (draft.end_date, draft.end_time):
            draft.real_end_date = draft.real_end_time = None
        return draft

    def day_draft(self, day: str) -> ShiftDraft:
        """Draft for an empty calendar day."""
        return ShiftDraft(start_date=day, end_date=day)

    def delete_shift(self, shift_id: int) -> bool:
        return self.repo.delete(shift_id)

    def recompute_all(self) -> int:
        """Re-saves every shift with the current catalog; returns how many changed."""
        calc = self.calculator()
        changed = 0
        for s in self.repo.list_all():
            before = (list(s.variable_ids), s.hours_worked, s.total_earnings, s.excess_minutes)
            try:
                calc.complete_shift(s)
            except ValueError as e:
                logger.warning(f"Turno {s.id} sin recalcular: {e}")
                continue
            if before != (s.variable_ids, s.hours_worked, s.total_earnings, s.excess_minutes):
                self.repo.update(s)
                changed += 1
        return changed

    # ---- vistas ----

    def summary(self, year: int, month: int | None = None) -> PeriodSummary:
        return summarize_period(
            self.repo.list_all(), self.repo.list_shift_types(), self.repo.list_variables(), year, month
        )

    def history(self) -> dict[str, list[Shift]]:
        return group_by_month(self.repo.list_all())

    def calendar(self, year: int, month: int):
        first = f"{year:04d}-{month:02d}-01"
        last = f"{year:04d}-{month:02d}-31"
        return month_calendar(year, month, self.repo.list_between(first, last), self.repo.list_shift_types())

    def month_pdf(self, year: int, month: int) -> bytes:
        return build_month_pdf(
            self.repo.list_all(), self.repo.list_shift_types(), self.repo.list_variables(), year, month
        )

    def archive_month(self, year: int, month: int, reports_dir: Path | None = None) -> Path:
        target = reports_dir or (self.settings.reports_dir if self.settings else Path.cwd())
        return archive_month_pdf(
            target, self.repo.list_all(), self.repo.list_shift_types(), self.repo.list_variables(), year, month
        )

    # ---- copia de seguridad ----

    def export_backup(self, folder: Path) -> Path:
        destino = Path(folder) / f"shiftcash_backup_{self.today().isoformat()}.json"
        state = self.repo.export_state()
        destino.write_text(json.dumps(state.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Copia exportada en {destino}")
        return destino

    def import_backup(self, path: Path) -> AppState:
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError("Error al leer el archivo. Asegúrate de que es un archivo JSON válido.") from e
        state = restore_state(payload)
        self.repo.import_state(state)
        return state
