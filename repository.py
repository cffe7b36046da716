# repository.py
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import JSON, Column, delete, text
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel, Field, Session, create_engine, select

from domain import (
    CORE_VARIABLE_IDS,
    AppState,
    Shift,
    ShiftType,
    ShiftVariable,
    VariableKind,
    default_catalog,
)

logger = logging.getLogger(__name__)


class ShiftTypeDB(SQLModel, table=True):
    __tablename__ = "shift_types"
    id: str = Field(primary_key=True)
    name: str
    daily_rate: float = 0.0
    color: str = ""
    position: int = 0


class ShiftVariableDB(SQLModel, table=True):
    __tablename__ = "shift_variables"
    id: str = Field(primary_key=True)
    name: str
    kind: str = VariableKind.FIXED.value
    amount: float = 0.0
    position: int = 0


class ShiftDB(SQLModel, table=True):
    __tablename__ = "shifts"
    id: int | None = Field(default=None, primary_key=True)
    start_date: str = Field(index=True)
    start_time: str
    end_date: str
    end_time: str
    real_end_date: str | None = None
    real_end_time: str | None = None
    shift_type_id: str = Field(index=True)
    variable_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    notes: str | None = None
    hours_worked: float = 0.0
    total_earnings: float = 0.0
    excess_minutes: float = 0.0


def build_engine(db_url: str, echo: bool = False):
    is_sqlite = db_url.startswith("sqlite")
    kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
        "connect_args": {},
    }
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        # SQLite en memoria: una sola conexión compartida
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        # Serverless PG (Neon/Supabase): sin pool local y con timeout
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"connect_timeout": 10}
        # Asegura SSL si no está en la URL
        if "sslmode=" not in db_url:
            db_url += ("&" if "?" in db_url else "?") + "sslmode=require"
    return create_engine(db_url, **kwargs)


def _row_to_shift(r: ShiftDB) -> Shift:
    return Shift(
        id=r.id,
        start_date=r.start_date,
        start_time=r.start_time,
        end_date=r.end_date,
        end_time=r.end_time,
        real_end_date=r.real_end_date,
        real_end_time=r.real_end_time,
        shift_type_id=r.shift_type_id,
        variable_ids=list(r.variable_ids or []),
        notes=r.notes,
        hours_worked=r.hours_worked,
        total_earnings=r.total_earnings,
        excess_minutes=r.excess_minutes,
    )


def _copy_shift_fields(row: ShiftDB, s: Shift) -> ShiftDB:
    row.start_date = s.start_date
    row.start_time = s.start_time
    row.end_date = s.end_date
    row.end_time = s.end_time
    row.real_end_date = s.real_end_date
    row.real_end_time = s.real_end_time
    row.shift_type_id = s.shift_type_id
    # lista nueva para que SQLAlchemy detecte el cambio en la columna JSON
    row.variable_ids = list(s.variable_ids)
    row.notes = s.notes
    row.hours_worked = s.hours_worked
    row.total_earnings = s.total_earnings
    row.excess_minutes = s.excess_minutes
    return row


class ShiftRepository:
    """CRUD para turnos, tipos de turno y variables. En producción NO hacer fallback a SQLite."""
    def __init__(self, url: str = "sqlite:///shiftcash.db", echo: bool = False, seed: bool = True):
        self.primary_url = url
        self.engine = build_engine(url, echo=echo)

        # Si es Postgres, valida conexión (fail-fast si falla)
        if not url.startswith("sqlite"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("select 1"))
            except Exception as e:
                raise RuntimeError(f"No se pudo conectar a Postgres: {e}") from e

        # Crea tablas si no existen
        SQLModel.metadata.create_all(self.engine)
        if seed:
            self.seed_defaults()

    def seed_defaults(self) -> bool:
        """Loads the default catalog into an empty database. Returns True if it did."""
        with Session(self.engine) as session:
            if session.exec(select(ShiftTypeDB)).first() is not None:
                return False
            if session.exec(select(ShiftVariableDB)).first() is not None:
                return False
        shift_types, variables = default_catalog()
        for t in shift_types:
            self.save_shift_type(t)
        for v in variables:
            self.save_variable(v)
        logger.info(f"Catálogo por defecto creado: {len(shift_types)} tipos, {len(variables)} variables")
        return True

    # ---- turnos ----

    def add(self, s: Shift) -> Shift:
        with Session(self.engine) as session:
            row = _copy_shift_fields(ShiftDB(), s)
            session.add(row)
            session.commit()
            session.refresh(row)
            s.id = row.id
        return s

    def update(self, s: Shift) -> Shift:
        if s.id is None:
            raise ValueError("El turno no tiene id.")
        with Session(self.engine) as session:
            row = session.get(ShiftDB, s.id)
            if row is None:
                raise ValueError(f"No existe el turno {s.id}.")
            session.add(_copy_shift_fields(row, s))
            session.commit()
        return s

    def save(self, s: Shift) -> Shift:
        return self.add(s) if s.id is None else self.update(s)

    def delete(self, shift_id: int) -> bool:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
        return True

    def get(self, shift_id: int) -> Shift | None:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift_id)
            return _row_to_shift(row) if row else None

    def list_all(self) -> List[Shift]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(ShiftDB).order_by(
                    ShiftDB.start_date.desc(), ShiftDB.start_time.desc(), ShiftDB.id.desc()
                )
            ).all()
            return [_row_to_shift(r) for r in rows]

    def list_between(self, first_day: str, last_day: str) -> List[Shift]:
        """Shifts whose start date falls in [first_day, last_day] (YYYY-MM-DD)."""
        with Session(self.engine) as session:
            rows = session.exec(
                select(ShiftDB)
                .where(ShiftDB.start_date >= first_day, ShiftDB.start_date <= last_day)
                .order_by(ShiftDB.start_date.desc(), ShiftDB.start_time.desc(), ShiftDB.id.desc())
            ).all()
            return [_row_to_shift(r) for r in rows]

    # ---- tipos de turno ----

    def list_shift_types(self) -> List[ShiftType]:
        with Session(self.engine) as session:
            rows = session.exec(select(ShiftTypeDB).order_by(ShiftTypeDB.position, ShiftTypeDB.id)).all()
            return [ShiftType(id=r.id, name=r.name, daily_rate=r.daily_rate, color=r.color) for r in rows]

    def save_shift_type(self, t: ShiftType) -> None:
        with Session(self.engine) as session:
            row = session.get(ShiftTypeDB, t.id)
            if row is None:
                count = len(session.exec(select(ShiftTypeDB.id)).all())
                row = ShiftTypeDB(id=t.id, name=t.name, position=count)
            row.name = t.name
            row.daily_rate = t.daily_rate
            row.color = t.color
            session.add(row)
            session.commit()

    def delete_shift_type(self, shift_type_id: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(ShiftTypeDB, shift_type_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
        return True

    # ---- variables ----

    def list_variables(self) -> List[ShiftVariable]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(ShiftVariableDB).order_by(ShiftVariableDB.position, ShiftVariableDB.id)
            ).all()
            return [
                ShiftVariable(id=r.id, name=r.name, kind=VariableKind(r.kind), amount=r.amount)
                for r in rows
            ]

    def save_variable(self, v: ShiftVariable) -> None:
        with Session(self.engine) as session:
            row = session.get(ShiftVariableDB, v.id)
            if row is None:
                count = len(session.exec(select(ShiftVariableDB.id)).all())
                row = ShiftVariableDB(id=v.id, name=v.name, position=count)
            row.name = v.name
            row.kind = v.kind.value
            row.amount = v.amount
            session.add(row)
            session.commit()

    def delete_variable(self, variable_id: str) -> bool:
        if variable_id in CORE_VARIABLE_IDS:
            raise ValueError(f"La variable {variable_id} es del sistema y no se puede borrar.")
        with Session(self.engine) as session:
            row = session.get(ShiftVariableDB, variable_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
        return True

    # ---- copia de seguridad ----

    def export_state(self) -> AppState:
        return AppState(
            shifts=self.list_all(),
            shift_types=self.list_shift_types(),
            variables=self.list_variables(),
        )

    def import_state(self, state: AppState) -> None:
        """Replaces every shift, shift type and variable with the given state."""
        with Session(self.engine) as session:
            session.exec(delete(ShiftDB))
            session.exec(delete(ShiftTypeDB))
            session.exec(delete(ShiftVariableDB))
            for pos, t in enumerate(state.shift_types):
                session.add(ShiftTypeDB(id=t.id, name=t.name, daily_rate=t.daily_rate, color=t.color, position=pos))
            for pos, v in enumerate(state.variables):
                session.add(ShiftVariableDB(id=v.id, name=v.name, kind=v.kind.value, amount=v.amount, position=pos))
            for s in state.shifts:
                s.id = None
                session.add(_copy_shift_fields(ShiftDB(), s))
            session.commit()
        logger.info(
            f"Copia importada: {len(state.shifts)} turnos, "
            f"{len(state.shift_types)} tipos, {len(state.variables)} variables"
        )


__all__ = ["ShiftDB", "ShiftTypeDB", "ShiftVariableDB", "ShiftRepository", "build_engine"]
