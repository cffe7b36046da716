"""Shared fixtures: a priced catalog and an in-memory repository."""

from __future__ import annotations

import pytest

from domain import ShiftType, ShiftVariable, VariableKind, default_catalog
from repository import ShiftRepository
from services import ShiftCalculator

PRICES = {
    "v_tl1": (VariableKind.FIXED, 10.0),
    "v_tl2": (VariableKind.FIXED, 20.0),
    "v_pi": (VariableKind.HOURLY_BONUS, 1.5),
    "v_dcp": (VariableKind.FIXED, 12.5),
    "v_dsp": (VariableKind.FIXED, 7.0),
    "v_de": (VariableKind.FIXED, 3.0),
}


@pytest.fixture
def shift_types() -> list[ShiftType]:
    return default_catalog()[0]


@pytest.fixture
def variables() -> list[ShiftVariable]:
    result = default_catalog()[1]
    for v in result:
        if v.id in PRICES:
            v.kind, v.amount = PRICES[v.id]
    return result


@pytest.fixture
def calculator(shift_types, variables) -> ShiftCalculator:
    return ShiftCalculator(shift_types, variables)


@pytest.fixture
def repo() -> ShiftRepository:
    return ShiftRepository("sqlite://")


@pytest.fixture
def priced_repo(repo, variables) -> ShiftRepository:
    for v in variables:
        repo.save_variable(v)
    return repo
