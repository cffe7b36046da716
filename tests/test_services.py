"""Tests for ShiftCalculator, backup restore and period summaries."""

from __future__ import annotations

from datetime import date

import pytest

from domain import DEFAULT_SUNDAY_RATE, Shift, ShiftDraft, ShiftVariable
from services import (
    ShiftCalculator,
    calculate_earnings,
    calculate_excess_minutes,
    calculate_hours,
    period_shifts,
    restore_state,
    summarize_period,
)


class TestLookups:
    def test_sunday_rate_from_variable(self, calculator):
        assert calculator.sunday_rate == DEFAULT_SUNDAY_RATE

    def test_sunday_rate_follows_configuration(self, shift_types):
        calc = ShiftCalculator(shift_types, [ShiftVariable("v_sun", "DOMINGO", amount=100.0)])
        assert calc.sunday_rate == 100.0

    def test_sunday_rate_fallback(self, shift_types):
        assert ShiftCalculator(shift_types, []).sunday_rate == DEFAULT_SUNDAY_RATE

    def test_unknown_variables_are_filtered(self, calculator):
        applied = calculator.applied_variables(["v_dcp", "v_missing", "v_dcp"])
        assert [v.id for v in applied] == ["v_dcp", "v_dcp"]


class TestResolveDraft:
    def test_empty_draft_uses_form_defaults(self, calculator):
        shift = calculator.resolve_draft(ShiftDraft(), today=date(2024, 3, 4))
        assert (shift.start_date, shift.start_time) == ("2024-03-04", "09:00")
        assert (shift.end_date, shift.end_time) == ("2024-03-04", "17:00")
        assert (shift.real_end_date, shift.real_end_time) == ("2024-03-04", "17:00")
        assert shift.shift_type_id == ""

    def test_calendar_day_draft(self, calculator):
        shift = calculator.resolve_draft(ShiftDraft(start_date="2024-05-10", end_date="2024-05-10"))
        assert shift.start_date == shift.end_date == shift.real_end_date == "2024-05-10"

    def test_real_end_defaults_to_theoretical(self, calculator):
        draft = ShiftDraft(start_date="2024-01-08", start_time="22:00", end_date="2024-01-09", end_time="06:00")
        shift = calculator.resolve_draft(draft)
        assert (shift.real_end_date, shift.real_end_time) == ("2024-01-09", "06:00")

    def test_end_dates_never_before_start(self, calculator):
        draft = ShiftDraft(start_date="2024-01-10", end_date="2024-01-09", real_end_date="2024-01-08")
        shift = calculator.resolve_draft(draft)
        assert shift.end_date == "2024-01-10"
        assert shift.real_end_date == "2024-01-10"

    def test_blank_notes_become_none(self, calculator):
        shift = calculator.resolve_draft(ShiftDraft(start_date="2024-01-08", notes="   "))
        assert shift.notes is None


class TestCompleteShift:
    def test_ida_weekday(self, calculator):
        shift = Shift(
            start_date="2024-01-08", start_time="10:00", end_date="2024-01-08", end_time="18:00",
            real_end_date="2024-01-08", real_end_time="19:00", shift_type_id="t_ida",
        )
        calculator.complete_shift(shift)
        assert shift.hours_worked == 9.0
        assert shift.variable_ids == ["v_tl1", "v_dcp", "v_dcp"]
        assert shift.excess_minutes == 75.0
        assert shift.total_earnings == 50.0  # 15 + 10 + 2 x 12.5

    def test_vuelta_on_sunday(self, calculator):
        shift = Shift(
            start_date="2024-01-07", start_time="12:00", end_date="2024-01-07", end_time="22:00",
            shift_type_id="t_vuelta",
        )
        calculator.complete_shift(shift)
        assert shift.hours_worked == 10.0
        assert shift.variable_ids == ["v_sun", "v_tl2", "v_pi", "v_dcp", "v_dcp"]
        assert shift.excess_minutes == 150.0
        # 92.25 Sunday base + 20 + 1.5 x 10 + 2 x 12.5, v_sun not added again
        assert shift.total_earnings == 152.25
        assert (shift.real_end_date, shift.real_end_time) == ("2024-01-07", "22:00")

    def test_vacaciones_clears_variables_and_earnings(self, calculator):
        shift = Shift(
            start_date="2024-01-08", start_time="09:00", end_date="2024-01-08", end_time="17:00",
            shift_type_id="t_vacaciones", variable_ids=["v_de", "v_tl1"],
        )
        calculator.complete_shift(shift)
        assert shift.variable_ids == []
        assert shift.total_earnings == 0.0
        assert shift.hours_worked == 8.0

    def test_libre_on_sunday_earns_nothing(self, calculator):
        shift = Shift(
            start_date="2024-01-07", start_time="09:00", end_date="2024-01-07", end_time="17:00",
            shift_type_id="t_libre",
        )
        assert calculator.complete_shift(shift).total_earnings == 0.0

    def test_derived_fields_match_fresh_computation(self, calculator):
        shift = Shift(
            start_date="2024-01-08", start_time="06:30", end_date="2024-01-08", end_time="15:00",
            real_end_date="2024-01-08", real_end_time="16:10", shift_type_id="t_normal",
            variable_ids=["v_de"],
        )
        calculator.complete_shift(shift)
        hours = calculate_hours("2024-01-08", "06:30", "2024-01-08", "16:10")
        assert shift.hours_worked == hours
        assert shift.excess_minutes == calculate_excess_minutes("2024-01-08", "06:30", "2024-01-08", "16:10")
        assert shift.total_earnings == calculate_earnings(
            "2024-01-08", hours, calculator.shift_type("t_normal"),
            calculator.applied_variables(shift.variable_ids), calculator.sunday_rate,
        )
        again = calculator.complete_shift(shift)
        assert again.total_earnings == shift.total_earnings

    @pytest.mark.parametrize("shift_type_id", ["", "t_unknown"])
    def test_requires_known_shift_type(self, calculator, shift_type_id):
        shift = Shift(
            start_date="2024-01-08", start_time="09:00", end_date="2024-01-08", end_time="17:00",
            shift_type_id=shift_type_id,
        )
        with pytest.raises(ValueError):
            calculator.complete_shift(shift)

    def test_build_shift(self, calculator):
        draft = ShiftDraft(
            start_date="2024-01-08", start_time="09:00", end_time="17:00", shift_type_id="t_ida_vuelta",
        )
        shift = calculator.build_shift(draft)
        assert shift.hours_worked == 8.0
        assert shift.excess_minutes == 0.0
        assert shift.variable_ids == ["v_dsp"]
        assert shift.total_earnings == 22.0


class TestRestoreState:
    @pytest.mark.parametrize("payload", [None, [], {"shifts": []}, {"shiftTypes": []}, {"shifts": {}, "shiftTypes": []}])
    def test_rejects_invalid_payloads(self, payload):
        with pytest.raises(ValueError):
            restore_state(payload)

    def test_rejects_malformed_shift(self):
        with pytest.raises(ValueError):
            restore_state({"shifts": [{"startTime": "09:00"}], "shiftTypes": []})

    def test_recomputes_and_drops_orphans(self):
        payload = {
            "shiftTypes": [{"id": "t1", "name": "Normal", "dailyRate": 15, "color": "x"}],
            "variables": [{"id": "v_sun", "name": "DOMINGO", "type": "fixed", "amount": 92.25}],
            "shifts": [
                {
                    "id": "shift_1700000000_abc", "startDate": "2024-01-08", "startTime": "09:00",
                    "endDate": "2024-01-08", "endTime": "17:00", "shiftTypeId": "t1",
                    "variableIds": [], "hoursWorked": 99, "totalEarnings": 1, "excessMinutes": 3,
                },
                {
                    "id": "shift_2", "startDate": "2024-01-09", "startTime": "09:00",
                    "endDate": "2024-01-09", "endTime": "17:00", "shiftTypeId": "gone",
                },
            ],
        }
        state = restore_state(payload)
        assert len(state.shifts) == 1
        s = state.shifts[0]
        assert s.id is None
        assert (s.hours_worked, s.total_earnings, s.excess_minutes) == (8.0, 15.0, 0.0)

    @pytest.mark.parametrize("start_date", ["", "2024-1-8", "08/01/2024", None])
    def test_drops_shift_with_bad_start_date(self, start_date):
        payload = {
            "shiftTypes": [{"id": "t1", "name": "Normal", "dailyRate": 15, "color": "x"}],
            "shifts": [
                {"startDate": start_date, "startTime": "09:00", "endDate": "2024-01-08",
                 "endTime": "17:00", "shiftTypeId": "t1"},
                {"startDate": "2024-01-09", "startTime": "09:00", "endDate": "2024-01-09",
                 "endTime": "17:00", "shiftTypeId": "t1"},
            ],
        }
        state = restore_state(payload)
        assert [s.start_date for s in state.shifts] == ["2024-01-09"]
        summary = summarize_period(state.shifts, state.shift_types, state.variables, 2024)
        assert summary.shift_count == 1

    def test_missing_variables_fall_back_to_defaults(self):
        state = restore_state({"shifts": [], "shiftTypes": []})
        assert "v_sun" in [v.id for v in state.variables]


def _shift(day, type_id, earnings=0.0, excess=0.0, variables=()):
    return Shift(
        start_date=day, start_time="09:00", end_date=day, end_time="17:00",
        shift_type_id=type_id, variable_ids=list(variables),
        total_earnings=earnings, excess_minutes=excess,
    )


class TestSummarizePeriod:
    @pytest.fixture
    def shifts(self):
        return [
            _shift("2024-01-08", "t_ida", 50.0, 75.0, ["v_tl1", "v_dcp", "v_dcp"]),
            _shift("2024-01-09", "t_vuelta", 30.0, 0.0, ["v_dcp"]),
            _shift("2024-01-10", "t_libre"),
            _shift("2024-01-11", "t_vacaciones"),
            _shift("2024-01-12", "t_reserva", 15.0),
            _shift("2024-01-13", "t_formacion", 15.0, 12.5),
            _shift("2024-02-01", "t_normal", 100.0, 10.0, ["v_de"]),
            _shift("2023-01-05", "t_normal", 999.0),
        ]

    def test_month(self, shifts, shift_types, variables):
        summary = summarize_period(shifts, shift_types, variables, 2024, 1)
        assert summary.shift_count == 6
        assert summary.total_earnings == 110.0
        assert summary.total_excess == 87.5
        assert (summary.libre_count, summary.vacaciones_count) == (1, 1)
        assert (summary.reserva_count, summary.formacion_count) == (1, 1)
        counts = {c.id: c.count for c in summary.variable_counts}
        assert counts["v_dcp"] == 3
        assert counts["v_tl1"] == 1
        assert counts["v_exc"] == 2  # days with excess
        assert counts["v_de"] == 0

    def test_counts_follow_catalog_order(self, shifts, shift_types, variables):
        summary = summarize_period(shifts, shift_types, variables, 2024, 1)
        assert [c.id for c in summary.variable_counts] == [v.id for v in variables]

    def test_year(self, shifts, shift_types, variables):
        summary = summarize_period(shifts, shift_types, variables, 2024)
        assert summary.shift_count == 7
        assert summary.total_earnings == 210.0

    def test_empty_period(self, shifts, shift_types, variables):
        summary = summarize_period(shifts, shift_types, variables, 2030, 6)
        assert summary.shift_count == 0
        assert summary.total_earnings == 0.0
        assert all(c.count == 0 for c in summary.variable_counts)

    def test_period_shifts(self, shifts):
        assert [s.start_date for s in period_shifts(shifts, 2024, 2)] == ["2024-02-01"]
