"""
Tests for the Qualification Engine entry point

End-to-end scenarios through compute_qualification: intake, pricing,
segmentation, the Ultimate layer and the JSON view.
"""
import json
from dataclasses import replace
from datetime import date, datetime

import pytest

from skystatus.models import CycleState, MonthKey, StatusLevel, WarningCode
from skystatus.services.qualification_engine import compute_qualification, to_dict
from skystatus.services.status_levels import ProgramRules

from fixtures.engine_fixtures import make_entry, make_flight, make_settings


class TestConcreteScenarios:
    """The reference scenarios for the engine"""

    def test_no_flights_with_seed(self, rules):
        """Seed 40 at Silver, today = cycle start: one open cycle, no rows"""
        start = date(2024, 11, 1)
        result = compute_qualification(
            [], {}, make_settings(StatusLevel.SILVER, start=start, starting_xp=40), start, rules=rules
        )

        (cycle,) = result.cycles
        assert cycle.rows == []
        assert cycle.actual_xp == 40
        assert cycle.projected_xp == 40
        assert cycle.actual_status == StatusLevel.SILVER
        assert not cycle.is_closed
        assert result.active_cycle is cycle
        assert result.warnings == []

    def test_past_flight_triggers_level_up(self, small_rules):
        """25 rollover + 30 flown >= 50: close, flag, chain with 5"""
        flights = [make_flight(date(2025, 3, 10), points=30)]
        config = make_settings(StatusLevel.SILVER, start=date(2025, 1, 1), starting_xp=25)
        result = compute_qualification(flights, {}, config, date(2025, 6, 15), rules=small_rules)

        first, second = result.cycles
        assert first.end_date == date(2025, 3, 31)
        assert first.actual_status == StatusLevel.GOLD
        assert first.rows[0].hit_threshold
        assert first.rows[0].cumulative == 55
        assert first.rollover_out == 5
        assert first.state == CycleState.THRESHOLD_REACHED_ACTUAL

        assert second.start_date == date(2025, 4, 1)
        assert second.starting_status == StatusLevel.GOLD
        assert second.rollover_in == 5
        assert second.chained
        assert second.actual_xp_to_next == 95
        assert result.active_cycle is second

    def test_scheduled_flight_reaches_projected_status_only(self):
        """20 flown + 40 scheduled against a 50 boundary"""
        rules = ProgramRules.custom(silver=50, gold=100, platinum=200)
        flights = [
            make_flight(date(2025, 5, 10), points=20),
            make_flight(date(2025, 7, 20), points=40),
        ]
        config = make_settings(start=date(2025, 1, 1))
        result = compute_qualification(flights, {}, config, date(2025, 6, 15), rules=rules)

        (cycle,) = result.cycles
        assert cycle.actual_status == StatusLevel.EXPLORER
        assert cycle.actual_xp == 20
        assert cycle.projected_status == StatusLevel.SILVER
        assert cycle.projected_xp == 60
        assert [r.projected_hit_threshold for r in cycle.rows] == [False, True]
        assert not any(r.hit_threshold for r in cycle.rows)
        assert cycle.state == CycleState.THRESHOLD_REACHED_PROJECTED
        assert cycle.projected_end_date == date(2025, 7, 31)
        assert cycle.end_date == date(2025, 12, 31)

    def test_negative_correction_month(self, rules):
        """A month delta may go negative; the boundary rollover may not"""
        flights = [make_flight(date(2025, 1, 10), points=12)]
        config = make_settings(start=date(2025, 1, 1))

        result = compute_qualification(
            flights, {"2025-02": make_entry(correction=-10)}, config, date(2025, 6, 15), rules=rules
        )
        feb = result.cycles[0].rows[1]
        assert feb.total_xp == -10
        assert feb.cumulative == 2

        result = compute_qualification(
            flights, {"2025-02": make_entry(correction=-50)}, config, date(2026, 6, 15), rules=rules
        )
        first = result.cycles[0]
        assert first.rows[1].cumulative == -38
        assert first.rollover_out == 0
        assert result.cycles[1].rollover_in == 0
        assert WarningCode.ROLLOVER_CLAMPED in [w.code for w in result.warnings]

    def test_start_after_earliest_flight(self, today, rules):
        """Re-anchored to the flight's month with a warning; points kept"""
        flights = [make_flight(date(2025, 1, 20), points=80)]
        result = compute_qualification(flights, {}, make_settings(start=date(2025, 3, 1)), today, rules=rules)

        assert result.cycles[0].start_date == date(2025, 1, 1)
        assert result.cycles[0].actual_xp == 80
        assert [w.code for w in result.warnings] == [WarningCode.CYCLE_START_REANCHORED]


class TestInputs:
    """Test raw inputs flowing through the whole pipeline"""

    def test_no_data_is_not_an_error(self, today, rules):
        result = compute_qualification([], {}, None, today, rules=rules)
        assert result.is_empty
        assert result.active_cycle is None
        assert result.warnings == []

    def test_none_inputs(self, today, rules):
        result = compute_qualification(None, None, None, today, rules=rules)
        assert result.is_empty

    def test_camel_case_mappings(self, small_rules):
        flights = [{"id": "f1", "date": "2025-03-10", "route": "AMS-CDG", "airline": "KL", "earnedXP": 30}]
        settings = {"startingStatus": "Silver", "cycleStartDate": "2025-01-01", "startingXP": 25}
        result = compute_qualification(flights, {}, settings, date(2025, 6, 15), rules=small_rules)

        assert len(result.cycles) == 2
        assert result.cycles[0].rollover_out == 5

    def test_bad_record_does_not_stop_the_run(self, today, rules):
        flights = [
            {"id": "bad", "date": "10/03/2025", "route": "AMS-CDG", "points": 10},
            make_flight(date(2025, 3, 10), points=30),
        ]
        result = compute_qualification(flights, {}, make_settings(start=date(2025, 1, 1)), today, rules=rules)

        assert result.cycles[0].actual_xp == 30
        assert [(w.code, w.record_id) for w in result.warnings] == [(WarningCode.INVALID_DATE, "bad")]

    def test_records_with_loose_dates(self, today, rules):
        """Records built with a datetime or a string date never abort the run"""
        flights = [
            replace(make_flight(date(2025, 3, 10), points=30), date=datetime(2025, 3, 10, 7, 45)),
            replace(make_flight(date(2025, 3, 12), points=10, flight_id="text"), date="2025-03-12"),
        ]
        result = compute_qualification(flights, {}, make_settings(start=date(2025, 1, 1)), today, rules=rules)

        assert result.cycles[0].actual_xp == 30
        assert result.cycles[0].rows[0].month == MonthKey(2025, 3)
        assert [(w.code, w.record_id) for w in result.warnings] == [(WarningCode.INVALID_DATE, "text")]

    def test_unpriced_flight_without_resolver(self, today, rules):
        flights = [make_flight(date(2025, 3, 10), points=None, flight_id="unpriced")]
        result = compute_qualification(flights, {}, make_settings(start=date(2025, 1, 1)), today, rules=rules)

        assert result.cycles[0].rows == []
        assert result.warnings[0].code == WarningCode.UNRESOLVED_POINTS

    def test_invalid_settings_fall_back_to_inference(self, today, rules):
        flights = [make_flight(date(2025, 2, 10), points=40)]
        result = compute_qualification(flights, {}, {"startingStatus": "Diamond"}, today, rules=rules)

        assert result.cycles[0].start_date == date(2024, 11, 1)
        assert result.cycles[0].starting_status == StatusLevel.EXPLORER
        assert result.warnings[0].record_id == "settings"

    def test_rules_default_to_configured_settings(self, today):
        """Without explicit rules the configured program is used"""
        flights = [make_flight(date(2025, 3, 10), points=30)]
        result = compute_qualification(flights, {}, make_settings(start=date(2025, 1, 1)), today)
        assert result.cycles[0].actual_xp == 30


class TestUltimateIntegration:
    """Test the Ultimate layer on engine output"""

    def test_platinum_with_uxp_is_ultimate(self, today, rules):
        flights = [make_flight(date(2025, 2, 10), points=320, uxp=950)]
        config = make_settings(StatusLevel.PLATINUM, start=date(2025, 1, 1))
        result = compute_qualification(flights, {}, config, today, rules=rules)

        cycle = result.cycles[0]
        assert cycle.actual_uxp == 950
        assert cycle.is_ultimate
        assert cycle.uxp_rollover_out == 50

    def test_ultimate_setting_starts_as_platinum(self, today, rules):
        config = make_settings(StatusLevel.ULTIMATE, start=date(2025, 1, 1))
        result = compute_qualification([], {}, config, today, rules=rules)

        cycle = result.cycles[0]
        assert cycle.starting_status == StatusLevel.PLATINUM
        assert cycle.starting_uxp == rules.ultimate_uxp_threshold
        assert cycle.is_ultimate


class TestSerialization:
    """Test the JSON-ready view"""

    def test_to_dict_shapes(self, small_rules):
        flights = [make_flight(date(2025, 3, 10), points=30)]
        config = make_settings(StatusLevel.SILVER, start=date(2025, 1, 1), starting_xp=25)
        data = to_dict(compute_qualification(flights, {}, config, date(2025, 6, 15), rules=small_rules))

        first = data["cycles"][0]
        assert first["start_date"] == "2025-01-01"
        assert first["ending_status"] == "Gold"
        assert first["level_up_month"] == "2025-03"
        assert first["state"] == "threshold_reached_actual"
        assert first["rows"][0]["month"] == "2025-03"
        assert data["active_cycle"]["cycle_index"] == 1
        assert data["warnings"] == []
        json.dumps(data)

    def test_warning_month_is_serialized(self, today, rules):
        flights = [make_flight(date(2025, 1, 20), points=80)]
        data = to_dict(compute_qualification(flights, {}, make_settings(start=date(2025, 3, 1)), today, rules=rules))
        assert data["warnings"][0]["code"] == "cycle_start_reanchored"
        assert data["warnings"][0]["month"] == "2025-01"

    def test_empty_result(self, today, rules):
        data = to_dict(compute_qualification([], {}, None, today, rules=rules))
        assert data == {"cycles": [], "active_cycle": None, "warnings": []}


# Mixed histories used by the property checks below
HISTORIES = [
    pytest.param(
        [
            make_flight(date(2024, 2, 1), points=120),
            make_flight(date(2024, 5, 1), points=90),
            make_flight(date(2024, 9, 1), points=200),
            make_flight(date(2025, 3, 1), points=40),
            make_flight(date(2025, 8, 1), points=150),
        ],
        {MonthKey(2024, 6): make_entry(card=30), MonthKey(2025, 2): make_entry(correction=-25)},
        make_settings(start=date(2024, 1, 1)),
        id="mixed",
    ),
    pytest.param(
        [make_flight(date(2024, 1, 5), points=10_000), make_flight(date(2024, 6, 5), points=10_000)],
        {},
        make_settings(StatusLevel.GOLD, start=date(2023, 11, 1), starting_xp=10_000),
        id="huge",
    ),
    pytest.param(
        [make_flight(date(2023, 12, 1), points=60), make_flight(date(2025, 9, 1), points=20)],
        {MonthKey(2025, 7): make_entry(misc=15), MonthKey(2024, 3): make_entry(correction=-200)},
        None,
        id="sparse",
    ),
    pytest.param(
        [make_flight(date(2025, 6, 14), points=95), make_flight(date(2025, 6, 15), points=10)],
        {MonthKey(2025, 6): make_entry(saf=5)},
        make_settings(StatusLevel.PLATINUM, start=date(2024, 11, 1), starting_xp=40),
        id="boundary-today",
    ),
]


class TestEngineProperties:
    """Properties that hold for every history"""

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_cumulative_recurrence(self, today, rules, flights, ledger, config):
        for cycle in compute_qualification(flights, ledger, config, today, rules=rules).cycles:
            running = cycle.rollover_in
            for row in cycle.rows:
                running += row.total_xp
                assert row.cumulative == running

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_actual_never_exceeds_projected(self, today, rules, flights, ledger, config):
        for cycle in compute_qualification(flights, ledger, config, today, rules=rules).cycles:
            assert cycle.actual_xp <= cycle.projected_xp
            assert cycle.actual_status.rank <= cycle.projected_status.rank
            assert cycle.actual_uxp <= cycle.projected_uxp
            for row in cycle.rows:
                assert row.actual_xp <= row.projected_xp
                assert row.actual_cumulative <= row.cumulative

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_rollover_within_cap(self, today, rules, flights, ledger, config):
        for cycle in compute_qualification(flights, ledger, config, today, rules=rules).cycles:
            assert 0 <= cycle.rollover_in <= rules.rollover_cap
            assert 0 <= cycle.rollover_out <= rules.rollover_cap

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_cycles_chain(self, today, rules, flights, ledger, config):
        cycles = compute_qualification(flights, ledger, config, today, rules=rules).cycles
        for previous, cycle in zip(cycles, cycles[1:]):
            assert cycle.rollover_in == previous.rollover_out
            assert (cycle.start_date - previous.end_date).days == 1

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_status_never_drops_within_a_cycle(self, today, rules, flights, ledger, config):
        for cycle in compute_qualification(flights, ledger, config, today, rules=rules).cycles:
            assert cycle.actual_status.rank >= cycle.starting_status.rank
            assert cycle.ending_status.rank >= cycle.starting_status.rank

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_identical_inputs_identical_output(self, today, rules, flights, ledger, config):
        first = json.dumps(to_dict(compute_qualification(flights, ledger, config, today, rules=rules)))
        second = json.dumps(to_dict(compute_qualification(flights, ledger, config, today, rules=rules)))
        assert first == second

    @pytest.mark.parametrize("flights,ledger,config", HISTORIES)
    def test_active_cycle_covers_today(self, today, rules, flights, ledger, config):
        result = compute_qualification(flights, ledger, config, today, rules=rules)
        assert result.active_cycle.contains(today)
