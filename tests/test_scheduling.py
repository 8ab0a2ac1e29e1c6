"""
Scheduling rules: cycle expansion, event generation, support hours, status helpers.
"""
from datetime import date, datetime, timezone

import pytest

from ims.models.models import CalendarEvent
from ims.schemas.contracts import ContractIn
from ims.services.contracts import create_contract
from ims.services.scheduling import (
    add_months,
    contract_progress,
    contract_status,
    cycle_months,
    generate_contract_end_events,
    generate_inspection_events,
    inspection_dates,
    monthly_effort,
    support_hours,
    support_minutes,
    to_local_naive,
)


class TestCycles:
    @pytest.mark.parametrize(
        "cycle,expected",
        [
            ("month", 1),
            ("quarter", 3),
            ("half-year", 6),
            ("year", 12),
            ("on-failure", 0),
            ("월", 1),
            ("분기", 3),
            ("반기", 6),
            ("년", 12),
            ("장애시", 0),
            ("수동", 0),
            (None, 0),
            ("weekly", 0),
        ],
    )
    def test_cycle_months(self, cycle, expected):
        assert cycle_months(cycle) == expected

    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)

    def test_anchor_day_survives_short_months(self):
        assert add_months(date(2025, 1, 31), 2, anchor_day=31) == date(2025, 3, 31)


class TestInspectionDates:
    def test_skips_past_and_stops_at_horizon(self):
        dates = inspection_dates(date(2025, 1, 31), date(2025, 12, 31), "month", today=date(2025, 3, 1), months=3)
        assert dates == [date(2025, 3, 31), date(2025, 4, 30), date(2025, 5, 31)]

    def test_never_passes_contract_end(self):
        dates = inspection_dates(date(2025, 1, 10), date(2025, 4, 1), "month", today=date(2025, 1, 1), months=12)
        assert dates == [date(2025, 1, 10), date(2025, 2, 10), date(2025, 3, 10)]

    def test_quarterly(self):
        dates = inspection_dates(date(2025, 1, 15), date(2026, 1, 14), "분기", today=date(2025, 1, 1), months=12)
        assert dates == [date(2025, 1, 15), date(2025, 4, 15), date(2025, 7, 15), date(2025, 10, 15)]

    def test_on_failure_yields_nothing(self):
        assert inspection_dates(date(2025, 1, 1), date(2025, 12, 31), "on-failure", today=date(2025, 1, 1)) == []


class TestSupportHours:
    def test_interval_inside_lunch_is_zero(self):
        assert support_minutes("2025-01-06T12:10:00", "2025-01-06T12:50:00") == 0

    def test_lunch_hour_is_excluded(self):
        assert support_minutes("2025-01-06T11:00:00", "2025-01-06T14:00:00") == 120
        assert support_hours("2025-01-06T11:00:00", "2025-01-06T14:00:00") == 2.0

    def test_morning_only(self):
        assert support_minutes(datetime(2025, 1, 6, 9, 0), datetime(2025, 1, 6, 12, 0)) == 180

    def test_multi_day_excludes_each_lunch(self):
        assert support_minutes("2025-01-06T09:00:00", "2025-01-07T18:00:00") == 33 * 60 - 120

    def test_offsets_use_local_wall_clock(self):
        # 02:00Z is 11:00 in Seoul
        assert support_minutes("2025-01-06T02:00:00Z", "2025-01-06T14:00:00+09:00") == 120
        assert to_local_naive(datetime(2025, 1, 6, 3, 0, tzinfo=timezone.utc)) == datetime(2025, 1, 6, 12, 0)
        assert to_local_naive(datetime(2025, 1, 6, 3, 0)) == datetime(2025, 1, 6, 3, 0)

    def test_rounding(self):
        assert support_hours("2025-01-06T10:00", "2025-01-06T10:20") == 0.33

    @pytest.mark.parametrize(
        "start,end",
        [
            (None, "2025-01-06T10:00"),
            ("2025-01-06T10:00", None),
            ("not a date", "2025-01-06T10:00"),
            ("2025-01-06T10:00", "2025-01-06T10:00"),
            ("2025-01-06T11:00", "2025-01-06T10:00"),
        ],
    )
    def test_invalid_input_is_zero(self, start, end):
        assert support_minutes(start, end) == 0


class TestContractHelpers:
    def test_status(self):
        today = date(2025, 6, 1)
        assert contract_status(None, today) == "unknown"
        assert contract_status(date(2025, 5, 31), today) == "expired"
        assert contract_status(date(2025, 6, 1), today) == "expiring"
        assert contract_status(date(2025, 7, 1), today) == "expiring"
        assert contract_status(date(2025, 7, 2), today) == "active"
        assert contract_status("2025-12-31", today) == "active"

    def test_progress(self):
        assert contract_progress(date(2025, 1, 1), date(2025, 1, 11), today=date(2025, 1, 6)) == 50
        assert contract_progress(date(2025, 1, 1), date(2025, 1, 11), today=date(2024, 12, 1)) == 0
        assert contract_progress(date(2025, 1, 1), date(2025, 1, 11), today=date(2026, 1, 1)) == 100

    def test_monthly_effort(self):
        assert monthly_effort("2025-01-01", "2025-01-30") == 1.0
        assert monthly_effort("2025-01-01", None) == 0.03
        assert monthly_effort("2025-02-01", "2025-01-01") == 0
        assert monthly_effort(None, "2025-01-01") == 0


def _seed_contract(db_session):
    payload = ContractIn.model_validate(
        {
            "customer_name": "Acme",
            "project_title": "Maintenance",
            "start_date": "2025-01-15",
            "end_date": "2025-12-31",
            "items": [
                {"category": "HW", "item": "Firewall", "product": "FW", "cycle": "month"},
                {"category": "SW", "item": "SIEM", "product": "LB", "cycle": "quarter"},
                {"category": "HW", "item": "UPS", "product": "U1", "cycle": "on-failure"},
            ],
        }
    )
    return create_contract(db_session, payload)


class TestGeneration:
    def test_inspection_generation_is_idempotent(self, db_session):
        _seed_contract(db_session)

        created = generate_inspection_events(db_session, months=3, today=date(2025, 3, 1))
        # month: 3/15, 4/15, 5/15; quarter: 4/15
        assert created == 4
        assert generate_inspection_events(db_session, months=3, today=date(2025, 3, 1)) == 0

        events = db_session.query(CalendarEvent).filter(CalendarEvent.type == "inspection").all()
        keys = [(e.contract_id, e.asset_id, e.start.date()) for e in events]
        assert len(keys) == len(set(keys)) == 4
        for e in events:
            assert e.start.hour == 10 and e.end.hour == 12
            assert e.support_hours == 2.0
            assert e.title.startswith("[Acme] ")

    def test_longer_horizon_only_adds_new_dates(self, db_session):
        _seed_contract(db_session)
        generate_inspection_events(db_session, months=3, today=date(2025, 3, 1))
        # horizon now 2025-07-01: month adds 6/15, quarter adds nothing new (7/15 is past the horizon)
        assert generate_inspection_events(db_session, months=4, today=date(2025, 3, 1)) == 1

    def test_contract_end_generation(self, db_session):
        contract = _seed_contract(db_session)
        assert generate_contract_end_events(db_session) == 1
        assert generate_contract_end_events(db_session) == 0

        e = db_session.query(CalendarEvent).filter(CalendarEvent.type == "contract_end").one()
        assert e.contract_id == contract.id
        assert e.start == datetime(2025, 12, 31, 9, 0)
        assert e.end == datetime(2025, 12, 31, 18, 0)
