"""Tests for the daily marketplace health computation."""

import math
from datetime import date, datetime

import pytest
from sqlalchemy import select

from aggregation.marketplace_health import (
    RECRUITER_RETENTION_PLACEHOLDER,
    MarketplaceHealthComputer,
    health_score,
    safe_ratio,
)
from storage.models import MarketplaceHealthSnapshot
from storage.source_tables import Application, FraudSignal, Job, Placement, Recruiter

DAY = date(2026, 10, 18)
NOW = datetime(2026, 10, 19, 3, 0)


@pytest.fixture
def marketplace(database):
    with database.session() as s:
        s.add_all([
            Application(id="a1", created_at=datetime(2026, 10, 8, 12)),
            Application(id="a2", created_at=datetime(2026, 10, 13, 12)),
            *[Application(id=f"d{i}", created_at=datetime(2026, 10, 18, 9 + i)) for i in range(4)],
            Application(id="early", created_at=datetime(2026, 10, 17, 23, 59)),
            Placement(
                id="p1", application_id="a1", state="completed", placement_fee=10000,
                hired_at=datetime(2026, 10, 18, 12), created_at=datetime(2026, 10, 18, 12),
            ),
            Placement(
                id="p2", application_id="a2", state="hired", placement_fee=6000,
                hired_at=datetime(2026, 10, 18, 12), created_at=datetime(2026, 10, 18, 13),
            ),
            Placement(
                id="p3", state="disputed", placement_fee=2000,
                created_at=datetime(2026, 10, 1), updated_at=datetime(2026, 10, 18, 16),
            ),
            Recruiter(id="r1", status="active", last_active_at=datetime(2026, 10, 10)),
            Recruiter(id="r2", status="active", last_active_at=datetime(2026, 9, 1)),
            Recruiter(id="r3", status="suspended", last_active_at=datetime(2026, 10, 17)),
            Job(id="j1", status="active", created_at=datetime(2026, 9, 1)),
            Job(id="j2", status="active", created_at=datetime(2026, 9, 2)),
            Job(id="j3", status="closed", created_at=datetime(2026, 9, 3)),
            FraudSignal(id="f1", created_at=datetime(2026, 10, 18, 8)),
            FraudSignal(id="f2", created_at=datetime(2026, 10, 19, 1)),
        ])
    return database


def stored(database):
    with database.session() as s:
        return s.scalars(select(MarketplaceHealthSnapshot)).all()


class TestSafeRatio:
    def test_zero_denominator(self):
        assert safe_ratio(5, 0) == 0.0
        assert safe_ratio(0, 0, 100) == 0.0

    def test_scaled_and_rounded(self):
        assert safe_ratio(1, 3, 100) == 33.33


class TestHealthScore:
    def test_clamped_to_range(self):
        assert health_score(100, 100, 100, 0, 0) == 100.0
        assert health_score(0, 0, 0, 10, 10) == 0.0

    def test_penalties(self):
        assert health_score(50, 50, 85, 1, 1) == 68.5


class TestMarketplaceHealthComputer:
    def test_computes_yesterday_by_default(self, marketplace, settings):
        metrics = MarketplaceHealthComputer(marketplace, settings).compute(now=NOW)

        assert metrics.metric_date == DAY
        assert metrics.total_placements == 2
        assert metrics.completed_placements == 1
        assert metrics.total_applications == 4
        assert metrics.total_fees == 16000.0
        assert metrics.avg_time_to_hire_days == 7.5
        assert metrics.active_recruiters == 1
        assert metrics.active_jobs == 2
        assert metrics.fraud_signals == 1
        assert metrics.disputed_placements == 1
        assert metrics.hire_rate == 50.0
        assert metrics.completion_rate == 50.0
        assert metrics.avg_fee_per_placement == 8000.0
        assert metrics.avg_applications_per_job == 2.0
        assert metrics.recruiter_retention_rate == RECRUITER_RETENTION_PLACEHOLDER
        assert metrics.health_score == 68.5

    def test_persists_one_row_per_date(self, marketplace, settings):
        computer = MarketplaceHealthComputer(marketplace, settings)
        computer.compute(DAY)
        computer.compute(DAY)

        rows = stored(marketplace)
        assert len(rows) == 1
        assert rows[0].metric_date == DAY
        assert rows[0].health_score == 68.5

    def test_empty_day_has_no_division_errors(self, database, settings):
        metrics = MarketplaceHealthComputer(database, settings).compute(DAY)

        assert metrics.hire_rate == 0.0
        assert metrics.completion_rate == 0.0
        assert metrics.avg_fee_per_placement == 0.0
        assert metrics.avg_applications_per_job == 0.0
        assert metrics.health_score == 25.5
        for value in (metrics.hire_rate, metrics.completion_rate, metrics.health_score):
            assert math.isfinite(value)

    def test_failed_query_writes_nothing(self, marketplace, settings):
        computer = MarketplaceHealthComputer(marketplace, settings)

        def broken(start, end):
            raise RuntimeError("fraud table unavailable")

        computer._fraud_signal_count = broken
        with pytest.raises(RuntimeError):
            computer.compute(DAY)
        assert stored(marketplace) == []
