"""Tests for scoped totals over the daily metric table."""

from datetime import date

import pytest

from aggregation.reader import ScopedStats
from storage.database import upsert
from storage.models import DailyMetric

DAY = date(2026, 10, 19)


def daily(session, metric_type, day, value, user_id=None, company_id=None, recruiter_id=None):
    upsert(
        session,
        DailyMetric,
        key={
            "metric_type": metric_type,
            "time_value": day,
            "dimension_user_id": user_id,
            "dimension_company_id": company_id,
            "dimension_recruiter_id": recruiter_id,
        },
        values={"time_bucket": "day", "value": value, "metric_metadata": {}},
    )


@pytest.fixture
def stats(database):
    with database.session() as session:
        daily(session, "applications_submitted", DAY, 5.0)
        daily(session, "applications_submitted", DAY, 2.0, user_id="cand-1", recruiter_id="r1")
        daily(session, "applications_submitted", date(2026, 10, 17), 1.0, user_id="cand-1", company_id="c1")
        daily(session, "placements_completed", DAY, 1.0, user_id="cand-2", recruiter_id="r1")
        daily(session, "applications_submitted", date(2026, 9, 1), 9.0, recruiter_id="r1")
    return ScopedStats(database)


class TestScopedStats:
    def test_candidate_sums_across_other_dimensions(self, stats):
        summary = stats.summary("candidate", "cand-1", date(2026, 10, 1), DAY)
        assert summary == {"applications_submitted": 3.0}

    def test_recruiter_groups_by_metric_type(self, stats):
        summary = stats.summary("recruiter", "r1", date(2026, 10, 1), DAY)
        assert summary == {"applications_submitted": 2.0, "placements_completed": 1.0}

    def test_range_is_inclusive(self, stats):
        assert stats.summary("company", "c1", date(2026, 10, 17), date(2026, 10, 17)) == {
            "applications_submitted": 1.0
        }
        assert stats.summary("company", "c1", date(2026, 10, 18), DAY) == {}

    def test_platform_reads_only_undimensioned_rows(self, stats):
        assert stats.summary("platform", None, date(2026, 10, 1), DAY) == {"applications_submitted": 5.0}

    def test_unknown_id_is_empty(self, stats):
        assert stats.summary("user", "nobody", date(2026, 10, 1), DAY) == {}
