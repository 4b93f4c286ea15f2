# tests/test_pacing.py

"""
Ce qu'on teste :
→ Les bornes jour / semaine / mois en UTC
→ Les metas dérivées de la meta mensuelle
→ La progression réunions et ventes sur les fixtures de mars 2025
"""

import pytest
from datetime import datetime, timedelta, timezone

from models import BusinessModel, CommissionSettings


class TestPeriods:

    def test_period_starts(self, now):
        from metrics.pacing import period_starts

        starts = period_starts(now)

        assert starts["daily"] == datetime(2025, 3, 20)
        assert starts["weekly"] == datetime(2025, 3, 17)
        assert starts["monthly"] == datetime(2025, 3, 1)

    def test_sunday_goes_back_to_monday(self):
        from metrics.pacing import period_starts

        starts = period_starts(datetime(2025, 3, 23, 10, 0))
        assert starts["weekly"] == datetime(2025, 3, 17)

    def test_aware_now_converted_to_utc(self):
        """01h à UTC+3 le 20 → 22h UTC le 19."""
        from metrics.pacing import period_starts

        local = datetime(2025, 3, 20, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        assert period_starts(local)["daily"] == datetime(2025, 3, 19)


class TestTargets:

    def test_daily_target_conserves_monthly(self, now):
        from metrics.pacing import daily_target, days_in_month

        target = daily_target(10000, now)

        assert days_in_month(now) == 31
        assert target == 322.58
        assert target * 31 == pytest.approx(10000, abs=31 * 0.005)

    def test_weekly_target(self):
        from metrics.pacing import weekly_target
        assert weekly_target(20) == 4.62

    def test_percentage_zero_target(self):
        from metrics.pacing import percentage
        assert percentage(5, 0) == 0.0

    def test_future_rows_not_counted(self, now):
        from metrics.pacing import pace

        goals = pace(100, [(now + timedelta(days=1), 5)], now)
        assert goals.monthly.current == 0

    def test_missing_target_falls_back_to_default(self):
        from metrics.pacing import sales_target, meetings_target

        assert sales_target(CommissionSettings(closer_sales_target=0)) == 10000
        assert meetings_target(None) == 20


class TestPaceMeetings:

    def test_team_meetings(self, contacts, stages, now):
        """
        c1 (18/03), c2 (05/03), c5 legacy (20/03 11h).
        c4 est dans un stage perdu : pas une réunion.
        """
        from metrics.pacing import pace_meetings

        goals = pace_meetings(contacts, stages, now)

        assert goals.daily.current == 1
        assert goals.weekly.current == 2
        assert goals.monthly.current == 3
        assert goals.monthly.target == 20
        assert goals.monthly.percentage == 15.0

    def test_filtered_by_sdr(self, contacts, stages, now):
        from metrics.pacing import pace_meetings

        goals = pace_meetings(contacts, stages, now, sdr_id="emp_sdr_1")
        assert goals.monthly.current == 2

    def test_contact_counted_once(self, contacts, stages, now):
        from metrics.pacing import pace_meetings

        goals = pace_meetings(contacts + contacts, stages, now)
        assert goals.monthly.current == 3


class TestPaceSales:

    def test_tcv_sales(self, deals, now):
        """d1 (10/03) + d2 (19/03) ; d4 est en février."""
        from metrics.pacing import pace_sales

        goals = pace_sales(deals, BusinessModel.TCV, now)

        assert goals.daily.current == 0
        assert goals.weekly.current == 6000
        assert goals.monthly.current == 18000
        assert goals.monthly.percentage == 180.0

    def test_mrr_sales(self, deals, now):
        from metrics.pacing import pace_sales

        goals = pace_sales(deals, BusinessModel.MRR, now)
        assert goals.monthly.current == pytest.approx(2000)

    def test_configured_target(self, deals, now):
        from metrics.pacing import pace_sales

        settings = CommissionSettings(closer_sales_target=36000)
        goals = pace_sales(deals, BusinessModel.TCV, now, settings)

        assert goals.monthly.target == 36000
        assert goals.monthly.percentage == 50.0

    def test_contact_closer_wins_like_commissions(self, now):
        """
        Le deal est au nom de l'ancien closer, le contact au nouveau :
        pacing et commissions attribuent la vente au même closer.
        """
        from metrics.commission import closer_metrics, month_bounds
        from metrics.pacing import pace_sales
        from models import Contact, Deal, DealStatus

        deals = [Deal(
            id="d", value=5000, status=DealStatus.WON, contact_id="c",
            closer_id="emp_old", sale_date=datetime(2025, 3, 12),
        )]
        contacts_by_id = {"c": Contact(id="c", closer_id="emp_new")}

        goals = pace_sales(
            deals, BusinessModel.TCV, now,
            closer_id="emp_new", contacts_by_id=contacts_by_id,
        )
        metrics = closer_metrics(
            "emp_new", deals, BusinessModel.TCV, month_bounds(3, 2025), contacts_by_id
        )

        assert goals.monthly.current == 5000
        assert metrics.normalized_revenue == goals.monthly.current
