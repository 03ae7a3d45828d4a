"""
OTW Finance Tests
==================

Tests for:
1. Service Mile pay per tier
2. Adders (wait, cash handling, business account) and the 5-star bonus
3. Hourly fallback
4. Input clamping (bad numbers never raise, never go negative)
"""

from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase

from finance.pay_service import (
    DEFAULT_RATE_CENTS_PER_MILE, active_minutes_between, calculate_driver_pay, resolve_rate,
)


class TestServiceMilePay(SimpleTestCase):

    def test_standard_trip_with_tip_and_bonus(self):
        """12 miles STANDARD, 300 tip, 500 bonus -> 2100 + 500 + 300."""
        pay = calculate_driver_pay(
            service_miles=12,
            driver_tier='STANDARD',
            tips_cents=300,
            bonus_eligible=True,
            bonus_5star_cents=500,
        )
        self.assertEqual(pay.mile_pay_cents, 2100)
        self.assertEqual(pay.bonus_pay_cents, 500)
        self.assertEqual(pay.tips_cents, 300)
        self.assertEqual(pay.total_pay_cents, 2900)

    def test_each_tier_rate(self):
        for tier, rate in DEFAULT_RATE_CENTS_PER_MILE.items():
            with self.subTest(tier=tier):
                self.assertEqual(calculate_driver_pay(service_miles=10, driver_tier=tier).mile_pay_cents, rate * 10)

    def test_unknown_tier_paid_at_standard(self):
        self.assertEqual(resolve_rate('PLATINUM'), 175)
        self.assertEqual(resolve_rate(None), 175)
        self.assertEqual(resolve_rate('elite'), 200)

    def test_rate_table_override(self):
        table = {'STANDARD': 300, 'ELITE': 400}
        self.assertEqual(calculate_driver_pay(service_miles=2, driver_tier='ELITE', rate_table=table).mile_pay_cents, 800)
        # Unknown tier falls back to the override's STANDARD entry
        self.assertEqual(resolve_rate('PROBATION', table), 300)

    def test_bonus_requires_eligibility(self):
        pay = calculate_driver_pay(service_miles=1, bonus_eligible=False, bonus_5star_cents=500)
        self.assertEqual(pay.bonus_pay_cents, 0)
        self.assertEqual(pay.total_pay_cents, 175)

    def test_breakdown_is_logged(self):
        with self.assertLogs('finance.pay_service', level='DEBUG') as logs:
            calculate_driver_pay(service_miles=12, driver_tier='STANDARD', tips_cents=300)

        self.assertEqual(len(logs.output), 1)
        self.assertIn('[PAY]', logs.output[0])
        self.assertIn('total 2400¢', logs.output[0])


class TestAdders(SimpleTestCase):

    def test_wait_miles_after_grace(self):
        self.assertEqual(calculate_driver_pay(wait_miles=2).wait_bonus_cents, 0)
        self.assertEqual(calculate_driver_pay(wait_miles=3).wait_bonus_cents, 50)
        self.assertEqual(calculate_driver_pay(wait_miles=6).wait_bonus_cents, 200)

    def test_cash_and_business_adders(self):
        pay = calculate_driver_pay(service_miles=1, cash_handling=True, business_account=True)
        self.assertEqual(pay.cash_bonus_cents, 750)
        self.assertEqual(pay.business_bonus_cents, 500)
        self.assertEqual(pay.total_pay_cents, 175 + 750 + 500)


class TestHourlyFallback(SimpleTestCase):

    def test_hourly_pay_when_no_service_miles(self):
        pay = calculate_driver_pay(service_miles=0, active_minutes=45, hourly_rate_cents=2000)
        self.assertEqual(pay.hourly_pay_cents, 1500)
        self.assertEqual(pay.total_pay_cents, 1500)

    def test_hourly_pay_rounds_half_up(self):
        # 1 min * 90 / 60 = 1.5 -> 2
        self.assertEqual(calculate_driver_pay(active_minutes=1, hourly_rate_cents=90).hourly_pay_cents, 2)

    def test_service_miles_win_over_hourly(self):
        pay = calculate_driver_pay(service_miles=3, active_minutes=120, hourly_rate_cents=2000)
        self.assertEqual(pay.hourly_pay_cents, 0)
        self.assertEqual(pay.total_pay_cents, 525)

    def test_active_minutes_round_up(self):
        start = datetime(2026, 3, 1, 12, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(active_minutes_between(start, start), 0)
        self.assertEqual(active_minutes_between(start, start + timedelta(seconds=61)), 2)
        self.assertEqual(active_minutes_between(start, start + timedelta(minutes=30)), 30)
        self.assertEqual(active_minutes_between(start, start - timedelta(minutes=5)), 0)


class TestInputClamping(SimpleTestCase):

    def test_negative_inputs_count_as_zero(self):
        pay = calculate_driver_pay(service_miles=-5, tips_cents=-100, wait_miles=-10, bonus_5star_cents=-1, bonus_eligible=True)
        self.assertEqual(pay.total_pay_cents, 0)

    def test_malformed_inputs_never_raise(self):
        for value in (None, 'abc', float('nan'), float('inf'), True, object()):
            with self.subTest(value=value):
                pay = calculate_driver_pay(service_miles=value, tips_cents=value)
                self.assertEqual(pay.mile_pay_cents, 0)
                self.assertEqual(pay.tips_cents, 0)

    def test_numeric_strings_and_floats_are_rounded(self):
        pay = calculate_driver_pay(service_miles='4', tips_cents=99.5)
        self.assertEqual(pay.mile_pay_cents, 700)
        self.assertEqual(pay.tips_cents, 100)

    def test_total_is_sum_of_line_items(self):
        pay = calculate_driver_pay(
            service_miles=7, driver_tier='CONCIERGE', tips_cents=250, bonus_eligible=True,
            bonus_5star_cents=500, wait_miles=4, cash_handling=True, business_account=True,
        )
        items = (
            pay.mile_pay_cents + pay.hourly_pay_cents + pay.wait_bonus_cents + pay.cash_bonus_cents
            + pay.business_bonus_cents + pay.bonus_pay_cents + pay.tips_cents
        )
        self.assertEqual(pay.total_pay_cents, items)
        self.assertEqual(pay.to_dict()['total_pay_cents'], items)
