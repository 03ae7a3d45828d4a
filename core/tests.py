"""
OTW Core Tests
===============

Tests for:
1. Name normalisation & bigram similarity
2. Lenient number coercion
3. Settlement error payloads
4. Driver profile defaults
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings

from core.exceptions import DisputeValidationError, InvalidState, NotAssigned
from core.models import DriverProfile, DriverTier
from core.numbers import clamp, non_negative_int, round_half_up, round_half_up_int, to_decimal
from core.text import dice_coefficient, normalize_key, normalize_name


class TestNormalisation(SimpleTestCase):

    def test_normalize_key(self):
        self.assertEqual(normalize_key('  Big   Mac  '), 'big mac')
        self.assertEqual(normalize_key(None), '')

    def test_normalize_name_drops_store_numbers(self):
        self.assertEqual(normalize_name("Wendy's Store #4411"), 'wendy s')
        self.assertEqual(normalize_name('Target #12'), 'target')
        self.assertEqual(normalize_name('Whole_Foods-Market'), 'whole foods market')
        self.assertEqual(normalize_name(''), '')


class TestDiceCoefficient(SimpleTestCase):

    def test_identical_and_empty(self):
        self.assertEqual(dice_coefficient('pizza', 'pizza'), 1.0)
        self.assertEqual(dice_coefficient('', 'pizza'), 0.0)
        self.assertEqual(dice_coefficient('a', 'b'), 0.0)

    def test_partial_overlap(self):
        # night/nacht share only "ht"
        self.assertAlmostEqual(dice_coefficient('night', 'nacht'), 0.25)

    def test_repeated_bigrams_count_once_each(self):
        # "aa" appears twice in "aaa" but once in "aa"
        self.assertAlmostEqual(dice_coefficient('aaa', 'aa'), 2 * 1 / (2 + 1))

    def test_unrelated_items(self):
        self.assertLess(dice_coefficient('pizza', 'burger'), 0.5)


class TestNumbers(SimpleTestCase):

    def test_to_decimal(self):
        self.assertEqual(to_decimal(' 3.50 '), Decimal('3.50'))
        self.assertEqual(to_decimal(2), Decimal('2'))
        self.assertEqual(to_decimal(0.1), Decimal('0.1'))
        self.assertIsNone(to_decimal(True))
        self.assertIsNone(to_decimal('abc'))
        self.assertIsNone(to_decimal('NaN'))
        self.assertIsNone(to_decimal(float('inf')))
        self.assertIsNone(to_decimal(None))

    def test_round_half_up(self):
        self.assertEqual(round_half_up_int(Decimal('2.5')), 3)
        self.assertEqual(round_half_up_int(Decimal('-2.5')), -3)
        self.assertEqual(round_half_up(Decimal('3.505'), '0.01'), Decimal('3.51'))

    def test_clamp(self):
        self.assertEqual(clamp(140), 100)
        self.assertEqual(clamp(-3), 0)
        self.assertEqual(clamp(7, 1, 5), 5)

    def test_non_negative_int(self):
        self.assertEqual(non_negative_int('12.5'), 13)
        self.assertEqual(non_negative_int(-4), 0)
        self.assertEqual(non_negative_int('twelve'), 0)
        self.assertEqual(non_negative_int(False), 0)


class TestSettlementErrors(SimpleTestCase):

    def test_payload_includes_code_and_context(self):
        exc = InvalidState('Request is not available', status='ASSIGNED')
        self.assertEqual(exc.status_code, 409)
        self.assertEqual(exc.as_dict(), {
            'error': 'INVALID_STATE',
            'message': 'Request is not available',
            'status': 'ASSIGNED',
        })

    def test_default_message_is_code(self):
        self.assertEqual(NotAssigned().message, 'NOT_ASSIGNED')

    def test_dispute_validation_collects_errors(self):
        exc = DisputeValidationError(errors=['a', 'b'])
        self.assertEqual(exc.errors, ['a', 'b'])
        self.assertEqual(exc.as_dict()['details'], ['a', 'b'])


class TestDriverProfile(TestCase):

    @override_settings(DEFAULT_DRIVER_HOURLY_RATE_CENTS=2500, DEFAULT_BONUS_5STAR_CENTS=700)
    def test_defaults_come_from_settings(self):
        user = get_user_model().objects.create_user(username='driver', password='testpass123')
        profile = DriverProfile.objects.create(user=user)

        self.assertEqual(profile.tier, DriverTier.PROBATION)
        self.assertEqual(profile.hourly_rate_cents, 2500)
        self.assertEqual(profile.bonus_5star_cents, 700)

    def test_completed_jobs_ignores_garbage(self):
        user = get_user_model().objects.create_user(username='driver', password='testpass123')
        profile = DriverProfile.objects.create(user=user, performance_metrics={'completedJobs': 'many'})
        self.assertEqual(profile.completed_jobs, 0)
