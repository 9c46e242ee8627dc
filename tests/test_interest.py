"""
Test suite for interest arithmetic

Tests day counting, simple interest, penalty amounts, payment allocation and
Decimal coercion. All financial math must be precise.
"""

import pytest
from decimal import Decimal

from call_money.errors import InvalidParameter
from call_money.interest import (
    SECONDS_PER_DAY, DAYS_PER_YEAR,
    to_decimal, elapsed_days, simple_interest, penalty_amount, allocate_payment
)


class TestToDecimal:
    """Test Decimal coercion"""

    def test_decimal_passthrough(self):
        value = Decimal('1234.56')
        assert to_decimal(value) is value

    def test_int_and_string(self):
        assert to_decimal(1000) == Decimal('1000')
        assert to_decimal("0.05") == Decimal('0.05')

    def test_float_goes_through_str(self):
        """0.05 should not pick up binary noise"""
        assert to_decimal(0.05) == Decimal('0.05')

    @pytest.mark.parametrize("value", [True, None, "abc", [1], Decimal('NaN'), "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(InvalidParameter):
            to_decimal(value, "principal")

    def test_error_names_field(self):
        with pytest.raises(InvalidParameter, match="interest_rate"):
            to_decimal("x", "interest_rate")


class TestElapsedDays:
    """Test whole-day truncation"""

    def test_constants(self):
        assert SECONDS_PER_DAY == 86400
        assert DAYS_PER_YEAR == 365

    def test_exact_days(self):
        assert elapsed_days(0, 365 * SECONDS_PER_DAY) == 365

    def test_partial_day_truncated(self):
        assert elapsed_days(0, SECONDS_PER_DAY - 1) == 0
        assert elapsed_days(0, 2 * SECONDS_PER_DAY + 3600) == 2

    def test_same_timestamp(self):
        assert elapsed_days(1_700_000_000, 1_700_000_000) == 0

    def test_backwards_is_negative(self):
        assert elapsed_days(SECONDS_PER_DAY, 0) == -1


class TestSimpleInterest:
    """Test simple pro-rata interest"""

    def test_one_year(self):
        interest = simple_interest(Decimal('1000'), Decimal('0.05'), 365)
        assert interest == Decimal('50')

    def test_thirty_days(self):
        interest = simple_interest(Decimal('10000'), Decimal('0.073'), 30)
        assert interest == Decimal('60')

    def test_zero_days(self):
        assert simple_interest(Decimal('1000'), Decimal('0.05'), 0) == Decimal('0')

    def test_custom_day_count(self):
        interest = simple_interest(Decimal('3600'), Decimal('0.1'), 36, days_per_year=360)
        assert interest == Decimal('36')

    def test_no_compounding(self):
        """Two partial accruals equal one full-year accrual"""
        first = simple_interest(Decimal('1000'), Decimal('0.05'), 73)
        second = simple_interest(Decimal('1000'), Decimal('0.05'), 292)
        assert first == Decimal('10')
        assert first + second == simple_interest(Decimal('1000'), Decimal('0.05'), 365)


class TestPenaltyAmount:
    """Test penalty computation"""

    def test_penalty_on_overdue_days(self):
        penalty = penalty_amount(Decimal('1000'), Decimal('0.1'), 73)
        assert penalty == Decimal('20')

    def test_no_penalty_without_overdue_days(self):
        assert penalty_amount(Decimal('1000'), Decimal('0.1'), 0) == Decimal('0')
        assert penalty_amount(Decimal('1000'), Decimal('0.1'), -5) == Decimal('0')

    def test_zero_rate(self):
        assert penalty_amount(Decimal('1000'), Decimal('0'), 30) == Decimal('0')


class TestAllocatePayment:
    """Test interest-first payment allocation"""

    def test_payment_below_interest(self):
        interest_paid, principal_paid = allocate_payment(
            Decimal('30'), Decimal('50'), Decimal('1000')
        )
        assert interest_paid == Decimal('30')
        assert principal_paid == Decimal('0')

    def test_payment_covers_interest_and_some_principal(self):
        interest_paid, principal_paid = allocate_payment(
            Decimal('500'), Decimal('50'), Decimal('1000')
        )
        assert interest_paid == Decimal('50')
        assert principal_paid == Decimal('450')

    def test_allocation_sums_to_payment(self):
        amount = Decimal('123.45')
        interest_paid, principal_paid = allocate_payment(amount, Decimal('10.01'), Decimal('900'))
        assert interest_paid + principal_paid == amount
