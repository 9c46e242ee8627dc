"""
Interest Arithmetic Module

Day-count and money arithmetic for call money loans. Interest is simple
(non-compounding) pro-rata daily accrual on the outstanding principal; elapsed
time is truncated to whole days. All amounts are Decimal.
"""

from decimal import Decimal, InvalidOperation
from typing import Tuple, Union

from .errors import InvalidParameter


SECONDS_PER_DAY = 86400
DAYS_PER_YEAR = 365

ZERO = Decimal('0')

Amount = Union[Decimal, int, str, float]


def to_decimal(value: Amount, field_name: str = "amount") -> Decimal:
    """
    Convert an amount to Decimal.

    Floats go through str() so 0.05 becomes Decimal('0.05') rather than its
    binary expansion.

    Args:
        value: Amount as Decimal, int, str or float
        field_name: Name used in the error message

    Returns:
        Finite Decimal value

    Raises:
        InvalidParameter: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidParameter(f"{field_name} must be a number, got {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidParameter(f"{field_name} must be a number, got {value!r}") from None
    else:
        raise InvalidParameter(f"{field_name} must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise InvalidParameter(f"{field_name} must be finite, got {value!r}")

    return result


def elapsed_days(start: int, end: int) -> int:
    """Whole days between two Unix timestamps (floor division, negative if end precedes start)"""
    return (end - start) // SECONDS_PER_DAY


def simple_interest(
    principal: Decimal,
    annual_rate: Decimal,
    days: int,
    days_per_year: int = DAYS_PER_YEAR
) -> Decimal:
    """
    Simple pro-rata interest: principal * rate * days / days_per_year

    Args:
        principal: Outstanding principal
        annual_rate: Annual rate (e.g. 0.05 for 5%)
        days: Whole days elapsed
        days_per_year: Day-count denominator

    Returns:
        Interest amount (zero when no days elapsed)
    """
    if days == 0:
        return ZERO
    return principal * annual_rate * Decimal(days) / Decimal(days_per_year)


def penalty_amount(
    principal: Decimal,
    penalty_rate: Decimal,
    days_overdue: int,
    days_per_year: int = DAYS_PER_YEAR
) -> Decimal:
    """Penalty charged on overdue principal, same day-count as interest"""
    if days_overdue <= 0:
        return ZERO
    return simple_interest(principal, penalty_rate, days_overdue, days_per_year)


def allocate_payment(
    amount: Decimal,
    accrued_interest: Decimal,
    principal: Decimal
) -> Tuple[Decimal, Decimal]:
    """
    Split a partial payment between outstanding interest and principal.

    Interest is paid first; whatever remains reduces principal.

    Args:
        amount: Payment amount, less than accrued_interest + principal
        accrued_interest: Interest outstanding
        principal: Principal outstanding

    Returns:
        Tuple of (interest_paid, principal_paid)
    """
    interest_paid = min(amount, accrued_interest)
    principal_paid = min(amount - interest_paid, principal)
    return interest_paid, principal_paid
