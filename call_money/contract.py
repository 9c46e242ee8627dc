"""
Call Money Contract Module

State machine and arithmetic for a single call money loan: daily interest
accrual, full and partial repayment, calling the loan due, late penalties and
collateral custody, with an append-only hash-chained transaction log.

Status moves Active -> Called -> Repaid (or Active -> Repaid when the loan is
paid off before it is called). Every operation validates its inputs before
touching any field, so a rejected call leaves the contract unchanged.
"""

from decimal import Decimal, InvalidOperation
from dataclasses import dataclass, astuple
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum
import hmac
import secrets
import threading
import uuid

from .config import CallMoneyConfig, get_config
from .errors import AlreadyExists, CallMoneyError, InvalidParameter, InvalidState
from .interest import (
    SECONDS_PER_DAY, ZERO, Amount,
    allocate_payment, elapsed_days, penalty_amount, simple_interest, to_decimal
)
from .logging_config import get_logger, log_action
from .transaction_log import TransactionLog, TransactionRecord, TransactionType


class LoanStatus(Enum):
    """Call money loan lifecycle states"""
    ACTIVE = "Active"      # Loan outstanding, lender has not demanded repayment
    CALLED = "Called"      # Lender demanded repayment, due after the notice period
    REPAID = "Repaid"      # Principal and interest fully paid (terminal)


@dataclass(frozen=True)
class LoanDetails:
    """Read-only snapshot of the main contract fields"""
    lender: str
    borrower: str
    principal: Decimal
    interest_rate: Decimal
    start_date: int
    accrued_interest: Decimal
    status: LoanStatus
    collateral: Optional[str]

    def as_tuple(self) -> Tuple[Any, ...]:
        """Positional form: (lender, borrower, principal, interest_rate, start_date,
        accrued_interest, status, collateral)"""
        return astuple(self)


def _require_party(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidParameter(f"{field_name} must be a non-empty identifier")
    return value


def _require_timestamp(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f"{field_name} must be an integer number of seconds, got {value!r}")
    return value


def _require_period(value: Any, field_name: str) -> int:
    value = _require_timestamp(value, field_name)
    if value < 0:
        raise InvalidParameter(f"{field_name} cannot be negative, got {value}")
    return value


class CallMoneyContract:
    """
    A call money loan between one lender and one borrower.

    Instances are independent; each mutating operation holds a per-instance
    lock for its whole read-modify-write.
    """

    def __init__(
        self,
        lender: str,
        borrower: str,
        principal: Amount,
        interest_rate: Amount,
        start_date: int,
        notice_period: int,
        grace_period: int,
        penalty_rate: Amount,
        contract_id: Optional[str] = None,
        config: Optional[CallMoneyConfig] = None
    ):
        """
        Create a contract in Active status with no accrued interest

        Args:
            lender: Resolved lender identifier
            borrower: Resolved borrower identifier
            principal: Amount borrowed, must be positive
            interest_rate: Annual rate, strictly between 0 and 1
            start_date: Unix timestamp the loan starts accruing from
            notice_period: Seconds between a call and the due date
            grace_period: Seconds after the due date before penalties start
            penalty_rate: Annual penalty rate on overdue principal, >= 0
            contract_id: Optional identifier (generated when omitted)
            config: Optional configuration (global config when omitted)

        Raises:
            InvalidParameter: If any term fails validation
        """
        self._setup(contract_id, config)
        try:
            self._set_terms(lender, borrower, interest_rate, start_date,
                            notice_period, grace_period, penalty_rate)
            principal = to_decimal(principal, "principal")
            if principal <= ZERO:
                raise InvalidParameter(f"Principal must be positive, got {principal}")
        except InvalidParameter as error:
            raise self._fail("create", error)

        self._principal = principal
        self._accrued_interest = ZERO
        self._last_interest_calc_date = self._start_date
        self._status = LoanStatus.ACTIVE
        self._collateral: Optional[str] = None
        self._due_date: Optional[int] = None
        self._last_penalty_date: Optional[int] = None
        self._history = TransactionLog()

        self._record(TransactionType.CONTRACT_INITIATED, self._start_date,
                     principal=principal, interest_rate=self._interest_rate)
        self._log("create", "Contract initiated", {
            "lender": self._lender,
            "borrower": self._borrower,
            "principal": principal,
            "interest_rate": self._interest_rate,
            "start_date": self._start_date,
        })

    @classmethod
    def create(
        cls,
        lender: str,
        borrower: str,
        principal: Amount,
        interest_rate: Amount,
        start_date: int,
        notice_period: int,
        grace_period: int,
        penalty_rate: Amount,
        **kwargs: Any
    ) -> 'CallMoneyContract':
        """Validate terms and return a new Active contract"""
        return cls(lender, borrower, principal, interest_rate, start_date,
                   notice_period, grace_period, penalty_rate, **kwargs)

    def _setup(self, contract_id: Optional[str], config: Optional[CallMoneyConfig]) -> None:
        self.config = config or get_config()
        self.logger = get_logger("call_money.contract")
        self.contract_id = contract_id or str(uuid.uuid4())
        self._owner_token = secrets.token_hex(16)
        self._lock = threading.RLock()

    def _set_terms(self, lender, borrower, interest_rate, start_date,
                   notice_period, grace_period, penalty_rate) -> None:
        lender = _require_party(lender, "lender")
        borrower = _require_party(borrower, "borrower")
        interest_rate = to_decimal(interest_rate, "interest_rate")
        if not (ZERO < interest_rate < Decimal('1')):
            raise InvalidParameter(f"Interest rate must be between 0 and 1, got {interest_rate}")
        start_date = _require_timestamp(start_date, "start_date")
        notice_period = _require_period(notice_period, "notice_period")
        grace_period = _require_period(grace_period, "grace_period")
        penalty_rate = to_decimal(penalty_rate, "penalty_rate")
        if penalty_rate < ZERO:
            raise InvalidParameter(f"Penalty rate cannot be negative, got {penalty_rate}")

        self._lender = lender
        self._borrower = borrower
        self._interest_rate = interest_rate
        self._start_date = start_date
        self._notice_period = notice_period
        self._grace_period = grace_period
        self._penalty_rate = penalty_rate

    # Read-only fields

    @property
    def lender(self) -> str:
        return self._lender

    @property
    def borrower(self) -> str:
        return self._borrower

    @property
    def principal(self) -> Decimal:
        return self._principal

    @property
    def interest_rate(self) -> Decimal:
        return self._interest_rate

    @property
    def accrued_interest(self) -> Decimal:
        return self._accrued_interest

    @property
    def start_date(self) -> int:
        return self._start_date

    @property
    def last_interest_calc_date(self) -> int:
        return self._last_interest_calc_date

    @property
    def notice_period(self) -> int:
        return self._notice_period

    @property
    def grace_period(self) -> int:
        return self._grace_period

    @property
    def penalty_rate(self) -> Decimal:
        return self._penalty_rate

    @property
    def status(self) -> LoanStatus:
        return self._status

    @property
    def collateral(self) -> Optional[str]:
        return self._collateral

    @property
    def due_date(self) -> Optional[int]:
        """Due date set when the money was called (None while Active)"""
        return self._due_date

    @property
    def last_penalty_date(self) -> Optional[int]:
        return self._last_penalty_date

    @property
    def owner_token(self) -> str:
        """Proof of exclusive control, handed to whoever created the contract"""
        return self._owner_token

    @property
    def total_due(self) -> Decimal:
        """Principal plus interest accrued so far (does not accrue)"""
        return self._principal + self._accrued_interest

    def verify_owner(self, token: str) -> bool:
        """Check a presented owner token in constant time"""
        return hmac.compare_digest(self._owner_token, str(token))

    # Operations

    def update_accrued_interest(self, current_date: int) -> Decimal:
        """
        Bring accrued interest up to current_date

        Interest = principal * interest_rate * whole_days / days_per_year

        Args:
            current_date: Unix timestamp to accrue up to

        Returns:
            Interest added by this call

        Raises:
            InvalidParameter: If current_date is not an integer, or precedes
                the last accrual date while back-dating is rejected
        """
        with self._lock:
            self._check_accrual_date("update_accrued_interest", current_date)
            return self._accrue(current_date)

    def repay(self, amount: Amount, current_date: int) -> Decimal:
        """
        Apply a repayment, interest first then principal

        Args:
            amount: Amount paid, >= 0
            current_date: Unix timestamp of the payment

        Returns:
            Excess over the total due (zero for a partial payment)

        Raises:
            InvalidParameter: If amount is negative or not a number, or the date is invalid
            InvalidState: If the loan is already repaid and repayment after
                payoff is not allowed
        """
        with self._lock:
            try:
                amount = to_decimal(amount, "amount")
            except InvalidParameter as error:
                raise self._fail("repay", error)
            if amount < ZERO:
                raise self._fail("repay", InvalidParameter(f"Repayment amount cannot be negative, got {amount}"))
            if self._status is LoanStatus.REPAID and not self.config.allow_repayment_after_repaid:
                raise self._fail("repay", InvalidState("Contract is already repaid"))
            self._check_accrual_date("repay", current_date)

            self._accrue(current_date)
            total_due = self._principal + self._accrued_interest

            if amount >= total_due:
                excess = amount - total_due
                self._principal = ZERO
                self._accrued_interest = ZERO
                self._status = LoanStatus.REPAID
                self._record(TransactionType.LOAN_REPAID, current_date,
                             excess=excess, total_due=total_due)
                self._log("repay", "Loan fully repaid", {
                    "amount": amount, "total_due": total_due, "excess": excess
                })
                return excess

            interest_paid, principal_paid = allocate_payment(
                amount, self._accrued_interest, self._principal
            )
            self._accrued_interest -= interest_paid
            self._principal -= principal_paid
            self._record(TransactionType.PARTIAL_REPAYMENT, current_date, amount=amount,
                         interest_paid=interest_paid, principal_paid=principal_paid)
            self._log("repay", "Partial repayment", {
                "amount": amount,
                "interest_paid": interest_paid,
                "principal_paid": principal_paid,
                "remaining_principal": self._principal,
            })
            return ZERO

    def call_money(self, current_date: int) -> Tuple[Decimal, int]:
        """
        Demand repayment. The loan becomes due after the notice period.

        Args:
            current_date: Unix timestamp of the call

        Returns:
            Tuple of (total_due, due_date)

        Raises:
            InvalidState: If the contract is not Active
            InvalidParameter: If the date is invalid
        """
        with self._lock:
            if self._status is not LoanStatus.ACTIVE:
                raise self._fail("call_money", InvalidState("Contract is not active"))
            self._check_accrual_date("call_money", current_date)

            self._accrue(current_date)
            total_due = self._principal + self._accrued_interest
            due_date = current_date + self._notice_period

            self._status = LoanStatus.CALLED
            self._due_date = due_date
            self._record(TransactionType.MONEY_CALLED, current_date,
                         due_date=due_date, total_due=total_due)
            self._log("call_money", "Money called", {
                "total_due": total_due, "due_date": due_date
            })
            return total_due, due_date

    def apply_penalty(self, current_date: int) -> Decimal:
        """
        Charge a late penalty on a called loan past its due date and grace period

        Uses the due date recorded by call_money. Overdue days already charged
        by an earlier call are not charged again.

        Args:
            current_date: Unix timestamp to assess the penalty at

        Returns:
            Penalty added (zero when not overdue by at least one whole day)

        Raises:
            InvalidState: If the contract has not been called
            InvalidParameter: If the date is invalid
        """
        with self._lock:
            if self._status is not LoanStatus.CALLED:
                raise self._fail("apply_penalty", InvalidState("Contract has not been called"))
            self._check_accrual_date("apply_penalty", current_date)

            self._accrue(current_date)

            penalty_start = self._due_date + self._grace_period
            if self._last_penalty_date is not None:
                penalty_start = max(penalty_start, self._last_penalty_date)

            days_overdue = 0
            if current_date > penalty_start:
                days_overdue = elapsed_days(penalty_start, current_date)
            if days_overdue <= 0:
                self._log("apply_penalty", "No penalty due", {
                    "due_date": self._due_date, "grace_period": self._grace_period
                })
                return ZERO

            penalty = penalty_amount(self._principal, self._penalty_rate,
                                     days_overdue, self.config.days_per_year)
            self._accrued_interest += penalty
            self._last_penalty_date = penalty_start + days_overdue * SECONDS_PER_DAY
            self._record(TransactionType.PENALTY_APPLIED, current_date,
                         penalty=penalty, days_overdue=days_overdue)
            self._log("apply_penalty", "Penalty applied", {
                "penalty": penalty, "days_overdue": days_overdue
            })
            return penalty

    def is_overdue(self, current_date: int) -> bool:
        """True once a called loan is past its due date plus grace period"""
        with self._lock:
            if self._status is not LoanStatus.CALLED:
                return False
            return current_date > self._due_date + self._grace_period

    def add_collateral(self, collateral_ref: str) -> None:
        """
        Attach a collateral asset reference

        Raises:
            InvalidParameter: If the reference is empty
            AlreadyExists: If collateral is already attached
        """
        with self._lock:
            try:
                collateral_ref = _require_party(collateral_ref, "collateral_ref")
            except InvalidParameter as error:
                raise self._fail("add_collateral", error)
            if self._collateral is not None:
                raise self._fail("add_collateral", AlreadyExists("Collateral already exists"))

            self._collateral = collateral_ref
            self._record(TransactionType.COLLATERAL_ADDED, collateral=collateral_ref)
            self._log("add_collateral", "Collateral added", {"collateral": collateral_ref})

    def remove_collateral(self) -> Optional[str]:
        """
        Release the collateral once principal is fully repaid

        Returns:
            The collateral reference, or None if none was attached

        Raises:
            InvalidState: If principal is still outstanding
        """
        with self._lock:
            if self._principal > ZERO:
                raise self._fail("remove_collateral",
                                 InvalidState("Loan must be fully repaid to remove collateral"))

            collateral, self._collateral = self._collateral, None
            if collateral is not None:
                self._record(TransactionType.COLLATERAL_REMOVED, collateral=collateral)
                self._log("remove_collateral", "Collateral removed", {"collateral": collateral})
            return collateral

    # Queries

    def get_details(self) -> LoanDetails:
        """Snapshot of lender, borrower, principal, rate, start date, accrued interest, status, collateral"""
        with self._lock:
            return LoanDetails(
                lender=self._lender,
                borrower=self._borrower,
                principal=self._principal,
                interest_rate=self._interest_rate,
                start_date=self._start_date,
                accrued_interest=self._accrued_interest,
                status=self._status,
                collateral=self._collateral,
            )

    def get_transaction_history(self) -> List[TransactionRecord]:
        """Copy of the transaction log in order"""
        with self._lock:
            return self._history.entries()

    def describe_history(self) -> List[str]:
        """Text form of the transaction log"""
        with self._lock:
            return self._history.render()

    def verify_history(self) -> Dict[str, Any]:
        """Verify the transaction log's hash chain"""
        with self._lock:
            return self._history.verify_integrity()

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the full contract state (amounts as strings)"""
        with self._lock:
            return {
                'contract_id': self.contract_id,
                'owner_token': self._owner_token,
                'lender': self._lender,
                'borrower': self._borrower,
                'principal': str(self._principal),
                'interest_rate': str(self._interest_rate),
                'accrued_interest': str(self._accrued_interest),
                'start_date': self._start_date,
                'last_interest_calc_date': self._last_interest_calc_date,
                'notice_period': self._notice_period,
                'grace_period': self._grace_period,
                'penalty_rate': str(self._penalty_rate),
                'status': self._status.value,
                'collateral': self._collateral,
                'due_date': self._due_date,
                'last_penalty_date': self._last_penalty_date,
                'transaction_history': self._history.to_list(),
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        config: Optional[CallMoneyConfig] = None
    ) -> 'CallMoneyContract':
        """
        Restore a contract produced by to_dict()

        Raises:
            InvalidParameter: If fields are missing or inconsistent, or the
                transaction log fails its integrity check
        """
        contract = cls.__new__(cls)
        contract._setup(data.get('contract_id'), config)
        try:
            contract._restore(data)
        except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as error:
            if not isinstance(error, CallMoneyError):
                error = InvalidParameter(f"Malformed contract state: {error}")
            raise contract._fail("restore", error)
        return contract

    def _restore(self, data: Dict[str, Any]) -> None:
        self._set_terms(data['lender'], data['borrower'], data['interest_rate'],
                        data['start_date'], data['notice_period'],
                        data['grace_period'], data['penalty_rate'])

        principal = to_decimal(data['principal'], "principal")
        accrued_interest = to_decimal(data['accrued_interest'], "accrued_interest")
        if principal < ZERO or accrued_interest < ZERO:
            raise InvalidParameter("Principal and accrued interest cannot be negative")

        last_calc = _require_timestamp(data['last_interest_calc_date'], "last_interest_calc_date")
        if last_calc < self._start_date:
            raise InvalidParameter("last_interest_calc_date precedes start_date")

        status = LoanStatus(data['status'])
        if status is LoanStatus.REPAID and principal > ZERO:
            raise InvalidParameter("Repaid contract has outstanding principal")
        collateral = data.get('collateral')
        if collateral is not None:
            _require_party(collateral, "collateral")
        due_date = data.get('due_date')
        if status is LoanStatus.CALLED and due_date is None:
            raise InvalidParameter("Called contract has no due date")
        if due_date is not None:
            _require_timestamp(due_date, "due_date")
        last_penalty_date = data.get('last_penalty_date')
        if last_penalty_date is not None:
            _require_timestamp(last_penalty_date, "last_penalty_date")

        history = TransactionLog.from_list(data['transaction_history'])
        integrity = history.verify_integrity()
        if not integrity['valid'] or len(history) == 0:
            raise InvalidParameter("Transaction history failed integrity check")

        self._principal = principal
        self._accrued_interest = accrued_interest
        self._last_interest_calc_date = last_calc
        self._status = status
        self._collateral = collateral
        self._due_date = due_date
        self._last_penalty_date = last_penalty_date
        self._history = history
        if data.get('owner_token'):
            self._owner_token = data['owner_token']

    # Internal helpers

    def _check_accrual_date(self, action: str, current_date: Any) -> None:
        try:
            _require_timestamp(current_date, "current_date")
        except InvalidParameter as error:
            raise self._fail(action, error)
        if current_date < self._last_interest_calc_date and self.config.reject_backdated_accrual:
            raise self._fail(action, InvalidParameter(
                f"current_date {current_date} precedes last interest calculation "
                f"date {self._last_interest_calc_date}"
            ))

    def _accrue(self, current_date: int) -> Decimal:
        days = elapsed_days(self._last_interest_calc_date, current_date)
        if days <= 0:
            # Less than a whole day (or back-dated and tolerated): the accrual date stays put
            interest = ZERO
        else:
            interest = simple_interest(self._principal, self._interest_rate,
                                       days, self.config.days_per_year)
            self._accrued_interest += interest
            # Advance by whole days only so the leftover partial day accrues later
            self._last_interest_calc_date += days * SECONDS_PER_DAY

        self._record(TransactionType.INTEREST_UPDATED, current_date,
                     interest=interest, days=max(days, 0))
        self._log("update_accrued_interest", "Interest updated", {
            "interest": interest,
            "days": days,
            "accrued_interest": self._accrued_interest,
        })
        return interest

    def _record(self, transaction_type: TransactionType,
                timestamp: Optional[int] = None, **details: Any) -> TransactionRecord:
        return self._history.append(transaction_type, timestamp, **details)

    def _log(self, action: str, message: str, extra: Optional[dict] = None) -> None:
        if self.config.enable_audit_logging:
            log_action(self.logger, "info", message, contract_id=self.contract_id,
                       action=action, extra=extra)

    def _fail(self, action: str, error: CallMoneyError) -> CallMoneyError:
        log_action(self.logger, "warning", f"{action} rejected: {error}",
                   contract_id=self.contract_id, action=action,
                   extra={"error": type(error).__name__})
        return error

    def __repr__(self) -> str:
        return (f"CallMoneyContract(id={self.contract_id!r}, status={self._status.value}, "
                f"principal={self._principal}, accrued_interest={self._accrued_interest})")
