"""
Call Money

State machine for call money loans: daily simple interest, full and partial
repayment, calling the loan due, late penalties and collateral custody, with
Decimal arithmetic and a hash-chained transaction log.
"""

__version__ = "1.0.0"

from .contract import CallMoneyContract, LoanDetails, LoanStatus
from .errors import AlreadyExists, CallMoneyError, InvalidParameter, InvalidState
from .logging_config import setup_logging, setup_logging_from_config
from .transaction_log import TransactionLog, TransactionRecord, TransactionType

__all__ = [
    "CallMoneyContract",
    "LoanDetails",
    "LoanStatus",
    "CallMoneyError",
    "InvalidParameter",
    "InvalidState",
    "AlreadyExists",
    "TransactionLog",
    "TransactionRecord",
    "TransactionType",
    "setup_logging",
    "setup_logging_from_config",
]
