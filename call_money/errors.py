"""
Error Taxonomy Module

Typed failures raised by the call money contract. Every failure is raised
before any contract field is written, so the contract is unchanged afterwards.
"""


class CallMoneyError(Exception):
    """Base class for all call money contract errors"""
    pass


class InvalidParameter(CallMoneyError, ValueError):
    """An argument failed validation (bad terms, negative amount, back-dated timestamp)"""
    pass


class InvalidState(CallMoneyError):
    """The operation is not permitted in the contract's current status"""
    pass


class AlreadyExists(CallMoneyError):
    """Collateral is already attached to the contract"""
    pass
