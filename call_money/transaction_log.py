"""
Transaction Log Module

Append-only, hash-chained record of everything that happens to a call money
contract. Entries are structured (type + timestamp + numeric details) and are
rendered to text only when asked for.
"""

import hashlib
import json
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class TransactionType(Enum):
    """Kinds of transaction log entries"""
    CONTRACT_INITIATED = "contract_initiated"
    INTEREST_UPDATED = "interest_updated"
    LOAN_REPAID = "loan_repaid"
    PARTIAL_REPAYMENT = "partial_repayment"
    MONEY_CALLED = "money_called"
    PENALTY_APPLIED = "penalty_applied"
    COLLATERAL_ADDED = "collateral_added"
    COLLATERAL_REMOVED = "collateral_removed"


_DESCRIPTIONS = {
    TransactionType.CONTRACT_INITIATED: "Contract initiated",
    TransactionType.INTEREST_UPDATED: "Interest updated: {interest}",
    TransactionType.LOAN_REPAID: "Loan fully repaid. Excess: {excess}",
    TransactionType.PARTIAL_REPAYMENT: "Partial repayment: {amount}",
    TransactionType.MONEY_CALLED: "Money called. Due on: {due_date}",
    TransactionType.PENALTY_APPLIED: "Penalty applied: {penalty}",
    TransactionType.COLLATERAL_ADDED: "Collateral added",
    TransactionType.COLLATERAL_REMOVED: "Collateral removed",
}

# Detail keys holding money amounts; restored as Decimal when loading a log
AMOUNT_FIELDS = frozenset({
    "principal", "interest_rate", "interest", "excess", "amount", "total_due",
    "penalty", "interest_paid", "principal_paid",
})


def _canonical_json(data: Dict[str, Any]) -> str:
    """Deterministic JSON used for hashing (Decimals as their string form)"""
    return json.dumps(data, sort_keys=True, separators=(',', ':'), default=str)


@dataclass(frozen=True)
class TransactionRecord:
    """
    Immutable log entry with hash chaining for tamper detection
    """
    sequence: int
    transaction_type: TransactionType
    timestamp: Optional[int]  # Unix seconds; None for undated entries (collateral)
    details: Dict[str, Any] = field(default_factory=dict)
    previous_hash: str = ""
    current_hash: str = ""

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this entry
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'sequence': self.sequence,
            'transaction_type': self.transaction_type.value,
            'timestamp': self.timestamp,
            'details': self.details,
            'previous_hash': self.previous_hash,
        }
        return hashlib.sha256(_canonical_json(hash_data).encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def describe(self) -> str:
        """Human-readable form of the entry"""
        return _DESCRIPTIONS[self.transaction_type].format(**self.details)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary"""
        return {
            'sequence': self.sequence,
            'transaction_type': self.transaction_type.value,
            'timestamp': self.timestamp,
            'details': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.details.items()
            },
            'previous_hash': self.previous_hash,
            'current_hash': self.current_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionRecord':
        """Create TransactionRecord from dictionary"""
        details = {
            k: Decimal(v) if k in AMOUNT_FIELDS and v is not None else v
            for k, v in data.get('details', {}).items()
        }
        return cls(
            sequence=data['sequence'],
            transaction_type=TransactionType(data['transaction_type']),
            timestamp=data.get('timestamp'),
            details=details,
            previous_hash=data.get('previous_hash', ""),
            current_hash=data.get('current_hash', ""),
        )


class TransactionLog:
    """
    Append-only sequence of TransactionRecords. Entries are never reordered,
    edited or removed.
    """

    def __init__(self):
        self._entries: List[TransactionRecord] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TransactionRecord]:
        return iter(list(self._entries))

    @property
    def last_hash(self) -> str:
        return self._entries[-1].current_hash if self._entries else ""

    def append(
        self,
        transaction_type: TransactionType,
        timestamp: Optional[int] = None,
        **details: Any
    ) -> TransactionRecord:
        """
        Append an entry, chaining it to the previous one

        Args:
            transaction_type: Kind of entry
            timestamp: Unix seconds the entry refers to, if any
            **details: Values shown in the entry's description

        Returns:
            The appended TransactionRecord
        """
        record = TransactionRecord(
            sequence=len(self._entries),
            transaction_type=transaction_type,
            timestamp=timestamp,
            details=dict(details),
            previous_hash=self.last_hash,
        )
        record = replace(record, current_hash=record.calculate_hash())
        self._entries.append(record)
        return record

    def entries(self) -> List[TransactionRecord]:
        """Copy of all entries in order"""
        return list(self._entries)

    def render(self) -> List[str]:
        """Text form of all entries in order"""
        return [entry.describe() for entry in self._entries]

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_entries': len(self._entries),
            'hash_errors': [],
            'chain_breaks': [],
        }

        previous_hash = ""
        for position, entry in enumerate(self._entries):
            if entry.sequence != position or not entry.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'position': position,
                    'expected_hash': entry.calculate_hash(),
                    'actual_hash': entry.current_hash,
                })
            if entry.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': entry.previous_hash,
                })
            previous_hash = entry.current_hash

        return result

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialize all entries"""
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'TransactionLog':
        """Rebuild a log from serialized entries without re-hashing them"""
        log = cls()
        log._entries = [TransactionRecord.from_dict(item) for item in data]
        return log
