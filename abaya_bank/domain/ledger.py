"""Ledger rules - direction of entries, account guards and reference numbers"""

import itertools
import random
import time

from abaya_bank.domain.exceptions import InsufficientFundsError, InvalidStateError, ValidationError
from abaya_bank.domain.models import ACCOUNT_ACTIVE, CREDIT, CREDIT_TYPES, DEBIT, DEBIT_TYPES


def direction_for(transaction_type: str) -> str:
    """Credit or debit for a non-reversal transaction type"""
    if transaction_type in CREDIT_TYPES:
        return CREDIT
    if transaction_type in DEBIT_TYPES:
        return DEBIT
    raise ValidationError(f"Transaction type {transaction_type} has no fixed direction")


def opposite(direction: str) -> str:
    return DEBIT if direction == CREDIT else CREDIT


def signed_amount(direction: str, amount_cents: int) -> int:
    """Credits count positive, debits negative"""
    return amount_cents if direction == CREDIT else -amount_cents


def ensure_positive_amount(amount_cents: int) -> None:
    if amount_cents <= 0:
        raise ValidationError("Amount must be positive")


def ensure_can_transact(account) -> None:
    """Only active accounts move money"""
    if account.status != ACCOUNT_ACTIVE:
        raise InvalidStateError("Account is not active")


def ensure_sufficient_balance(account, amount_cents: int, message: str = "Insufficient balance") -> None:
    if account.balance_cents < amount_cents:
        raise InsufficientFundsError(message)


# Per-process counters seeded randomly; the clock part separates processes,
# the counter separates calls within the same millisecond.
_account_sequence = itertools.count(random.randint(0, 9_999))
_txn_sequence = itertools.count(random.randint(0, 99_999))
_loan_sequence = itertools.count(random.randint(0, 999))


def generate_account_number(prefix: str = "AB") -> str:
    """Prefix + last 8 digits of the ms clock + 4-digit sequence"""
    timestamp = str(int(time.time() * 1000))[-8:]
    return f"{prefix}{timestamp}{next(_account_sequence) % 10_000:04d}"


def generate_transaction_reference() -> str:
    """TXN + ms clock + 5-digit sequence"""
    return f"TXN{int(time.time() * 1000)}{next(_txn_sequence) % 100_000:05d}"


def generate_loan_number() -> str:
    """LOAN + last 10 digits of the ms clock + 3-digit sequence"""
    timestamp = str(int(time.time() * 1000))[-10:]
    return f"LOAN{timestamp}{next(_loan_sequence) % 1_000:03d}"
