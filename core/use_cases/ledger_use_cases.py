"""
Balance ledger: applying transactions, and recomputing a stored balance from
transaction history.

The reconciliation pass is a plain read-then-conditionally-write with no lock
and no version check. A transaction written between reading the history and
writing the corrected balance is not part of that cycle's calculation; the
next run picks it up.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from config.settings import settings
from core.entities.transaction import CREDIT_TYPES, DEBIT_TYPES, Transaction
from core.errors import InsufficientFundsError, TransactionValidationError, UserNotFoundError
from core.repositories.user_repository import UserRepository
from core.use_cases.validation import (
    ValidationResult,
    check_sign,
    format_amount,
    is_number,
    validate_balance_consistency,
    validate_transaction,
)

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = (
    (1000.0, "CRITICAL"),
    (100.0, "HIGH"),
    (10.0, "MEDIUM"),
)

NEGATIVE_BALANCE_AFTER = "Invalid balance after transaction"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def raw_balance(transactions: Iterable[Transaction]) -> float:
    total = 0.0
    for tx in transactions:
        if tx.type in CREDIT_TYPES:
            total += abs(tx.amount)
        elif tx.type in DEBIT_TYPES:
            total -= abs(tx.amount)
    return total


def calculate_balance(transactions: Iterable[Transaction]) -> float:
    # clamp once at the end, not per step
    return max(0.0, raw_balance(transactions))


@dataclass
class ReconciliationResult:
    user_id: str
    fixed: bool = False
    old_balance: Optional[float] = None
    new_balance: Optional[float] = None
    balance: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        if self.fixed:
            return {"fixed": True, "old_balance": self.old_balance, "new_balance": self.new_balance}
        return {"fixed": False, "balance": self.balance}


@dataclass
class FixedUser:
    user_id: str
    email: str
    old_balance: float
    new_balance: float


@dataclass
class BatchReconciliationReport:
    total: int = 0
    fixed: int = 0
    correct: int = 0
    errors: int = 0
    fixed_users: List[FixedUser] = field(default_factory=list)


def reconcile_user_balance(
    repo: UserRepository,
    user_id: str,
    tolerance: Optional[float] = None,
    now: Optional[str] = None,
) -> ReconciliationResult:
    """Recompute one user's balance from history and overwrite the stored value on drift.

    Never raises: a failed read or write comes back as ``ReconciliationResult.error``.
    """
    if tolerance is None:
        tolerance = settings.BALANCE_TOLERANCE
    try:
        user = repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User profile not found")

        history = repo.get_transaction_history(user_id)
        stored = user.balance
        calculated = calculate_balance(history)
        logger.debug("User %s: %d transactions, stored %s, calculated %s",
                     user_id, len(history), format_amount(stored), format_amount(calculated))

        discrepancy = abs(stored - calculated)
        if discrepancy <= tolerance:
            return ReconciliationResult(user_id=user_id, fixed=False, balance=stored)

        logger.info("Balance discrepancy %s for user %s: %s -> %s",
                    format_amount(discrepancy), user_id, format_amount(stored), format_amount(calculated))
        repo.fix_balance(user_id, calculated, now or utc_now())
        return ReconciliationResult(user_id=user_id, fixed=True, old_balance=stored, new_balance=calculated)
    except Exception as e:
        logger.exception("Error fixing balance for user %s", user_id)
        return ReconciliationResult(user_id=user_id, error=str(e))


def reconcile_all_users(
    repo: UserRepository,
    delay_seconds: Optional[float] = None,
    tolerance: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchReconciliationReport:
    if delay_seconds is None:
        delay_seconds = settings.RECONCILE_DELAY_SECONDS
    users = repo.list_users()
    report = BatchReconciliationReport(total=len(users))
    logger.info("Checking balances of %d users", len(users))

    for index, user in enumerate(users):
        result = reconcile_user_balance(repo, user.id, tolerance=tolerance)
        if result.error is not None:
            report.errors += 1
        elif result.fixed:
            report.fixed += 1
            report.fixed_users.append(FixedUser(
                user_id=user.id,
                email=user.email,
                old_balance=result.old_balance,
                new_balance=result.new_balance,
            ))
        else:
            report.correct += 1

        # пауза между пользователями, чтобы не нагружать хранилище
        if delay_seconds and index < len(users) - 1:
            sleep(delay_seconds)

    logger.info("Balance check done: %d correct, %d fixed, %d errors",
                report.correct, report.fixed, report.errors)
    return report


@dataclass
class BalanceHealthReport:
    user_id: str
    email: str
    current_balance: float
    calculated_balance: float
    discrepancy: float
    transaction_count: int
    last_transaction_at: Optional[str]
    issues: List[str]
    warnings: List[str]
    suspicious_transactions: List[Dict[str, Any]]
    severity: str

    @property
    def is_healthy(self) -> bool:
        return not self.issues


def classify_severity(discrepancy: float) -> str:
    for threshold, level in SEVERITY_LEVELS:
        if abs(discrepancy) > threshold:
            return level
    return "LOW"


def check_user_balance_health(
    repo: UserRepository,
    user_id: str,
    tolerance: Optional[float] = None,
) -> BalanceHealthReport:
    """Same calculation as the reconciliation pass, reported but never written back."""
    user = repo.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError("User profile not found")

    history = repo.get_transaction_history(user_id)
    calculated = calculate_balance(history)
    issues = validate_balance_consistency(user.balance, calculated, tolerance).errors
    # negative-history warning needs the unclamped total
    warnings = validate_balance_consistency(user.balance, raw_balance(history), tolerance).warnings

    suspicious = []
    for tx in history:
        sign = ValidationResult()
        check_sign(sign, tx.type, tx.amount)
        if sign.errors:
            suspicious.append({"id": tx.id, "type": tx.type, "amount": tx.amount, "issue": sign.errors[0]})

    discrepancy = user.balance - calculated
    return BalanceHealthReport(
        user_id=user.id,
        email=user.email,
        current_balance=user.balance,
        calculated_balance=calculated,
        discrepancy=discrepancy,
        transaction_count=len(history),
        last_transaction_at=history[-1].created_at if history else None,
        issues=list(issues),
        warnings=list(warnings),
        suspicious_transactions=suspicious,
        severity=classify_severity(discrepancy),
    )


def audit_all_users(repo: UserRepository, tolerance: Optional[float] = None) -> List[BalanceHealthReport]:
    flagged = []
    for user in repo.list_users():
        report = check_user_balance_health(repo, user.id, tolerance)
        if report.severity != "LOW" or report.suspicious_transactions:
            logger.warning("%s balance issue for user %s: discrepancy %s, %d suspicious transactions",
                           report.severity, user.id, format_amount(report.discrepancy),
                           len(report.suspicious_transactions))
            flagged.append(report)
    return flagged


def apply_transaction(
    repo: UserRepository,
    user_id: str,
    type: str,
    amount: float,
    description: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Transaction:
    """Move the stored balance by ``amount`` and log the transaction with previous/new balance."""
    user = repo.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError("User not found")

    previous = user.balance
    new_balance = round(previous + amount, 2) if is_number(amount) else previous
    overdraft = isinstance(type, str) and type in DEBIT_TYPES and new_balance < 0

    check = validate_transaction(user_id, type, amount, description, new_balance)
    # overdraft is reported as InsufficientFundsError, not as a negative balance_after
    errors = [e for e in check.errors if not (overdraft and e == NEGATIVE_BALANCE_AFTER)]
    if errors:
        raise TransactionValidationError(errors)
    if overdraft:
        raise InsufficientFundsError(
            f"Insufficient balance. Required: {format_amount(abs(amount))}, Available: {format_amount(previous)}"
        )
    for warning in check.warnings:
        logger.warning("Transaction for user %s: %s", user_id, warning)

    repo.set_balance(user_id, new_balance)
    return repo.log_transaction(
        user_id=user_id,
        type=type,
        amount=amount,
        description=description,
        previous_balance=previous,
        new_balance=new_balance,
        metadata=metadata,
    )
