import pytest

from core.entities.transaction import DEPOSIT, PURCHASE, REFERRAL_BONUS, REFUND, WITHDRAWAL, Transaction
from core.errors import InsufficientFundsError, TransactionValidationError, UserNotFoundError
from core.use_cases.ledger_use_cases import (
    apply_transaction,
    audit_all_users,
    calculate_balance,
    check_user_balance_health,
    classify_severity,
    reconcile_all_users,
    reconcile_user_balance,
)
from infrastructure.db.sqlite import SQLiteUserRepository


def tx(type_, amount):
    return Transaction(id="t", user_id="u", type=type_, amount=amount, description="d",
                       previous_balance=0.0, new_balance=0.0, created_at="2025-01-01T00:00:00+00:00")


def test_calculate_balance_uses_absolute_amounts_by_type():
    history = [tx(DEPOSIT, 50), tx(PURCHASE, -20), tx(REFUND, 5), tx(REFERRAL_BONUS, 2), tx(WITHDRAWAL, 7)]
    assert calculate_balance(history) == pytest.approx(30)


def test_calculate_balance_clamps_only_at_the_end():
    # a per-step clamp would give 10 here
    history = [tx(PURCHASE, -20), tx(DEPOSIT, 30)]
    assert calculate_balance(history) == pytest.approx(10)
    assert calculate_balance([tx(DEPOSIT, 10), tx(PURCHASE, -30)]) == 0


def test_unknown_types_are_ignored():
    assert calculate_balance([tx(DEPOSIT, 10), tx("cashback", 99)]) == pytest.approx(10)


def test_discrepancy_is_fixed(user_repo, make_user, add_history):
    user = make_user(balance=30)
    add_history(user.id, (DEPOSIT, 50), (PURCHASE, -20), (DEPOSIT, 10))

    result = reconcile_user_balance(user_repo, user.id, now="2025-06-01T12:00:00+00:00")

    assert result.to_dict() == {"fixed": True, "old_balance": 30, "new_balance": 40}
    stored = user_repo.get_by_id(user.id)
    assert stored.balance == pytest.approx(40)
    assert stored.balance_fixed_at == "2025-06-01T12:00:00+00:00"
    assert stored.updated_at == "2025-06-01T12:00:00+00:00"


def test_matching_balance_is_left_alone(user_repo, make_user, add_history):
    user = make_user(balance=40)
    add_history(user.id, (DEPOSIT, 50), (PURCHASE, -20), (DEPOSIT, 10))

    result = reconcile_user_balance(user_repo, user.id)

    assert result.to_dict() == {"fixed": False, "balance": 40}
    assert user_repo.get_by_id(user.id).balance_fixed_at is None


def test_difference_within_tolerance_is_not_a_discrepancy(user_repo, make_user, add_history):
    user = make_user(balance=40.005)
    add_history(user.id, (DEPOSIT, 40))
    assert reconcile_user_balance(user_repo, user.id).fixed is False


def test_reconcile_is_idempotent(user_repo, make_user, add_history):
    user = make_user(balance=3)
    add_history(user.id, (DEPOSIT, 12.5), (PURCHASE, -0.5))

    assert reconcile_user_balance(user_repo, user.id).fixed is True
    second = reconcile_user_balance(user_repo, user.id)
    assert second.fixed is False
    assert second.balance == pytest.approx(12)


def test_negative_history_is_clamped_to_zero(user_repo, make_user, add_history):
    user = make_user(balance=5)
    add_history(user.id, (DEPOSIT, 10), (PURCHASE, -30))

    result = reconcile_user_balance(user_repo, user.id)

    assert result.fixed is True
    assert result.new_balance == 0
    assert user_repo.get_by_id(user.id).balance == 0


def test_missing_user_is_an_error_result(user_repo):
    result = reconcile_user_balance(user_repo, "nope")
    assert result.to_dict() == {"error": "User profile not found"}


class FlakyRepo(SQLiteUserRepository):
    def __init__(self, conn, broken_user_id):
        super().__init__(conn)
        self.broken_user_id = broken_user_id

    def get_transaction_history(self, user_id):
        if user_id == self.broken_user_id:
            raise RuntimeError("backing store unavailable")
        return super().get_transaction_history(user_id)


def test_read_failure_is_returned_not_raised(conn, make_user):
    user = make_user(balance=1)
    repo = FlakyRepo(conn, user.id)
    assert reconcile_user_balance(repo, user.id).error == "backing store unavailable"


def test_batch_counts_and_continues_after_errors(conn, make_user, add_history):
    broken = make_user(balance=1, email="broken@example.com")
    drifted = make_user(balance=30, email="drifted@example.com")
    add_history(drifted.id, (DEPOSIT, 50), (PURCHASE, -20), (DEPOSIT, 10))
    correct = make_user(balance=10, email="ok@example.com")
    add_history(correct.id, (DEPOSIT, 10))
    repo = FlakyRepo(conn, broken.id)
    pauses = []

    report = reconcile_all_users(repo, delay_seconds=0.1, sleep=pauses.append)

    assert (report.total, report.fixed, report.correct, report.errors) == (3, 1, 1, 1)
    assert len(report.fixed_users) == 1
    fixed = report.fixed_users[0]
    assert (fixed.email, fixed.old_balance, fixed.new_balance) == ("drifted@example.com", 30, 40)
    assert pauses == [0.1, 0.1]


def test_batch_without_delay_never_sleeps(user_repo, make_user):
    make_user()
    make_user()
    pauses = []
    reconcile_all_users(user_repo, delay_seconds=0, sleep=pauses.append)
    assert pauses == []


def test_apply_transaction_moves_balance_and_logs(user_repo, make_user):
    user = make_user()
    apply_transaction(user_repo, user.id, DEPOSIT, 25, "Top-up")
    logged = apply_transaction(user_repo, user.id, PURCHASE, -10, "Number")

    assert logged.previous_balance == 25
    assert logged.new_balance == 15
    assert user_repo.get_by_id(user.id).balance == 15
    assert reconcile_user_balance(user_repo, user.id).fixed is False


def test_apply_transaction_rejects_overdraft(user_repo, make_user):
    user = make_user(balance=5)
    with pytest.raises(InsufficientFundsError):
        apply_transaction(user_repo, user.id, PURCHASE, -10, "Number")
    assert user_repo.get_transaction_history(user.id) == []


def test_malformed_debit_on_empty_wallet_lists_validation_errors(user_repo, make_user):
    user = make_user()
    with pytest.raises(TransactionValidationError) as exc:
        apply_transaction(user_repo, user.id, PURCHASE, -5, "")
    assert exc.value.errors == ["Invalid description"]
    assert user_repo.get_transaction_history(user.id) == []


def test_apply_transaction_rejects_wrong_sign(user_repo, make_user):
    user = make_user(balance=5)
    with pytest.raises(TransactionValidationError) as exc:
        apply_transaction(user_repo, user.id, PURCHASE, 3, "Number")
    assert "purchase amount should be negative" in exc.value.errors


def test_apply_transaction_unknown_user(user_repo):
    with pytest.raises(UserNotFoundError):
        apply_transaction(user_repo, "ghost", DEPOSIT, 1, "Top-up")


def test_health_report_flags_suspicious_transactions(user_repo, make_user, add_history):
    user = make_user(balance=150)
    add_history(user.id, (DEPOSIT, 20), (PURCHASE, 5))

    report = check_user_balance_health(user_repo, user.id)

    assert report.calculated_balance == pytest.approx(15)
    assert report.discrepancy == pytest.approx(135)
    assert report.severity == "HIGH"
    assert not report.is_healthy
    assert report.issues == ["Balance discrepancy: Profile shows $150.00, calculated $15.00"]
    assert [s["issue"] for s in report.suspicious_transactions] == ["purchase amount should be negative"]
    # nothing was written
    assert user_repo.get_by_id(user.id).balance == 150


def test_health_report_warns_on_negative_history(user_repo, make_user, add_history):
    user = make_user()
    add_history(user.id, (PURCHASE, -3))
    report = check_user_balance_health(user_repo, user.id)
    assert report.is_healthy
    assert report.warnings == ["Calculated balance is negative - possible transaction history issue"]


def test_audit_only_returns_flagged_users(user_repo, make_user, add_history):
    fine = make_user(balance=10)
    add_history(fine.id, (DEPOSIT, 10))
    bad = make_user(balance=2000)
    add_history(bad.id, (DEPOSIT, 10))

    flagged = audit_all_users(user_repo)

    assert [r.user_id for r in flagged] == [bad.id]
    assert flagged[0].severity == "CRITICAL"


@pytest.mark.parametrize("discrepancy,level", [
    (0.5, "LOW"), (10, "LOW"), (10.01, "MEDIUM"), (-150, "HIGH"), (1000.5, "CRITICAL"),
])
def test_severity_levels(discrepancy, level):
    assert classify_severity(discrepancy) == level
