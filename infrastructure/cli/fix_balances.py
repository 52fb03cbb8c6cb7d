"""Recalculate every user's balance from transaction history and fix discrepancies.

Run with:
    python -m infrastructure.cli.fix_balances
    python -m infrastructure.cli.fix_balances --audit   # report only, nothing is written
"""
import argparse
import sqlite3
import sys
from typing import List, Optional

from config.logging_config import configure_logging
from config.settings import settings
from core.use_cases.ledger_use_cases import (
    BalanceHealthReport,
    BatchReconciliationReport,
    audit_all_users,
    reconcile_all_users,
)
from core.use_cases.validation import format_amount
from infrastructure.db.sqlite import SQLiteUserRepository, init_db


def print_summary(report: BatchReconciliationReport) -> None:
    print("=" * 50)
    print("BALANCE FIX SUMMARY")
    print("=" * 50)
    print(f"Total users checked: {report.total}")
    print(f"Balances already correct: {report.correct}")
    print(f"Balances fixed: {report.fixed}")
    print(f"Errors encountered: {report.errors}")

    if report.fixed_users:
        print("\nUSERS WITH FIXED BALANCES:")
        for user in report.fixed_users:
            print(f"   {user.email}: {format_amount(user.old_balance)} -> {format_amount(user.new_balance)}")


def print_audit(reports: List[BalanceHealthReport]) -> None:
    print("=" * 50)
    print("BALANCE AUDIT REPORT")
    print("=" * 50)
    print(f"Users with issues: {len(reports)}")
    for level in ("CRITICAL", "HIGH", "MEDIUM", "LOW"):
        print(f"{level.title()} issues: {sum(1 for r in reports if r.severity == level)}")

    for r in reports:
        print(f"\n{r.severity} {r.email} ({r.user_id})")
        print(f"  Current balance: {format_amount(r.current_balance)}")
        print(f"  Should be: {format_amount(r.calculated_balance)}")
        print(f"  Discrepancy: {format_amount(r.discrepancy)}")
        for tx in r.suspicious_transactions[-5:]:
            print(f"  - {tx['id']}: {tx['issue']} ({tx['amount']})")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fix user balance inconsistencies")
    parser.add_argument("--db", default=settings.DB_PATH, help="Path to the SQLite database")
    parser.add_argument("--delay", type=float, default=settings.RECONCILE_DELAY_SECONDS,
                        help="Pause between users, seconds")
    parser.add_argument("--tolerance", type=float, default=settings.BALANCE_TOLERANCE,
                        help="Smallest difference treated as a discrepancy")
    parser.add_argument("--audit", action="store_true", help="Only report, do not write balances")
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)
    init_db(args.db)
    conn = sqlite3.connect(args.db)
    try:
        repo = SQLiteUserRepository(conn)
        if args.audit:
            print_audit(audit_all_users(repo, tolerance=args.tolerance))
        else:
            print_summary(reconcile_all_users(repo, delay_seconds=args.delay, tolerance=args.tolerance))
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
