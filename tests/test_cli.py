import sqlite3

from core.entities.transaction import DEPOSIT, PURCHASE
from infrastructure.cli.fix_balances import main
from infrastructure.db.sqlite import SQLiteUserRepository, init_db


def seed(path):
    init_db(path)
    conn = sqlite3.connect(path)
    repo = SQLiteUserRepository(conn)
    drifted = repo.create_user("drifted@smsglobe.ng", "x")
    repo.log_transaction(drifted.id, DEPOSIT, 50, "Top-up", 0, 50)
    repo.log_transaction(drifted.id, PURCHASE, -20, "Number", 50, 30)
    repo.log_transaction(drifted.id, DEPOSIT, 10, "Top-up", 30, 40)
    repo.set_balance(drifted.id, 30)
    repo.create_user("fine@smsglobe.ng", "x")
    conn.close()
    return drifted.id


def stored_balance(path, user_id):
    conn = sqlite3.connect(path)
    try:
        return conn.execute("SELECT balance FROM users WHERE id = ?", (user_id,)).fetchone()[0]
    finally:
        conn.close()


def test_fix_balances(tmp_path, capsys):
    path = str(tmp_path / "cli.db")
    user_id = seed(path)

    assert main(["--db", path, "--delay", "0"]) == 0

    out = capsys.readouterr().out
    assert "Total users checked: 2" in out
    assert "Balances fixed: 1" in out
    assert "drifted@smsglobe.ng: $30.00 -> $40.00" in out
    assert stored_balance(path, user_id) == 40


def test_audit_writes_nothing(tmp_path, capsys):
    path = str(tmp_path / "cli.db")
    user_id = seed(path)

    assert main(["--db", path, "--audit"]) == 0

    out = capsys.readouterr().out
    assert "Users with issues: 0" in out
    assert stored_balance(path, user_id) == 30
