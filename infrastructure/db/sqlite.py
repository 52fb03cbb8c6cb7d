import sqlite3
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from pathlib import Path
from uuid import uuid4
import json

from core.entities.activation import Activation
from core.entities.user import User
from core.entities.transaction import Transaction
from core.errors import ActivationNotFoundError, UserNotFoundError
from core.repositories.activation_repository import ActivationRepository
from core.repositories.user_repository import UserRepository


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def init_db(db_path: str) -> None:
    if db_path != ":memory:" and not db_path.startswith("file:"):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    try:
        create_schema(conn)
    finally:
        conn.close()

def create_schema(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        is_admin INTEGER NOT NULL DEFAULT 0,
        balance REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        balance_fixed_at TEXT
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS balance_transactions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        amount REAL NOT NULL,
        description TEXT NOT NULL,
        previous_balance REAL NOT NULL,
        new_balance REAL NOT NULL,
        metadata TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS activations (
        activation_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        status TEXT NOT NULL,
        phone_number TEXT NOT NULL,
        service TEXT NOT NULL,
        country TEXT NOT NULL,
        operator TEXT,
        price REAL NOT NULL,
        sms_code TEXT,
        sms_text TEXT,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        PRIMARY KEY (activation_id, user_id),
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
    );
    """)
    conn.commit()

class SQLiteUserRepository(UserRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            is_admin=bool(row["is_admin"]),
            balance=float(row["balance"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            balance_fixed_at=row["balance_fixed_at"],
        )

    def _row_to_tx(self, row: sqlite3.Row) -> Transaction:
        meta = None
        if row["metadata"]:
            try:
                meta = json.loads(row["metadata"])
            except ValueError:
                meta = {"raw": row["metadata"]}
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            amount=float(row["amount"]),
            description=row["description"],
            previous_balance=float(row["previous_balance"]),
            new_balance=float(row["new_balance"]),
            created_at=row["created_at"],
            metadata=meta,
        )

    def _require_user(self, user_id: str) -> User:
        user = self.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return user

    def create_user(self, email: str, password_hash: str, is_admin: bool = False) -> User:
        user_id = uuid4().hex
        created_at = _now()
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO users (id, email, password_hash, is_admin, balance, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, email, password_hash, 1 if is_admin else 0, 0.0, created_at),
        )
        self.conn.commit()
        return User(id=user_id, email=email, password_hash=password_hash,
                    is_admin=is_admin, balance=0.0, created_at=created_at)

    def get_by_email(self, email: str) -> Optional[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE email = ?", (email,))
        row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_by_id(self, user_id: str) -> Optional[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self) -> List[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users ORDER BY created_at ASC, rowid ASC")
        return [self._row_to_user(r) for r in cur.fetchall()]

    def set_balance(self, user_id: str, balance: float) -> User:
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE users SET balance = ?, updated_at = ? WHERE id = ?",
            (float(balance), _now(), user_id),
        )
        if cur.rowcount == 0:
            raise UserNotFoundError("User not found")
        self.conn.commit()
        return self._require_user(user_id)

    def fix_balance(self, user_id: str, balance: float, fixed_at: str) -> User:
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE users SET balance = ?, updated_at = ?, balance_fixed_at = ? WHERE id = ?",
            (float(balance), fixed_at, fixed_at, user_id),
        )
        if cur.rowcount == 0:
            raise UserNotFoundError("User not found")
        self.conn.commit()
        return self._require_user(user_id)

    def log_transaction(self, user_id: str, type: str, amount: float, description: str,
                        previous_balance: float, new_balance: float,
                        metadata: Optional[Dict[str, Any]] = None) -> Transaction:
        tx_id = uuid4().hex
        created_at = _now()
        meta_str = json.dumps(metadata, ensure_ascii=False) if metadata is not None else None
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO balance_transactions (id, user_id, type, amount, description, previous_balance, "
            "new_balance, metadata, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (tx_id, user_id, type, float(amount), description, float(previous_balance),
             float(new_balance), meta_str, created_at),
        )
        self.conn.commit()
        return Transaction(id=tx_id, user_id=user_id, type=type, amount=float(amount),
                           description=description, previous_balance=float(previous_balance),
                           new_balance=float(new_balance), created_at=created_at, metadata=metadata)

    def list_transactions(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Transaction]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM balance_transactions WHERE user_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (user_id, int(limit), int(offset)),
        )
        rows = cur.fetchall()
        return [self._row_to_tx(r) for r in rows]

    def get_transaction_history(self, user_id: str) -> List[Transaction]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM balance_transactions WHERE user_id = ? ORDER BY created_at ASC, rowid ASC",
            (user_id,),
        )
        return [self._row_to_tx(r) for r in cur.fetchall()]

class SQLiteActivationRepository(ActivationRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_activation(self, row: sqlite3.Row) -> Activation:
        return Activation(
            activation_id=row["activation_id"],
            user_id=row["user_id"],
            status=row["status"],
            phone_number=row["phone_number"],
            service=row["service"],
            country=row["country"],
            operator=row["operator"],
            price=float(row["price"]),
            sms_code=row["sms_code"],
            sms_text=row["sms_text"],
            created_at=row["created_at"],
            expires_at=row["expires_at"],
        )

    def create_activation(self, activation: Activation) -> Activation:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO activations (activation_id, user_id, status, phone_number, service, country, "
            "operator, price, sms_code, sms_text, created_at, expires_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (activation.activation_id, activation.user_id, activation.status, activation.phone_number,
             activation.service, activation.country, activation.operator, float(activation.price),
             activation.sms_code, activation.sms_text, activation.created_at, activation.expires_at),
        )
        self.conn.commit()
        return activation

    def get_activation(self, activation_id: str, user_id: str) -> Optional[Activation]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM activations WHERE activation_id = ? AND user_id = ?",
            (activation_id, user_id),
        )
        row = cur.fetchone()
        return self._row_to_activation(row) if row else None

    def list_activations(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Activation]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT * FROM activations WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (user_id, int(limit), int(offset)),
        )
        return [self._row_to_activation(r) for r in cur.fetchall()]

    def update_status(self, activation_id: str, user_id: str, status: str,
                      sms_code: Optional[str] = None, sms_text: Optional[str] = None) -> Activation:
        # запись обновляется только в рамках владельца
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE activations SET status = ?, sms_code = ?, sms_text = ? WHERE activation_id = ? AND user_id = ?",
            (status, sms_code, sms_text, activation_id, user_id),
        )
        if cur.rowcount == 0:
            raise ActivationNotFoundError(f"Activation {activation_id} not found")
        self.conn.commit()
        activation = self.get_activation(activation_id, user_id)
        assert activation is not None
        return activation
