import sqlite3
from typing import Optional

import pytest

from fakes import FakeGateway
from infrastructure.db.sqlite import SQLiteActivationRepository, SQLiteUserRepository, create_schema


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def user_repo(conn):
    return SQLiteUserRepository(conn)


@pytest.fixture
def activation_repo(conn):
    return SQLiteActivationRepository(conn)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_user(user_repo):
    counter = {"n": 0}

    def _make(balance: float = 0.0, email: Optional[str] = None):
        counter["n"] += 1
        user = user_repo.create_user(email or f"user{counter['n']}@example.com", "not-a-real-hash")
        if balance:
            user = user_repo.set_balance(user.id, balance)
        return user

    return _make


@pytest.fixture
def add_history(user_repo):
    """Writes raw transaction rows without touching the stored balance."""
    def _add(user_id: str, *entries):
        for type_, amount in entries:
            user_repo.log_transaction(user_id, type_, amount, f"{type_} {amount}", 0.0, 0.0)

    return _add
