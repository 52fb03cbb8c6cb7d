from dataclasses import dataclass
from typing import Optional


@dataclass
class User:
    id: str
    email: str
    password_hash: str
    is_admin: bool
    balance: float          # USD
    created_at: str
    updated_at: Optional[str] = None
    balance_fixed_at: Optional[str] = None  # когда баланс последний раз исправляла сверка
