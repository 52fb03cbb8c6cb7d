from dataclasses import dataclass
from typing import Optional, Dict, Any

DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"
PURCHASE = "purchase"
REFUND = "refund"
REFERRAL_BONUS = "referral_bonus"

# пополнения: amount > 0, списания: amount < 0
CREDIT_TYPES = frozenset({DEPOSIT, REFUND, REFERRAL_BONUS})
DEBIT_TYPES = frozenset({PURCHASE, WITHDRAWAL})
TRANSACTION_TYPES = CREDIT_TYPES | DEBIT_TYPES


@dataclass
class Transaction:
    id: str
    user_id: str
    type: str
    amount: float            # со знаком
    description: str
    previous_balance: float
    new_balance: float
    created_at: str
    metadata: Optional[Dict[str, Any]] = None
