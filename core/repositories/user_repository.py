from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from core.entities.user import User
from core.entities.transaction import Transaction


class UserRepository(ABC):
    @abstractmethod
    def create_user(self, email: str, password_hash: str, is_admin: bool = False) -> User:...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:...

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:...

    @abstractmethod
    def list_users(self) -> List[User]:...

    @abstractmethod
    def set_balance(self, user_id: str, balance: float) -> User:...

    @abstractmethod
    def fix_balance(self, user_id: str, balance: float, fixed_at: str) -> User:
        """Перезаписывает баланс и проставляет updated_at и balance_fixed_at"""

    @abstractmethod
    def log_transaction(self, user_id: str, type: str, amount: float, description: str,
                        previous_balance: float, new_balance: float,
                        metadata: Optional[Dict[str, Any]] = None) -> Transaction:...

    @abstractmethod
    def list_transactions(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Transaction]:...

    @abstractmethod
    def get_transaction_history(self, user_id: str) -> List[Transaction]:
        """Вся история пользователя по возрастанию created_at"""
