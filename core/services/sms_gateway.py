from abc import ABC, abstractmethod
from typing import Optional


class SmsGateway(ABC):
    """Upstream SMS-activation service. Every call returns the raw plaintext response line."""

    @abstractmethod
    def get_status(self, activation_id: str) -> str: ...

    @abstractmethod
    def cancel(self, activation_id: str) -> str: ...

    @abstractmethod
    def set_ready(self, activation_id: str) -> str: ...

    @abstractmethod
    def buy_number(self, service: str, country: str, operator: Optional[str] = None) -> str: ...
