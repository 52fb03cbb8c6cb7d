from abc import ABC, abstractmethod
from typing import Optional, List
from core.entities.activation import Activation


class ActivationRepository(ABC):
    @abstractmethod
    def create_activation(self, activation: Activation) -> Activation:...

    @abstractmethod
    def get_activation(self, activation_id: str, user_id: str) -> Optional[Activation]:...

    @abstractmethod
    def list_activations(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Activation]:...

    @abstractmethod
    def update_status(self, activation_id: str, user_id: str, status: str,
                      sms_code: Optional[str] = None, sms_text: Optional[str] = None) -> Activation:...
