from dataclasses import dataclass
from typing import Optional

WAITING = "waiting"
COMPLETED = "completed"
CANCELLED = "cancelled"

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})


@dataclass
class Activation:
    activation_id: str
    user_id: str
    status: str
    phone_number: str
    service: str
    country: str
    price: float
    created_at: str
    expires_at: str
    operator: Optional[str] = None
    sms_code: Optional[str] = None
    sms_text: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
