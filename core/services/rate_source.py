from abc import ABC, abstractmethod
from typing import Optional


class RateSource(ABC):
    name: str = "rate-source"

    @abstractmethod
    def fetch_rate(self, base: str, quote: str) -> Optional[float]:
        """Returns a positive rate, or None when the source has no usable value"""
