import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Optional, Sequence, Tuple

from core.errors import ExchangeRateUnavailableError
from core.services.rate_source import RateSource

logger = logging.getLogger(__name__)

SOURCE_API = "api"
SOURCE_CACHE = "cache"
SOURCE_FALLBACK = "fallback"

CURRENCY_SYMBOLS = {"USD": "$", "NGN": "₦"}


@dataclass(frozen=True)
class CachedRate:
    rate: float
    fetched_at: float


@dataclass(frozen=True)
class ExchangeRateResult:
    rate: float
    source: str  # api | cache | fallback


class ExchangeRateCache:
    """Rates per currency pair, refreshed from the first source that answers.

    One instance is created by the application and passed to whoever needs it.
    """
    def __init__(
        self,
        sources: Sequence[RateSource],
        ttl_seconds: float = 600,
        fallback_rates: Optional[Dict[Tuple[str, str], float]] = None,
    ):
        self.sources = list(sources)
        self.ttl_seconds = ttl_seconds
        self.fallback_rates = {
            (base.upper(), quote.upper()): rate for (base, quote), rate in (fallback_rates or {}).items()
        }
        self._rates: Dict[Tuple[str, str], CachedRate] = {}
        self._lock = Lock()

    def _fresh(self, key: Tuple[str, str], now: float) -> Optional[CachedRate]:
        cached = self._rates.get(key)
        if cached is not None and now - cached.fetched_at < self.ttl_seconds:
            return cached
        return None

    def _fetch(self, base: str, quote: str) -> Optional[float]:
        for source in self.sources:
            try:
                rate = source.fetch_rate(base, quote)
            except Exception as e:
                logger.warning("Failed to fetch %s/%s from %s: %s", base, quote, source.name, e)
                continue
            if rate and rate > 0:
                logger.info("Exchange rate updated: 1 %s = %.2f %s (%s)", base, rate, quote, source.name)
                return rate
        return None

    def get_or_refresh(self, base: str, quote: str, now: Optional[float] = None) -> ExchangeRateResult:
        key = (base.upper(), quote.upper())
        if now is None:
            now = time.time()

        cached = self._fresh(key, now)
        if cached is not None:
            return ExchangeRateResult(cached.rate, SOURCE_CACHE)

        with self._lock:
            cached = self._fresh(key, now)
            if cached is not None:
                return ExchangeRateResult(cached.rate, SOURCE_CACHE)

            rate = self._fetch(*key)
            if rate is not None:
                self._rates[key] = CachedRate(rate, now)
                return ExchangeRateResult(rate, SOURCE_API)

            stale = self._rates.get(key)
            if stale is not None:
                logger.warning("Using stale cached rate for %s/%s: %.2f", key[0], key[1], stale.rate)
                return ExchangeRateResult(stale.rate, SOURCE_CACHE)

        fallback = self.fallback_rates.get(key)
        if fallback is None:
            raise ExchangeRateUnavailableError(f"No exchange rate available for {key[0]}/{key[1]}")
        logger.warning("Using fallback exchange rate for %s/%s: %.2f", key[0], key[1], fallback)
        return ExchangeRateResult(fallback, SOURCE_FALLBACK)

    def clear(self) -> None:
        with self._lock:
            self._rates.clear()


def usd_to_ngn(usd_amount: float, rate: float) -> float:
    return round(usd_amount * rate, 2)


def ngn_to_usd(ngn_amount: float, rate: float) -> float:
    return round(ngn_amount / rate, 2)


def format_currency(amount: float, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol is None:
        raise ValueError(f"Unsupported currency: {currency}")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
