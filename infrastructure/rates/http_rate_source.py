from typing import Any, Callable, List, Optional

import httpx

from config.settings import settings
from core.services.rate_source import RateSource
from core.use_cases.currency_use_cases import ExchangeRateCache


def rates_table_parser(data: Any, quote: str) -> Optional[float]:
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        return None
    value = rates.get(quote)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return None


class HttpRateSource(RateSource):
    """JSON rate endpoint; ``url`` may contain ``{base}`` and ``{quote}`` placeholders."""
    def __init__(self, name: str, url: str,
                 parser: Callable[[Any, str], Optional[float]] = rates_table_parser,
                 timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.name = name
        self.url = url
        self.parser = parser
        self.client = client or httpx.Client(timeout=timeout)

    def fetch_rate(self, base: str, quote: str) -> Optional[float]:
        response = self.client.get(self.url.format(base=base, quote=quote))
        response.raise_for_status()
        return self.parser(response.json(), quote)


def default_rate_sources(timeout: float = 10.0) -> List[RateSource]:
    client = httpx.Client(timeout=timeout)
    return [
        HttpRateSource("exchangerate-api", "https://api.exchangerate-api.com/v4/latest/{base}", client=client),
        HttpRateSource("fxratesapi", "https://api.fxratesapi.com/latest?base={base}&symbols={quote}", client=client),
        HttpRateSource("open-er-api", "https://open.er-api.com/v6/latest/{base}", client=client),
    ]


def build_exchange_rate_cache() -> ExchangeRateCache:
    return ExchangeRateCache(
        sources=default_rate_sources(),
        ttl_seconds=settings.EXCHANGE_RATE_TTL_SECONDS,
        fallback_rates={("USD", "NGN"): settings.DEFAULT_USD_TO_NGN_RATE},
    )
