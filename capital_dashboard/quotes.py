"""Current prices for every supported investment type.

Crypto prices come from CoinGecko and foreign currencies from
AwesomeAPI, both quoted in BRL.  Precious metals and fixed income have
no free feed, so their prices are simulated from reference values.
Any failure falls back to a static default price so revaluation never
blocks.  Successful quotes are cached per type for a short window.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Tuple

import requests

from .config import HTTP_TIMEOUT, QUOTE_CACHE_SECONDS
from .investments import Quote

logger = logging.getLogger(__name__)

COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"
AWESOMEAPI_URL = "https://economia.awesomeapi.com.br/last/{currency}-BRL"

CRYPTO_IDS = {'bitcoin': 'bitcoin', 'ethereum': 'ethereum'}
CURRENCY_CODES = {'dolar': 'USD', 'euro': 'EUR'}
COMMODITY_BASE_PRICES = {'ouro': ('gold', 350.0), 'prata': ('silver', 4.5)}  # BRL per gram

# Yield of each fixed income product as a fraction of the CDI rate
FIXED_INCOME_YIELDS = {'tesouro_direto': 1.12, 'cdb': 1.08, 'lci_lca': 0.95}
CDI_RATE = 11.25

DEFAULT_PRICES: Dict[str, float] = {
    'bitcoin': 420000.0,
    'ethereum': 22000.0,
    'dolar': 5.20,
    'euro': 5.65,
    'ouro': 350.0,
    'prata': 4.5,
    'tesouro_direto': 1.0,
    'cdb': 1.0,
    'lci_lca': 1.0,
}


class QuoteError(Exception):
    """A quote source answered with something unusable."""


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


class QuoteService:
    """Fetches and briefly caches quotes keyed by investment type."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        cache_seconds: float = QUOTE_CACHE_SECONDS,
        timeout: float = HTTP_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the quote service.

        Args:
            session: HTTP session, a fresh ``requests.Session`` by default
            cache_seconds: How long a fetched quote is reused
            timeout: Per-request timeout in seconds
            clock: Monotonic clock used for cache expiry
            rng: Random source for simulated commodity prices
        """
        self.session = session or requests.Session()
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self.clock = clock
        self.rng = rng or random.Random()
        self._cache: Dict[str, Tuple[Quote, float]] = {}

    def get_quote(self, investment_type: str) -> Quote:
        """Return the current quote for ``investment_type``.

        Never raises: unsupported types and failed lookups yield the
        default price, which is not cached so the next call retries.
        """
        cached = self._cache.get(investment_type)
        if cached and self.clock() - cached[1] < self.cache_seconds:
            return cached[0]

        try:
            quote = self._fetch(investment_type)
        except (requests.RequestException, QuoteError, KeyError, TypeError, ValueError) as e:
            logger.warning("Quote lookup for %s failed, using default price: %s", investment_type, e)
            return self.default_quote(investment_type)

        self._cache[investment_type] = (quote, self.clock())
        return quote

    def get_multiple_quotes(self, investment_types: Iterable[str]) -> Dict[str, Quote]:
        return {kind: self.get_quote(kind) for kind in dict.fromkeys(investment_types)}

    def clear_cache(self) -> None:
        self._cache.clear()

    def default_quote(self, investment_type: str) -> Quote:
        return Quote(
            symbol=investment_type.upper(),
            price=DEFAULT_PRICES.get(investment_type, 1.0),
            change_24h=0.0,
            last_update=_now_iso(),
        )

    def _fetch(self, investment_type: str) -> Quote:
        if investment_type in CRYPTO_IDS:
            return self._fetch_crypto(CRYPTO_IDS[investment_type])
        if investment_type in CURRENCY_CODES:
            return self._fetch_currency(CURRENCY_CODES[investment_type])
        if investment_type in COMMODITY_BASE_PRICES:
            return self._simulate_commodity(*COMMODITY_BASE_PRICES[investment_type])
        if investment_type in FIXED_INCOME_YIELDS:
            return self._simulate_fixed_income(investment_type)
        raise QuoteError(f"Unsupported investment type '{investment_type}'")

    def _fetch_crypto(self, coin_id: str) -> Quote:
        response = self.session.get(
            COINGECKO_URL,
            params={'ids': coin_id, 'vs_currencies': 'brl', 'include_24hr_change': 'true'},
            timeout=self.timeout,
        )
        response.raise_for_status()
        coin = response.json().get(coin_id) or {}
        if not coin.get('brl'):
            raise QuoteError(f"Invalid quote payload for {coin_id}")
        return Quote(
            symbol=coin_id.upper(),
            price=float(coin['brl']),
            change_24h=float(coin.get('brl_24h_change') or 0.0),
            last_update=_now_iso(),
        )

    def _fetch_currency(self, currency: str) -> Quote:
        response = self.session.get(AWESOMEAPI_URL.format(currency=currency), timeout=self.timeout)
        response.raise_for_status()
        data = response.json()[f"{currency}BRL"]
        return Quote(
            symbol=currency,
            price=float(data['bid']),
            change_24h=float(data.get('pctChange') or 0.0),
            last_update=data.get('create_date') or _now_iso(),
        )

    def _simulate_commodity(self, commodity: str, base_price: float) -> Quote:
        variation = (self.rng.random() - 0.5) * 0.1  # ±5%
        return Quote(
            symbol=commodity.upper(),
            price=round(base_price * (1 + variation), 2),
            change_24h=variation * 100,
            last_update=_now_iso(),
        )

    def _simulate_fixed_income(self, investment_type: str) -> Quote:
        annual_yield = CDI_RATE * FIXED_INCOME_YIELDS[investment_type]
        daily_yield = annual_yield / 365
        return Quote(
            symbol=investment_type.upper(),
            price=1 + daily_yield / 100,
            change_24h=daily_yield,
            last_update=_now_iso(),
        )
