import random
from unittest.mock import MagicMock

import pytest
import requests

from capital_dashboard.quotes import COINGECKO_URL, DEFAULT_PRICES, QuoteService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _service(session, clock=None, **kwargs):
    return QuoteService(session=session, cache_seconds=300, timeout=5, clock=clock or FakeClock(), **kwargs)


def test_crypto_quote_from_coingecko():
    session = MagicMock()
    session.get.return_value = _response({'bitcoin': {'brl': 350000.0, 'brl_24h_change': -1.25}})

    quote = _service(session).get_quote('bitcoin')

    assert quote.price == 350000.0
    assert quote.change_24h == -1.25
    assert quote.symbol == 'BITCOIN'
    args, kwargs = session.get.call_args
    assert args[0] == COINGECKO_URL
    assert kwargs['params']['ids'] == 'bitcoin'
    assert kwargs['timeout'] == 5


def test_currency_quote_from_awesomeapi():
    session = MagicMock()
    session.get.return_value = _response({
        'USDBRL': {'bid': '5.4321', 'pctChange': '0.35', 'create_date': '2024-03-01 10:00:00'},
    })

    quote = _service(session).get_quote('dolar')

    assert quote.price == pytest.approx(5.4321)
    assert quote.change_24h == pytest.approx(0.35)
    assert quote.last_update == '2024-03-01 10:00:00'
    assert 'USD-BRL' in session.get.call_args[0][0]


def test_quotes_are_cached_until_expiry():
    clock = FakeClock()
    session = MagicMock()
    session.get.return_value = _response({'ethereum': {'brl': 20000.0}})
    service = _service(session, clock)

    service.get_quote('ethereum')
    clock.now += 299
    service.get_quote('ethereum')
    assert session.get.call_count == 1

    clock.now += 2
    service.get_quote('ethereum')
    assert session.get.call_count == 2


def test_clear_cache_forces_refetch():
    session = MagicMock()
    session.get.return_value = _response({'ethereum': {'brl': 20000.0}})
    service = _service(session)

    service.get_quote('ethereum')
    service.clear_cache()
    service.get_quote('ethereum')
    assert session.get.call_count == 2


def test_network_failure_falls_back_to_default_and_is_not_cached():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError('offline')
    service = _service(session)

    quote = service.get_quote('bitcoin')
    assert quote.price == DEFAULT_PRICES['bitcoin']
    assert quote.change_24h == 0.0

    service.get_quote('bitcoin')
    assert session.get.call_count == 2


def test_bad_payload_falls_back_to_default():
    session = MagicMock()
    session.get.return_value = _response({'bitcoin': {}})
    assert _service(session).get_quote('bitcoin').price == DEFAULT_PRICES['bitcoin']

    session.get.return_value = _response({'unexpected': True})
    assert _service(session).get_quote('euro').price == DEFAULT_PRICES['euro']


def test_unsupported_type_gets_unit_price():
    session = MagicMock()
    quote = _service(session).get_quote('tulips')
    assert quote.price == 1.0
    session.get.assert_not_called()


def test_commodity_price_stays_within_five_percent():
    service = _service(MagicMock(), rng=random.Random(42))
    for _ in range(20):
        service.clear_cache()
        quote = service.get_quote('ouro')
        assert 350.0 * 0.95 <= quote.price <= 350.0 * 1.05


def test_fixed_income_daily_yield():
    quote = _service(MagicMock()).get_quote('cdb')
    daily = 11.25 * 1.08 / 365
    assert quote.price == pytest.approx(1 + daily / 100)
    assert quote.change_24h == pytest.approx(daily)


def test_multiple_quotes_deduplicates_types():
    session = MagicMock()
    session.get.return_value = _response({'bitcoin': {'brl': 1.0}})
    quotes = _service(session).get_multiple_quotes(['bitcoin', 'cdb', 'bitcoin'])

    assert list(quotes) == ['bitcoin', 'cdb']
    assert session.get.call_count == 1
