"""Investment lots, quote-based revaluation and portfolio summary.

An investment lot is a single purchase of an asset type.  Lots are
revalued from a ``{type: Quote}`` mapping supplied by the quote service;
a missing quote never blocks revaluation, the lot keeps its cached value
or falls back to what was paid for it.

Lots may also carry goal allocations: amounts earmarked for a savings
goal.  The value still free for new allocations is the lot's current
value minus what is already allocated from it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

INVESTMENT_OPTIONS: Dict[str, Dict[str, Optional[str]]] = {
    'bitcoin': {'name': 'Bitcoin', 'symbol': 'BTC', 'unit': 'BTC', 'icon': '₿',
                'description': 'Criptomoeda líder mundial', 'quote_key': 'bitcoin'},
    'ethereum': {'name': 'Ethereum', 'symbol': 'ETH', 'unit': 'ETH', 'icon': 'Ξ',
                 'description': 'Segunda maior criptomoeda', 'quote_key': 'ethereum'},
    'dolar': {'name': 'Dólar Americano', 'symbol': 'USD', 'unit': 'USD', 'icon': '$',
              'description': 'Moeda americana', 'quote_key': 'USD'},
    'euro': {'name': 'Euro', 'symbol': 'EUR', 'unit': 'EUR', 'icon': '€',
             'description': 'Moeda europeia', 'quote_key': 'EUR'},
    'ouro': {'name': 'Ouro', 'symbol': 'XAU', 'unit': 'g', 'icon': '🥇',
             'description': 'Metal precioso', 'quote_key': 'gold'},
    'prata': {'name': 'Prata', 'symbol': 'XAG', 'unit': 'g', 'icon': '🥈',
              'description': 'Metal precioso', 'quote_key': 'silver'},
    'tesouro_direto': {'name': 'Tesouro Direto', 'symbol': 'TD', 'unit': 'unidade', 'icon': '🏛️',
                       'description': 'Títulos do governo brasileiro', 'quote_key': None},
    'cdb': {'name': 'CDB', 'symbol': 'CDB', 'unit': 'unidade', 'icon': '🏦',
            'description': 'Certificado de Depósito Bancário', 'quote_key': None},
    'lci_lca': {'name': 'LCI/LCA', 'symbol': 'LCI', 'unit': 'unidade', 'icon': '📋',
                'description': 'Letras de Crédito', 'quote_key': None},
}


def investment_option(investment_type: str) -> Optional[Dict[str, Optional[str]]]:
    return INVESTMENT_OPTIONS.get(investment_type)


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def _to_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN from a pandas frame means "not set"
    return None if number != number else number


@dataclass(frozen=True)
class Quote:
    """Current price of an asset type, as reported by the quote service."""
    symbol: str
    price: float
    last_update: str
    change_24h: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Quote':
        return cls(
            symbol=data['symbol'],
            price=float(data['price']),
            last_update=data.get('last_update') or '',
            change_24h=_optional_float(data.get('change_24h')),
        )


@dataclass(frozen=True)
class GoalAllocation:
    """Funds of one lot earmarked for a goal (not physically moved)."""
    goal_id: str
    goal_name: str
    allocated_amount: float
    allocated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GoalAllocation':
        return cls(
            goal_id=str(data['goal_id']),
            goal_name=data.get('goal_name') or '',
            allocated_amount=float(data['allocated_amount']),
            allocated_at=data.get('allocated_at') or '',
        )


@dataclass(frozen=True)
class Investment:
    id: str
    type: str
    name: str
    quantity: float
    purchase_price: float
    purchase_date: date
    created_at: str
    updated_at: str
    current_price: Optional[float] = None
    current_value: Optional[float] = None
    profit_loss: Optional[float] = None
    profit_loss_percent: Optional[float] = None
    goal_allocations: Tuple[GoalAllocation, ...] = field(default_factory=tuple)

    @property
    def total_invested(self) -> float:
        return self.quantity * self.purchase_price

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['purchase_date'] = self.purchase_date.isoformat()
        data['goal_allocations'] = [allocation.to_dict() for allocation in self.goal_allocations]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Investment':
        allocations = data.get('goal_allocations') or []
        return cls(
            id=str(data['id']),
            type=data['type'],
            name=data.get('name') or '',
            quantity=float(data.get('quantity') or 0.0),
            purchase_price=float(data.get('purchase_price') or 0.0),
            purchase_date=_to_date(data['purchase_date']),
            created_at=data.get('created_at') or '',
            updated_at=data.get('updated_at') or '',
            current_price=_optional_float(data.get('current_price')),
            current_value=_optional_float(data.get('current_value')),
            profit_loss=_optional_float(data.get('profit_loss')),
            profit_loss_percent=_optional_float(data.get('profit_loss_percent')),
            goal_allocations=tuple(
                item if isinstance(item, GoalAllocation) else GoalAllocation.from_dict(item)
                for item in allocations
            ),
        )


@dataclass(frozen=True)
class InvestmentSummary:
    total_invested: float = 0.0
    current_value: float = 0.0
    total_profit_loss: float = 0.0
    total_profit_loss_percent: float = 0.0
    best_performer: Optional[Investment] = None
    worst_performer: Optional[Investment] = None


def investment_value(investment: Investment) -> float:
    """Current value of a lot, or what was paid for it when never quoted."""
    if investment.current_value is not None:
        return investment.current_value
    return investment.total_invested


def total_allocated(investment: Investment) -> float:
    return float(sum(allocation.allocated_amount for allocation in investment.goal_allocations))


def available_value(investment: Investment) -> float:
    """Value of a lot not yet earmarked for any goal, never negative."""
    return max(0.0, investment_value(investment) - total_allocated(investment))


def total_available(investments: Iterable[Investment]) -> float:
    return float(sum(available_value(investment) for investment in investments))


def total_allocated_to_goals(investments: Iterable[Investment]) -> float:
    return float(sum(total_allocated(investment) for investment in investments))


def allocations_for_goal(
    investments: Iterable[Investment],
    goal_id: str,
) -> List[Tuple[Investment, GoalAllocation]]:
    """List every ``(lot, allocation)`` pair earmarked for ``goal_id``."""
    return [
        (investment, allocation)
        for investment in investments
        for allocation in investment.goal_allocations
        if allocation.goal_id == goal_id
    ]


def revalue(
    investments: Sequence[Investment],
    quotes: Mapping[str, Quote],
    now: Optional[str] = None,
) -> List[Investment]:
    """Apply the latest quotes to each lot.

    Args:
        investments: Lots to revalue
        quotes: Mapping of investment type to its current quote
        now: Timestamp recorded as ``updated_at`` on quoted lots

    Returns:
        New list of lots. A quoted lot gets fresh price, value and
        profit/loss figures. A lot without a quote keeps its cached
        value and price; if it was never quoted, its value is what was
        paid and its price the purchase price.
    """
    stamp = now or _now_iso()
    revalued: List[Investment] = []
    for investment in investments:
        quote = quotes.get(investment.type)
        if quote is None:
            revalued.append(replace(
                investment,
                current_value=investment_value(investment),
                current_price=(
                    investment.current_price
                    if investment.current_price is not None
                    else investment.purchase_price
                ),
            ))
            continue

        current_value = investment.quantity * quote.price
        invested = investment.total_invested
        profit_loss = current_value - invested
        revalued.append(replace(
            investment,
            current_price=quote.price,
            current_value=current_value,
            profit_loss=profit_loss,
            profit_loss_percent=(profit_loss / invested * 100.0) if invested > 0 else 0.0,
            updated_at=stamp,
        ))
    return revalued


def summarize(investments: Sequence[Investment]) -> InvestmentSummary:
    """Aggregate totals and pick the best and worst performing lots.

    Performers are chosen among lots with a known profit/loss percent.
    On a tie the lot appearing first in ``investments`` wins.
    """
    invested = float(sum(investment.total_invested for investment in investments))
    current = float(sum(investment_value(investment) for investment in investments))
    profit_loss = current - invested

    rated = [investment for investment in investments if investment.profit_loss_percent is not None]
    # max()/min() return the first of equal keys, which gives the list-order tie-break
    best = max(rated, key=lambda inv: inv.profit_loss_percent) if rated else None
    worst = min(rated, key=lambda inv: inv.profit_loss_percent) if rated else None

    return InvestmentSummary(
        total_invested=invested,
        current_value=current,
        total_profit_loss=profit_loss,
        total_profit_loss_percent=(profit_loss / invested * 100.0) if invested > 0 else 0.0,
        best_performer=best,
        worst_performer=worst,
    )
