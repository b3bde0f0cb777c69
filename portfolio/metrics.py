"""Derived portfolio metrics.

Every function here is pure: it takes parts of a ``PortfolioState`` snapshot
and returns new values. Nothing is cached; the app recomputes the whole
bundle with ``compute_metrics`` after each change.
"""
import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from portfolio.domain import (
    ASSET_TYPES,
    CURRENCIES,
    DEFAULT_USD_KRW,
    INFLOW_TYPES,
    OUTFLOW_TYPES,
    Account,
    Goal,
    PortfolioState,
    Position,
    Settings,
    Transaction,
)

_logger = logging.getLogger(__name__)


class UnsupportedCurrencyError(ValueError):
    pass


@dataclass(frozen=True)
class AccountBalance:
    account: Account
    balance: float          # account currency
    balance_base: float


@dataclass(frozen=True)
class PositionValuation:
    position: Position
    market_value: float
    market_value_base: float
    pnl: float
    pnl_pct: float


@dataclass(frozen=True)
class DriftEntry:
    type: str
    target: float
    actual: float
    diff: float             # actual - target, in percentage points

    def is_alerting(self, threshold: float) -> bool:
        return abs(self.diff) >= threshold


@dataclass(frozen=True)
class RebalanceSuggestion:
    from_type: str
    to_type: str
    move_pct: float
    move_amount: float
    base_currency: str

    @property
    def message(self) -> str:
        return (
            f"Consider moving about {self.move_pct:.1f}% "
            f"({self.base_currency} {round(self.move_amount):,}) "
            f"from {self.from_type} to {self.to_type}."
        )


@dataclass(frozen=True)
class NetWorthPoint:
    month: str              # "YYYY-MM"
    value: float


@dataclass(frozen=True)
class MonthlyFlow:
    month: str
    income: float
    expense: float


@dataclass(frozen=True)
class GoalProgress:
    goal: Goal
    value: float
    pct: float
    remaining: float
    days_left: int
    daily_saving: float


@dataclass(frozen=True)
class PortfolioMetrics:
    balances: Dict[str, AccountBalance]
    valuations: Tuple[PositionValuation, ...]
    totals_by_type: Dict[str, float]
    total_assets: float
    allocation: Dict[str, float]
    drift: Tuple[DriftEntry, ...]
    rebalance_alerts: Tuple[DriftEntry, ...]
    net_worth: Tuple[NetWorthPoint, ...]
    monthly_flows: Tuple[MonthlyFlow, ...]
    goals: Tuple[GoalProgress, ...]


def ensure_number(value, fallback: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, returning ``fallback`` otherwise."""
    if isinstance(value, bool):
        return float(value)
    try:
        x = float(value)
    except (TypeError, ValueError, OverflowError):
        return fallback
    return x if math.isfinite(x) else fallback


def usd_krw_rate(settings: Settings) -> float:
    rate = ensure_number(settings.usd_krw, DEFAULT_USD_KRW)
    if rate <= 0:
        _logger.warning("Invalid USD/KRW rate %r, using %s", settings.usd_krw, DEFAULT_USD_KRW)
        return DEFAULT_USD_KRW
    return rate


def to_base(amount, currency: str, settings: Settings) -> float:
    amount = ensure_number(amount)
    for code in (currency, settings.base_currency):
        if code not in CURRENCIES:
            raise UnsupportedCurrencyError(f"Unsupported currency: {code!r}")
    if currency == settings.base_currency:
        return amount
    rate = usd_krw_rate(settings)
    if currency == "USD":
        return amount * rate
    return amount / rate


def net_amount(t: Transaction) -> float:
    return ensure_number(t.amount) - ensure_number(t.fee) - ensure_number(t.tax)


def signed_amount(t: Transaction) -> float:
    """Net effect of ``t`` on its account, in the account currency."""
    if t.type in INFLOW_TYPES:
        return net_amount(t)
    if t.type in OUTFLOW_TYPES:
        return -net_amount(t)
    return 0.0


def _currency_for(account_id: str, accounts_by_id: Mapping[str, Account], settings: Settings) -> str:
    acc = accounts_by_id.get(account_id)
    return acc.currency if acc is not None else settings.base_currency


def account_balances(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    settings: Settings,
) -> Dict[str, AccountBalance]:
    flows: Dict[str, float] = defaultdict(float)
    accounts = tuple(accounts)
    for a in accounts:
        flows[a.id] = ensure_number(a.opening_balance)
    for t in transactions:
        flows[t.account_id] += signed_amount(t)

    return {
        a.id: AccountBalance(
            account=a,
            balance=flows[a.id],
            balance_base=to_base(flows[a.id], a.currency, settings),
        )
        for a in accounts
    }


def _pnl_pct(last: float, avg: float) -> float:
    if avg == 0:
        if last == 0:
            return 0.0
        return math.copysign(math.inf, last)
    return (last / avg - 1) * 100


def position_valuations(positions: Iterable[Position], settings: Settings) -> Tuple[PositionValuation, ...]:
    out = []
    for p in positions:
        qty = ensure_number(p.qty)
        last = ensure_number(p.last_price)
        avg = ensure_number(p.avg_price)
        mv = qty * last
        out.append(
            PositionValuation(
                position=p,
                market_value=mv,
                market_value_base=to_base(mv, p.currency, settings),
                pnl=(last - avg) * qty,
                pnl_pct=_pnl_pct(last, avg),
            )
        )
    return tuple(out)


def totals_by_type(
    balances: Iterable[AccountBalance],
    valuations: Iterable[PositionValuation],
) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for b in balances:
        totals[b.account.type] = totals.get(b.account.type, 0.0) + b.balance_base
    for v in valuations:
        t = v.position.asset_type
        totals[t] = totals.get(t, 0.0) + v.market_value_base
    return totals


def total_assets(totals: Mapping[str, float]) -> float:
    return sum(ensure_number(v) for v in totals.values())


def allocation_actual(totals: Mapping[str, float], total: float) -> Dict[str, float]:
    return {
        t: (totals.get(t, 0.0) / total) * 100 if total > 0 else 0.0
        for t in ASSET_TYPES
    }


def drift(target: Mapping[str, float], actual: Mapping[str, float]) -> Tuple[DriftEntry, ...]:
    """Drift per asset type, largest absolute deviation first.

    ``sorted`` is stable, so equal deviations keep the ASSET_TYPES order.
    """
    entries = []
    for t in ASSET_TYPES:
        tgt = ensure_number(target.get(t, 0))
        act = ensure_number(actual.get(t, 0))
        entries.append(DriftEntry(type=t, target=tgt, actual=act, diff=act - tgt))
    return tuple(sorted(entries, key=lambda d: abs(d.diff), reverse=True))


def rebalance_alerts(entries: Iterable[DriftEntry], threshold: float) -> Tuple[DriftEntry, ...]:
    return tuple(d for d in entries if d.is_alerting(threshold))


def suggest_rebalance(
    entries: Iterable[DriftEntry],
    total: float = 0.0,
    base_currency: str = "KRW",
) -> Optional[RebalanceSuggestion]:
    entries = tuple(entries)
    over = sorted((d for d in entries if d.diff > 0), key=lambda d: d.diff, reverse=True)
    under = sorted((d for d in entries if d.diff < 0), key=lambda d: d.diff)
    if not over or not under:
        return None

    move_pct = min(over[0].diff, -under[0].diff)
    return RebalanceSuggestion(
        from_type=over[0].type,
        to_type=under[0].type,
        move_pct=move_pct,
        move_amount=total * (move_pct / 100),
        base_currency=base_currency,
    )


def parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def month_range(start: date, end: date) -> List[str]:
    months = []
    y, m = start.year, start.month
    while (y, m) <= (end.year, end.month):
        months.append(f"{y:04d}-{m:02d}")
        y, m = (y + 1, 1) if m == 12 else (y, m + 1)
    return months


def net_worth_series(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    valuations: Iterable[PositionValuation],
    settings: Settings,
    today: Optional[date] = None,
) -> Tuple[NetWorthPoint, ...]:
    """Monthly net worth from the first transaction's month to ``today``.

    Positions are not tracked historically: their current base value is
    added to the last month only.
    """
    txs = sorted(transactions, key=lambda t: str(t.date))
    if not txs:
        return ()
    start = next((d for d in (parse_date(t.date) for t in txs) if d is not None), None)
    if start is None:
        _logger.debug("No parseable transaction dates, net worth series is empty")
        return ()

    accounts = tuple(accounts)
    accounts_by_id = {a.id: a for a in accounts}
    months = month_range(start, today or date.today())

    monthly: Dict[str, float] = defaultdict(float)
    for t in txs:
        currency = _currency_for(t.account_id, accounts_by_id, settings)
        monthly[str(t.date)[:7]] += to_base(signed_amount(t), currency, settings)

    running = sum(to_base(a.opening_balance, a.currency, settings) for a in accounts)
    values = []
    for m in months:
        running += monthly.get(m, 0.0)
        values.append(running)
    if values:
        values[-1] += sum(v.market_value_base for v in valuations)

    return tuple(NetWorthPoint(month=m, value=v) for m, v in zip(months, values))


def monthly_income_expense(
    transactions: Iterable[Transaction],
    accounts: Iterable[Account],
    settings: Settings,
) -> Tuple[MonthlyFlow, ...]:
    """Gross income/expense per month in base currency.

    Fee and tax are not netted here, unlike balances and net worth.
    """
    accounts_by_id = {a.id: a for a in accounts}
    rows: Dict[str, List[float]] = {}
    for t in transactions:
        m = str(t.date)[:7]
        row = rows.setdefault(m, [0.0, 0.0])
        amount = to_base(t.amount, _currency_for(t.account_id, accounts_by_id, settings), settings)
        if t.type in INFLOW_TYPES:
            row[0] += amount
        elif t.type in OUTFLOW_TYPES:
            row[1] += amount

    return tuple(
        MonthlyFlow(month=m, income=inc, expense=exp)
        for m, (inc, exp) in sorted(rows.items())
    )


def days_until(deadline: str, today: Optional[date] = None) -> int:
    d = parse_date(deadline)
    if d is None:
        return 0
    return (d - (today or date.today())).days


def goal_progress(
    goal: Goal,
    balances: Mapping[str, AccountBalance],
    today: Optional[date] = None,
) -> GoalProgress:
    value = sum(balances[aid].balance_base for aid in goal.account_ids if aid in balances)
    target = ensure_number(goal.target)
    remaining = max(0.0, target - value)
    days = days_until(goal.deadline, today)
    return GoalProgress(
        goal=goal,
        value=value,
        pct=(value / target) * 100 if target > 0 else 0.0,
        remaining=remaining,
        days_left=days,
        daily_saving=remaining / max(1, days),
    )


def compute_metrics(state: PortfolioState, today: Optional[date] = None) -> PortfolioMetrics:
    settings = state.settings
    balances = account_balances(state.accounts, state.transactions, settings)
    valuations = position_valuations(state.positions, settings)
    totals = totals_by_type(balances.values(), valuations)
    total = total_assets(totals)
    allocation = allocation_actual(totals, total)
    entries = drift(state.targets.allocation, allocation)

    return PortfolioMetrics(
        balances=balances,
        valuations=valuations,
        totals_by_type=totals,
        total_assets=total,
        allocation=allocation,
        drift=entries,
        rebalance_alerts=rebalance_alerts(entries, ensure_number(state.targets.drift_threshold, 5.0)),
        net_worth=net_worth_series(state.transactions, state.accounts, valuations, settings, today),
        monthly_flows=monthly_income_expense(state.transactions, state.accounts, settings),
        goals=tuple(goal_progress(g, balances, today) for g in state.goals),
    )
