from datetime import date
from typing import Any, Callable, Dict, Optional, Sequence

from portfolio import metrics as m
from portfolio.domain import PortfolioState

Calculator = Callable[[PortfolioState, dict, date], Dict[str, Any]]


class ReportService:
    """Facade that runs calculators over a snapshot and keeps their intermediate outputs.

    calculators: sequence of functions taking (state, acc, today) -> dict (partial results);
    each one sees everything the previous ones produced in ``acc``.
    """

    def __init__(self, calculators: Optional[Sequence[Calculator]] = None):
        self.calculators = list(calculators) if calculators is not None else list(DEFAULT_CALCULATORS)

    def report(self, state: PortfolioState, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        report = {"steps": [], "result": {}}
        acc: Dict[str, Any] = {}
        for calc in self.calculators:
            out = calc(state, acc, today)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            acc.update(out)
        report["result"] = acc
        return report


def calc_balances(state, acc, today):
    return {"balances": m.account_balances(state.accounts, state.transactions, state.settings)}


def calc_valuations(state, acc, today):
    return {"valuations": m.position_valuations(state.positions, state.settings)}


def calc_totals(state, acc, today):
    totals = m.totals_by_type(acc["balances"].values(), acc["valuations"])
    return {"totals_by_type": totals, "total_assets": m.total_assets(totals)}


def calc_allocation(state, acc, today):
    allocation = m.allocation_actual(acc["totals_by_type"], acc["total_assets"])
    drift = m.drift(state.targets.allocation, allocation)
    return {
        "allocation": allocation,
        "drift": drift,
        "rebalance_alerts": m.rebalance_alerts(drift, state.targets.drift_threshold),
        "suggestion": m.suggest_rebalance(drift, acc["total_assets"], state.settings.base_currency),
    }


def calc_series(state, acc, today):
    return {
        "net_worth": m.net_worth_series(
            state.transactions, state.accounts, acc["valuations"], state.settings, today
        ),
        "monthly_flows": m.monthly_income_expense(state.transactions, state.accounts, state.settings),
    }


def calc_goals(state, acc, today):
    return {"goals": tuple(m.goal_progress(g, acc["balances"], today) for g in state.goals)}


DEFAULT_CALCULATORS = (
    calc_balances,
    calc_valuations,
    calc_totals,
    calc_allocation,
    calc_series,
    calc_goals,
)
