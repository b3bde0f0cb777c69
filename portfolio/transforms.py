import json
import random
import string
from dataclasses import replace
from typing import Optional

from portfolio.domain import Account, Goal, PortfolioState, Position, Settings, Targets, Transaction
from portfolio.storage import from_document

_ID_ALPHABET = string.ascii_lowercase + string.digits


def uid() -> str:
    return "".join(random.choices(_ID_ALPHABET, k=8))


def load_seed(path: str) -> PortfolioState:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return from_document(data)


def apply_patch(state: PortfolioState, **patch) -> PortfolioState:
    """Return a new snapshot with the given top-level fields replaced."""
    return replace(state, **patch)


def add_account(state: PortfolioState, account: Account) -> PortfolioState:
    return apply_patch(state, accounts=state.accounts + (account,))


def remove_account(state: PortfolioState, account_id: str) -> PortfolioState:
    # transactions and positions go with their account; goals keep the stale id
    return apply_patch(
        state,
        accounts=tuple(a for a in state.accounts if a.id != account_id),
        transactions=tuple(t for t in state.transactions if t.account_id != account_id),
        positions=tuple(p for p in state.positions if p.account_id != account_id),
    )


def add_transaction(state: PortfolioState, t: Transaction) -> PortfolioState:
    return apply_patch(state, transactions=state.transactions + (t,))


def remove_transaction(state: PortfolioState, transaction_id: str) -> PortfolioState:
    return apply_patch(state, transactions=tuple(t for t in state.transactions if t.id != transaction_id))


def add_position(state: PortfolioState, p: Position) -> PortfolioState:
    return apply_patch(state, positions=state.positions + (p,))


def update_position(state: PortfolioState, position_id: str, **changes) -> PortfolioState:
    return apply_patch(
        state,
        positions=tuple(replace(p, **changes) if p.id == position_id else p for p in state.positions),
    )


def remove_position(state: PortfolioState, position_id: str) -> PortfolioState:
    return apply_patch(state, positions=tuple(p for p in state.positions if p.id != position_id))


def add_goal(state: PortfolioState, goal: Goal) -> PortfolioState:
    return apply_patch(state, goals=state.goals + (goal,))


def remove_goal(state: PortfolioState, goal_id: str) -> PortfolioState:
    return apply_patch(state, goals=tuple(g for g in state.goals if g.id != goal_id))


def update_settings(state: PortfolioState, **changes) -> PortfolioState:
    settings: Settings = replace(state.settings, **changes)
    return apply_patch(state, settings=settings)


def update_targets(
    state: PortfolioState,
    allocation: Optional[dict] = None,
    drift_threshold: Optional[float] = None,
) -> PortfolioState:
    targets = Targets(
        allocation=dict(allocation) if allocation is not None else dict(state.targets.allocation),
        drift_threshold=drift_threshold if drift_threshold is not None else state.targets.drift_threshold,
    )
    return apply_patch(state, targets=targets)
