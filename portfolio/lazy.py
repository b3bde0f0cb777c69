from itertools import islice
from typing import Callable, Iterable, Iterator

from portfolio.domain import Transaction
from portfolio.metrics import PositionValuation


def by_account(account_id: str):
    def _filter(t: Transaction) -> bool:
        return t.account_id == account_id

    return _filter


def by_type(*types: str):
    def _filter(t: Transaction) -> bool:
        return t.type in types

    return _filter


def by_date_range(start: str, end: str):
    def _filter(t: Transaction) -> bool:
        return start <= t.date <= end

    return _filter


def iter_transactions(
    trans: Iterable[Transaction], *preds: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if all(p(t) for p in preds):
            yield t


def newest_first(trans: Iterable[Transaction]) -> Iterator[Transaction]:
    yield from sorted(trans, key=lambda t: t.date, reverse=True)


def recent_transactions(trans: Iterable[Transaction], k: int) -> Iterator[Transaction]:
    return islice(newest_first(trans), max(0, k))


def lazy_top_positions(
    valuations: Iterable[PositionValuation], k: int
) -> Iterator[PositionValuation]:
    """Positions with the largest absolute P/L first."""
    ordered = sorted(valuations, key=lambda v: abs(v.pnl), reverse=True)
    yield from ordered[: max(0, k)]
