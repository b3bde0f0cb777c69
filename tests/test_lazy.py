from itertools import islice
from typing import Iterable

from portfolio.domain import Position, Settings, Transaction
from portfolio.lazy import (
    by_account,
    by_date_range,
    by_type,
    iter_transactions,
    lazy_top_positions,
    recent_transactions,
)
from portfolio.metrics import position_valuations


def make_tx(id, acc_id, type, date):
    return Transaction(id=id, date=date, account_id=acc_id, type=type, amount=10)


TRANS = (
    make_tx("t1", "a1", "Deposit", "2025-01-05"),
    make_tx("t2", "a2", "Buy", "2025-02-10"),
    make_tx("t3", "a1", "Expense", "2025-03-01"),
    make_tx("t4", "a1", "Deposit", "2025-03-20"),
)


def test_iter_transactions_is_lazy():
    gen = iter_transactions(TRANS, by_account("a1"))
    assert isinstance(gen, Iterable)
    assert [t.id for t in islice(gen, 2)] == ["t1", "t3"]


def test_combined_filters():
    got = list(iter_transactions(TRANS, by_account("a1"), by_type("Deposit"), by_date_range("2025-02-01", "2025-12-31")))
    assert [t.id for t in got] == ["t4"]


def test_recent_transactions():
    assert [t.id for t in recent_transactions(TRANS, 2)] == ["t4", "t3"]
    assert list(recent_transactions(TRANS, -1)) == []


def test_lazy_top_positions():
    positions = [
        Position("p1", "a1", "A", "A", "Stock", 1, 100, "KRW", 90),
        Position("p2", "a1", "B", "B", "Stock", 1, 100, "KRW", 150),
        Position("p3", "a1", "C", "C", "Stock", 1, 100, "KRW", 100),
    ]
    vals = position_valuations(positions, Settings())
    assert [v.position.id for v in lazy_top_positions(vals, 2)] == ["p2", "p1"]
