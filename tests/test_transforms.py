from portfolio import config
from portfolio.domain import Account, Goal, PortfolioState, Position, Transaction
from portfolio.transforms import (
    add_account,
    add_transaction,
    load_seed,
    remove_account,
    remove_transaction,
    uid,
    update_position,
    update_settings,
    update_targets,
)


def make_state():
    return PortfolioState(
        accounts=(
            Account("a1", "Checking", "Cash", "KRW", 1000),
            Account("a2", "Broker", "Stock", "KRW", 0),
        ),
        transactions=(
            Transaction("t1", "2025-09-01", "a1", "Deposit", 100),
            Transaction("t2", "2025-09-02", "a2", "Buy", 50),
            Transaction("t3", "2025-09-03", "a1", "Expense", 20),
        ),
        positions=(
            Position("p1", "a2", "VOO", "Vanguard", "ETF", 1, 400, "USD", 500),
            Position("p2", "a1", "X", "Other", "Other", 1, 1, "KRW", 1),
        ),
        goals=(Goal("g1", "Rainy day", 5000, "2026-01-01", ("a1",)),),
    )


def test_uid_shape():
    ids = {uid() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 8 and i.isalnum() for i in ids)


def test_add_account_returns_new_snapshot():
    state = make_state()
    new_state = add_account(state, Account("a3", "Coins", "Crypto", "KRW", 0))

    assert len(new_state.accounts) == 3
    assert len(state.accounts) == 2
    assert new_state is not state


def test_remove_account_cascades():
    state = make_state()
    new_state = remove_account(state, "a1")

    assert [a.id for a in new_state.accounts] == ["a2"]
    assert [t.id for t in new_state.transactions] == ["t2"]
    assert [p.id for p in new_state.positions] == ["p1"]
    # goals keep their stale link
    assert new_state.goals == state.goals
    assert len(state.transactions) == 3


def test_remove_transaction():
    new_state = remove_transaction(make_state(), "t2")
    assert [t.id for t in new_state.transactions] == ["t1", "t3"]


def test_add_transaction_immutability():
    state = make_state()
    t = Transaction("t4", "2025-09-04", "a1", "Income", 10)
    new_state = add_transaction(state, t)
    assert new_state.transactions[-1] == t
    assert len(state.transactions) == 3


def test_update_position_only_touches_target():
    state = make_state()
    new_state = update_position(state, "p1", last_price=530)

    assert new_state.positions[0].last_price == 530
    assert new_state.positions[1] == state.positions[1]
    assert state.positions[0].last_price == 500


def test_update_settings_and_targets():
    state = update_settings(make_state(), base_currency="USD", usd_krw=1400)
    assert state.settings.base_currency == "USD"
    assert state.settings.usd_krw == 1400
    assert state.settings.risk_profile == "Neutral"

    state = update_targets(state, drift_threshold=3)
    assert state.targets.drift_threshold == 3
    assert state.targets.allocation["Stock"] == 45

    state = update_targets(state, allocation={"Cash": 100})
    assert state.targets.allocation == {"Cash": 100}
    assert state.targets.drift_threshold == 3


def test_load_seed():
    state = load_seed(str(config.SEED_PATH))

    assert len(state.accounts) >= 4
    assert len(state.positions) >= 2
    assert len(state.goals) >= 2
    account_ids = {a.id for a in state.accounts}
    assert all(t.account_id in account_ids for t in state.transactions)
    assert all(p.account_id in account_ids for p in state.positions)
