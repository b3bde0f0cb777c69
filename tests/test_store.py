from portfolio import config
from portfolio.domain import Account, Transaction
from portfolio.storage import JsonFileStore, to_document
from portfolio.store import PortfolioStore
from portfolio.transforms import add_transaction, load_seed, remove_account


def make_store(tmp_path):
    return PortfolioStore.open(JsonFileStore(tmp_path / "doc.json"), str(config.SEED_PATH))


def test_open_starts_from_seed(tmp_path):
    store = make_store(tmp_path)
    assert store.state == load_seed(str(config.SEED_PATH))


def test_update_persists_whole_document(tmp_path):
    store = make_store(tmp_path)
    acc = store.state.accounts[0]
    store.update(add_transaction, Transaction("tnew", "2025-09-02", acc.id, "Income", 10))

    assert store.persistence.load() == to_document(store.state)
    reopened = make_store(tmp_path)
    assert reopened.state == store.state


def test_update_cascade_through_store(tmp_path):
    store = make_store(tmp_path)
    acc_id = store.state.positions[0].account_id
    store.update(remove_account, acc_id)

    assert all(p.account_id != acc_id for p in store.state.positions)
    assert all(a.id != acc_id for a in store.state.accounts)


def test_import_failure_keeps_state(tmp_path):
    store = make_store(tmp_path)
    before = store.state
    result = store.import_text("not json at all")

    assert result.is_left()
    assert store.state is before


def test_import_replaces_state(tmp_path):
    store = make_store(tmp_path)
    result = store.import_text('{"accounts": [{"id": "x", "name": "X", "type": "Cash", "currency": "KRW"}]}')

    assert result.is_right()
    assert store.state.accounts == (Account("x", "X", "Cash", "KRW", 0),)
    assert store.state.transactions == ()


def test_rebalance_alerts_refreshed(tmp_path):
    store = make_store(tmp_path)
    store.import_text('{"accounts": [{"id": "x", "name": "X", "type": "Cash", "currency": "KRW", "openingBalance": 100}]}')
    # all cash: Cash is 80 points over target
    assert any(a.startswith("Cash") for a in store.alerts)


def test_reset_restores_seed(tmp_path):
    store = make_store(tmp_path)
    store.import_text("{}")
    store.reset()
    assert store.state == store.seed


def test_import_uploaded_bytes(tmp_path):
    store = make_store(tmp_path)
    before = store.state

    assert store.import_text(b"\xff\xfe{").is_left()
    assert store.state is before

    result = store.import_text(b'{"goals": [{"id": "g", "name": "G", "target": 1, "accountIds": 5}]}')
    assert result.is_right()
    assert store.state.goals[0].account_ids == ()


def test_reset_saves_seed_document(tmp_path):
    store = make_store(tmp_path)
    store.import_text("{}")
    store.reset()

    assert store.persistence.load() == to_document(store.seed)
    assert make_store(tmp_path).state == store.seed
