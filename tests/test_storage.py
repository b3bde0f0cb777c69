import json

from portfolio import config
from portfolio.domain import Account, PortfolioState, Targets
from portfolio.storage import (
    JsonFileStore,
    export_filename,
    export_json,
    from_document,
    import_json,
    to_document,
)
from portfolio.transforms import load_seed
from datetime import date


def test_export_import_round_trip():
    state = load_seed(str(config.SEED_PATH))
    result = import_json(export_json(state))

    assert result.is_right()
    assert result.get_or_else(None) == state


def test_document_layout_is_camel_case():
    doc = to_document(load_seed(str(config.SEED_PATH)))

    assert set(doc) == {"settings", "accounts", "transactions", "positions", "goals", "targets"}
    assert set(doc["settings"]) == {"baseCurrency", "usdKrw", "riskProfile", "showAdvanced"}
    assert "openingBalance" in doc["accounts"][0]
    assert "accountId" in doc["transactions"][0]
    assert "avgPrice" in doc["positions"][0]
    assert "accountIds" in doc["goals"][0]
    assert "driftThreshold" in doc["targets"]


def test_import_invalid_json():
    result = import_json("{not json")
    assert result.is_left()
    assert result.get_error()["error"] == "invalid_json"


def test_import_non_object():
    result = import_json("[1, 2, 3]")
    assert result.is_left()
    assert result.get_error()["error"] == "invalid_document"


def test_from_document_defaults_and_normalizes():
    state = from_document({
        "settings": {"baseCurrency": "USD", "usdKrw": "oops"},
        "accounts": [
            {"id": "a1", "name": "Odd", "type": "Art", "currency": "EUR", "openingBalance": "12", "extra": 1},
        ],
        "transactions": [
            {"id": "t1", "date": "2025-01-01", "accountId": "a1", "type": "Deposit", "amount": None},
            {"id": "t2", "date": "2025-01-01", "accountId": "a1", "type": "Gift", "amount": 5},
        ],
    })

    assert state.settings.base_currency == "USD"
    assert state.settings.usd_krw == 1350
    assert state.accounts == (Account("a1", "Odd", "Other", "USD", 12.0),)
    assert [t.id for t in state.transactions] == ["t1"]
    assert state.transactions[0].amount == 0
    assert state.positions == ()
    assert state.targets.allocation["Stock"] == 45


def test_from_empty_document():
    assert from_document({}) == PortfolioState()


def test_round_trip_partial_allocation():
    state = PortfolioState(
        accounts=(Account("a1", "Wallet", "Cash", "KRW", 500.0),),
        targets=Targets(allocation={"Cash": 50.0, "Stock": 50.0}, drift_threshold=3.0),
    )
    result = import_json(export_json(state))

    assert result.get_or_else(None) == state
    assert set(result.get_or_else(None).targets.allocation) == {"Cash", "Stock"}


def test_import_huge_integer_becomes_zero():
    big = "1" + "0" * 400
    result = import_json(
        '{"accounts": [{"id": "a1", "name": "Big", "type": "Cash", "currency": "KRW", "openingBalance": ' + big + "}]}"
    )

    assert result.is_right()
    assert result.get_or_else(None).accounts[0].opening_balance == 0


def test_import_goal_with_non_list_account_ids():
    result = import_json('{"goals": [{"id": "g1", "name": "Trip", "target": 100, "accountIds": 5}]}')

    assert result.is_right()
    assert result.get_or_else(None).goals[0].account_ids == ()


def test_import_undecodable_bytes():
    result = import_json(b"\xff\xfe{")
    assert result.is_left()
    assert result.get_error()["error"] == "invalid_json"


def test_import_utf8_bytes():
    result = import_json('{"accounts": [{"id": "a1", "name": "통장", "type": "Cash"}]}'.encode("utf-8"))
    assert result.get_or_else(None).accounts[0].name == "통장"


def test_json_file_store(tmp_path):
    store = JsonFileStore(tmp_path / "nested" / "doc.json")
    assert store.load() is None

    doc = to_document(load_seed(str(config.SEED_PATH)))
    store.save(doc)
    assert store.load() == json.loads(json.dumps(doc))


def test_json_file_store_unreadable(tmp_path):
    path = tmp_path / "doc.json"
    path.write_text("garbage", encoding="utf-8")
    assert JsonFileStore(path).load() is None


def test_export_filename():
    assert export_filename(date(2025, 9, 1)) == "asset-portfolio-2025-09-01.json"
