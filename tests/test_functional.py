from portfolio.domain import DEFAULT_ALLOCATION, Account, Transaction
from portfolio.functional import (
    Left,
    Nothing,
    Right,
    Some,
    account_label,
    check_allocation_total,
    safe_account,
    validate_transaction,
)

ACCOUNTS = (Account("acc1", "Checking", "Cash", "KRW", 1000),)


def test_maybe_map():
    assert Some(5).map(lambda x: x * 2).get_or_else(0) == 10

    mapped_nothing = Nothing().map(lambda x: x * 2)
    assert mapped_nothing.is_none()
    assert mapped_nothing.get_or_else(0) == 0


def test_either_bind():
    def half(x: int):
        if x % 2:
            return Left("odd")
        return Right(x // 2)

    assert Right(4).bind(half) == Right(2)
    assert Right(3).bind(half).get_error() == "odd"
    assert Left("first").bind(half).get_error() == "first"


def test_safe_account_and_label():
    assert safe_account(ACCOUNTS, "acc1").get_or_else(None).name == "Checking"
    assert safe_account(ACCOUNTS, "nope").is_none()
    assert account_label(ACCOUNTS, "acc1") == "Checking"
    assert account_label(ACCOUNTS, "nope") == "-"


def test_validate_transaction_success():
    t = Transaction("t1", "2025-01-01", "acc1", "Deposit", 100)
    result = validate_transaction(t, ACCOUNTS)
    assert result.is_right()
    assert result.get_or_else(None).id == "t1"


def test_validate_transaction_unknown_account():
    t = Transaction("t1", "2025-01-01", "ghost", "Deposit", 100)
    result = validate_transaction(t, ACCOUNTS)
    assert result.is_left()
    assert result.get_error()["error"] == "account_not_found"


def test_validate_transaction_unknown_type():
    t = Transaction("t1", "2025-01-01", "acc1", "Gift", 100)
    assert validate_transaction(t, ACCOUNTS).get_error()["error"] == "unknown_type"


def test_validate_transaction_negative_fee():
    t = Transaction("t1", "2025-01-01", "acc1", "Buy", 100, fee=-1)
    error = validate_transaction(t, ACCOUNTS).get_error()
    assert error["error"] == "negative_amount"
    assert error["fields"] == ["fee"]


def test_check_allocation_total():
    assert check_allocation_total(DEFAULT_ALLOCATION).is_right()

    result = check_allocation_total({"Cash": 50, "Stock": 40})
    assert result.is_left()
    assert result.get_error()["total"] == 90
