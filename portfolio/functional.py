from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, Iterable, Mapping, TypeVar

from portfolio.domain import ASSET_TYPES, TX_TYPES, Account, Transaction

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    def is_left(self) -> bool:
        return not self.is_right()


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Right has no error")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def safe_account(accounts: Iterable[Account], account_id: str) -> Maybe[Account]:
    for acc in accounts:
        if acc.id == account_id:
            return Some(acc)
    return Nothing()


def account_label(accounts: Iterable[Account], account_id: str) -> str:
    return safe_account(accounts, account_id).map(lambda a: a.name).get_or_else("-")


def validate_transaction(t: Transaction, accounts: Iterable[Account]) -> Either[dict, Transaction]:
    if safe_account(accounts, t.account_id).is_none():
        return Left({
            "error": "account_not_found",
            "message": f"Account with ID {t.account_id} does not exist",
            "account_id": t.account_id,
        })

    if t.type not in TX_TYPES:
        return Left({
            "error": "unknown_type",
            "message": f"Unknown transaction type {t.type}",
            "type": t.type,
        })

    negative = [name for name in ("amount", "fee", "tax") if getattr(t, name) < 0]
    if negative:
        return Left({
            "error": "negative_amount",
            "message": f"{', '.join(negative)} must not be negative",
            "fields": negative,
        })

    return Right(t)


def check_allocation_total(allocation: Mapping[str, float]) -> Either[dict, Dict[str, float]]:
    """Targets are expected to add up to 100; the caller decides whether to keep them."""
    total = sum(allocation.get(t, 0) for t in ASSET_TYPES)
    if abs(total - 100) > 0.01:
        return Left({
            "error": "allocation_total",
            "message": f"Target allocation adds up to {total:.1f}%",
            "total": total,
        })
    return Right(dict(allocation))
