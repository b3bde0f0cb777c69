from dataclasses import dataclass, field
from typing import Dict, Tuple

CURRENCIES = ("KRW", "USD")
ASSET_TYPES = ("Cash", "Stock", "ETF", "Bond", "Crypto", "Real Estate", "Other")
TX_TYPES = ("Deposit", "Withdraw", "Buy", "Sell", "Income", "Expense")
RISK_PROFILES = ("Conservative", "Neutral", "Aggressive")

INFLOW_TYPES = ("Deposit", "Income", "Sell")
OUTFLOW_TYPES = ("Withdraw", "Expense", "Buy")

DEFAULT_USD_KRW = 1350.0
DEFAULT_DRIFT_THRESHOLD = 5.0
DEFAULT_ALLOCATION = {
    "Cash": 20.0,
    "Stock": 45.0,
    "ETF": 15.0,
    "Bond": 10.0,
    "Crypto": 5.0,
    "Real Estate": 5.0,
    "Other": 0.0,
}


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    type: str               # one of ASSET_TYPES
    currency: str           # one of CURRENCIES
    opening_balance: float = 0.0


@dataclass(frozen=True)
class Transaction:
    id: str
    date: str               # ISO date, e.g. "2025-09-01"
    account_id: str
    type: str               # one of TX_TYPES
    amount: float
    fee: float = 0.0
    tax: float = 0.0
    note: str = ""


@dataclass(frozen=True)
class Position:
    id: str
    account_id: str
    symbol: str
    name: str
    asset_type: str
    qty: float
    avg_price: float
    currency: str
    last_price: float       # manual mark-to-market


# target is in base currency
@dataclass(frozen=True)
class Goal:
    id: str
    name: str
    target: float
    deadline: str
    account_ids: Tuple[str, ...] = ()
    note: str = ""


@dataclass(frozen=True)
class Settings:
    base_currency: str = "KRW"
    usd_krw: float = DEFAULT_USD_KRW
    risk_profile: str = "Neutral"
    show_advanced: bool = True


@dataclass(frozen=True)
class Targets:
    allocation: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ALLOCATION))
    drift_threshold: float = DEFAULT_DRIFT_THRESHOLD

    # dict field makes the default dataclass hash fail
    def __hash__(self) -> int:
        return hash((tuple(sorted(self.allocation.items())), self.drift_threshold))


@dataclass(frozen=True)
class PortfolioState:
    settings: Settings = field(default_factory=Settings)
    accounts: Tuple[Account, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    positions: Tuple[Position, ...] = ()
    goals: Tuple[Goal, ...] = ()
    targets: Targets = field(default_factory=Targets)
