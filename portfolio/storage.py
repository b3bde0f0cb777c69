"""JSON document persistence and import/export.

The persisted document and the export file share one camelCase layout.
Normalization happens here so the rest of the package only ever sees
closed, typed records.
"""
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from portfolio.domain import (
    ASSET_TYPES,
    CURRENCIES,
    DEFAULT_ALLOCATION,
    DEFAULT_DRIFT_THRESHOLD,
    DEFAULT_USD_KRW,
    RISK_PROFILES,
    TX_TYPES,
    Account,
    Goal,
    PortfolioState,
    Position,
    Settings,
    Targets,
    Transaction,
)
from portfolio.functional import Either, Left, Right
from portfolio.metrics import ensure_number

_logger = logging.getLogger(__name__)


def _str(value, default: str = "") -> str:
    return default if value is None else str(value)


def _choice(value, allowed, default: str, what: str) -> str:
    if value in allowed:
        return value
    _logger.warning("Unknown %s %r, using %r", what, value, default)
    return default


def _settings_from(d: Dict[str, Any]) -> Settings:
    return Settings(
        base_currency=_choice(d.get("baseCurrency", "KRW"), CURRENCIES, "KRW", "base currency"),
        usd_krw=ensure_number(d.get("usdKrw"), DEFAULT_USD_KRW),
        risk_profile=_choice(d.get("riskProfile", "Neutral"), RISK_PROFILES, "Neutral", "risk profile"),
        show_advanced=bool(d.get("showAdvanced", True)),
    )


def _targets_from(d: Dict[str, Any]) -> Targets:
    raw = d.get("allocation")
    if not isinstance(raw, dict):
        raw = DEFAULT_ALLOCATION
    # only the types the document lists; missing ones read as 0 downstream
    return Targets(
        allocation={t: ensure_number(raw[t]) for t in ASSET_TYPES if t in raw},
        drift_threshold=ensure_number(d.get("driftThreshold"), DEFAULT_DRIFT_THRESHOLD),
    )


def _ids(value) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(x) for x in value)


def _records(data: Dict[str, Any], key: str):
    items = data.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def from_document(data: Dict[str, Any]) -> PortfolioState:
    """Build a snapshot from a parsed document, defaulting unknown values."""
    settings_raw = data.get("settings")
    settings = _settings_from(settings_raw if isinstance(settings_raw, dict) else {})
    base = settings.base_currency

    accounts = tuple(
        Account(
            id=_str(a.get("id")),
            name=_str(a.get("name")),
            type=_choice(a.get("type"), ASSET_TYPES, "Other", "asset type"),
            currency=_choice(a.get("currency"), CURRENCIES, base, "currency"),
            opening_balance=ensure_number(a.get("openingBalance")),
        )
        for a in _records(data, "accounts")
    )

    transactions = []
    for t in _records(data, "transactions"):
        if t.get("type") not in TX_TYPES:
            _logger.warning("Dropping transaction %r with unknown type %r", t.get("id"), t.get("type"))
            continue
        transactions.append(
            Transaction(
                id=_str(t.get("id")),
                date=_str(t.get("date")),
                account_id=_str(t.get("accountId")),
                type=t["type"],
                amount=ensure_number(t.get("amount")),
                fee=ensure_number(t.get("fee")),
                tax=ensure_number(t.get("tax")),
                note=_str(t.get("note")),
            )
        )

    positions = tuple(
        Position(
            id=_str(p.get("id")),
            account_id=_str(p.get("accountId")),
            symbol=_str(p.get("symbol")),
            name=_str(p.get("name")),
            asset_type=_choice(p.get("assetType"), ASSET_TYPES, "Other", "asset type"),
            qty=ensure_number(p.get("qty")),
            avg_price=ensure_number(p.get("avgPrice")),
            currency=_choice(p.get("currency"), CURRENCIES, base, "currency"),
            last_price=ensure_number(p.get("lastPrice")),
        )
        for p in _records(data, "positions")
    )

    goals = tuple(
        Goal(
            id=_str(g.get("id")),
            name=_str(g.get("name")),
            target=ensure_number(g.get("target")),
            deadline=_str(g.get("deadline")),
            account_ids=_ids(g.get("accountIds")),
            note=_str(g.get("note")),
        )
        for g in _records(data, "goals")
    )

    targets_raw = data.get("targets")
    return PortfolioState(
        settings=settings,
        accounts=accounts,
        transactions=tuple(transactions),
        positions=positions,
        goals=goals,
        targets=_targets_from(targets_raw if isinstance(targets_raw, dict) else {}),
    )


def to_document(state: PortfolioState) -> Dict[str, Any]:
    s = state.settings
    return {
        "settings": {
            "baseCurrency": s.base_currency,
            "usdKrw": s.usd_krw,
            "riskProfile": s.risk_profile,
            "showAdvanced": s.show_advanced,
        },
        "accounts": [
            {
                "id": a.id,
                "name": a.name,
                "type": a.type,
                "currency": a.currency,
                "openingBalance": a.opening_balance,
            }
            for a in state.accounts
        ],
        "transactions": [
            {
                "id": t.id,
                "date": t.date,
                "accountId": t.account_id,
                "type": t.type,
                "amount": t.amount,
                "fee": t.fee,
                "tax": t.tax,
                "note": t.note,
            }
            for t in state.transactions
        ],
        "positions": [
            {
                "id": p.id,
                "accountId": p.account_id,
                "symbol": p.symbol,
                "name": p.name,
                "assetType": p.asset_type,
                "qty": p.qty,
                "avgPrice": p.avg_price,
                "currency": p.currency,
                "lastPrice": p.last_price,
            }
            for p in state.positions
        ],
        "goals": [
            {
                "id": g.id,
                "name": g.name,
                "target": g.target,
                "deadline": g.deadline,
                "accountIds": list(g.account_ids),
                "note": g.note,
            }
            for g in state.goals
        ],
        "targets": {
            "allocation": dict(state.targets.allocation),
            "driftThreshold": state.targets.drift_threshold,
        },
    }


def export_json(state: PortfolioState) -> str:
    return json.dumps(to_document(state), ensure_ascii=False, indent=2)


def export_filename(today: Optional[date] = None) -> str:
    return f"asset-portfolio-{(today or date.today()).isoformat()}.json"


def _parse(text: Union[str, bytes]) -> Either[dict, Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        # UnicodeDecodeError from undecodable bytes is a ValueError too
        _logger.warning("Import failed: %s", e)
        return Left({"error": "invalid_json", "message": f"Could not parse JSON: {e}"})

    if not isinstance(data, dict):
        return Left({"error": "invalid_document", "message": "Top-level JSON value must be an object"})
    return Right(data)


def _build(data: Dict[str, Any]) -> Either[dict, PortfolioState]:
    try:
        return Right(from_document(data))
    except (TypeError, ValueError, AttributeError) as e:
        _logger.warning("Import failed, malformed document: %s", e)
        return Left({"error": "invalid_document", "message": f"Malformed document: {e}"})


def import_json(text: Union[str, bytes]) -> Either[dict, PortfolioState]:
    """Parse an exported document. On ``Left`` the caller keeps its current state."""
    return _parse(text).bind(_build)


class JsonFileStore:
    """Whole-document store: one JSON file, overwritten on every save."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            _logger.warning("Ignoring unreadable document %s: %s", self.path, e)
            return None
        return data if isinstance(data, dict) else None

    def save(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)
        _logger.info("Saved portfolio document to %s", self.path)
