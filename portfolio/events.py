import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

__all__ = [
    'Event', 'EventBus', 'STATE_CHANGED', 'REBALANCE_ALERT',
    'make_persist_handler', 'check_drift_handler', 'register_default_handlers',
]

_logger = logging.getLogger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = self._subscribers.get(name, [])
        if not handlers:
            return []

        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        _logger.debug("Publishing %s to %d handler(s)", name, len(handlers))
        return [handler(event, payload) for handler in handlers]

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if handler in self._subscribers.get(name, []):
            self._subscribers[name].remove(handler)


STATE_CHANGED = "STATE_CHANGED"
REBALANCE_ALERT = "REBALANCE_ALERT"


def make_persist_handler(persistence) -> Handler:
    """Handler that writes the whole document on every state change."""
    def persist_handler(event: Event, payload: dict) -> dict:
        persistence.save(payload["document"])
        return {"saved": True}
    return persist_handler


def check_drift_handler(event: Event, payload: dict) -> dict:
    threshold = payload.get("threshold", 5)
    alerts = [
        f"{d.type}: target {d.target:.1f}% -> actual {d.actual:.1f}% ({d.diff:+.1f}%)"
        for d in payload.get("drift", ())
        if abs(d.diff) >= threshold
    ]
    if alerts:
        return {"alerts": alerts}
    return {}


def register_default_handlers(bus: EventBus, persistence) -> EventBus:
    bus.subscribe(STATE_CHANGED, make_persist_handler(persistence))
    bus.subscribe(REBALANCE_ALERT, check_drift_handler)
    return bus
