import logging
from typing import Callable, List, Optional, Union

from portfolio.domain import PortfolioState
from portfolio.events import REBALANCE_ALERT, STATE_CHANGED, EventBus, register_default_handlers
from portfolio.functional import Either
from portfolio.metrics import PortfolioMetrics, compute_metrics
from portfolio.storage import from_document, import_json, to_document
from portfolio.transforms import load_seed

_logger = logging.getLogger(__name__)


class PortfolioStore:
    """Owns the current snapshot.

    Every change goes through ``update``: the transform returns a new
    snapshot, the whole document is published (and saved by the default
    persistence handler) and rebalance alerts are refreshed.
    """

    def __init__(self, state: PortfolioState, persistence, seed: Optional[PortfolioState] = None,
                 bus: Optional[EventBus] = None):
        self.state = state
        self.persistence = persistence
        self.seed = seed if seed is not None else state
        self.bus = bus if bus is not None else register_default_handlers(EventBus(), persistence)
        self.alerts: List[str] = []

    @classmethod
    def open(cls, persistence, seed_path: str) -> "PortfolioStore":
        seed = load_seed(seed_path)
        document = persistence.load()
        if document is None:
            _logger.info("No saved portfolio, starting from seed %s", seed_path)
            return cls(seed, persistence, seed=seed)
        return cls(from_document(document), persistence, seed=seed)

    def metrics(self) -> PortfolioMetrics:
        return compute_metrics(self.state)

    def update(self, transform: Callable[..., PortfolioState], *args, **kwargs) -> PortfolioState:
        return self.replace(transform(self.state, *args, **kwargs))

    def replace(self, state: PortfolioState) -> PortfolioState:
        self.state = state
        self.bus.publish(STATE_CHANGED, {"document": to_document(state)})

        m = compute_metrics(state)
        results = self.bus.publish(
            REBALANCE_ALERT,
            {"drift": m.drift, "threshold": state.targets.drift_threshold},
        )
        self.alerts = [a for r in results for a in r.get("alerts", [])]
        return state

    def import_text(self, text: Union[str, bytes]) -> Either[dict, PortfolioState]:
        result = import_json(text)
        if result.is_right():
            self.replace(result.get_or_else(self.state))
        return result

    def reset(self) -> PortfolioState:
        return self.replace(self.seed)
