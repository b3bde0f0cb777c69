"""Environment-driven settings. A ``.env`` next to the repository root is loaded first."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent.parent
load_dotenv(ROOT / ".env")

STORAGE_KEY = "asset-portfolio-mvp-v1"

DATA_PATH = Path(os.environ.get(
    "PORTFOLIO_DATA_PATH",
    Path.home() / ".asset-portfolio" / f"{STORAGE_KEY}.json",
))
SEED_PATH = Path(os.environ.get("PORTFOLIO_SEED_PATH", ROOT / "data" / "seed.json"))
LOG_LEVEL = os.environ.get("PORTFOLIO_LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
