# subledger/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# --------------------
# Env & configuration
# --------------------
load_dotenv()

DATA_DIR = os.getenv("DATA_DIR") or ".data"
APP_ACCESS_TOKEN = os.getenv("APP_ACCESS_TOKEN") or None
LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
LEDGER_ID_PREFIX = os.getenv("LEDGER_ID_PREFIX") or "spend"

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"


def data_dir() -> Path:
    p = Path(DATA_DIR)
    p.mkdir(parents=True, exist_ok=True)
    return p


def configure_logging(level: str = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format=LOG_FORMAT,
    )
