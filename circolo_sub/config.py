from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

LOGGER = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]

# DB SQLite su file nella root del progetto (accanto a streamlit_app.py)
DATABASE_URL = os.getenv("CIRCOLO_DATABASE_URL", f"sqlite:///{ROOT_DIR / 'circolo_sub.sqlite'}")

# In produzione: mettila in variabile d'ambiente
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

# File privati (foto bombole, certificati, ...) salvati su disco
STORAGE_DIR = Path(os.getenv("CIRCOLO_STORAGE_DIR", str(ROOT_DIR / "storage")))
SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", str(60 * 60)))

LOG_LEVEL = os.getenv("CIRCOLO_LOG_LEVEL", "INFO")


def configure_logging(level: str | None = None) -> None:
    """Configura il logging root a partire dal livello richiesto (default: CIRCOLO_LOG_LEVEL)."""
    level = level or LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        logging.basicConfig(level=logging.INFO, force=True)
        LOGGER.warning("Livello di log non valido: %s, uso INFO", level)
        return
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
