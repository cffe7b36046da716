# config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TZ = "Europe/Madrid"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    database_url: str
    reports_dir: Path
    tz: ZoneInfo

    def today(self) -> date:
        return datetime.now(self.tz).date()


def load_env(dotenv_path: str | Path | None = None) -> None:
    path = Path(dotenv_path) if dotenv_path else None
    if path and path.exists():
        load_dotenv(path)
        return
    load_dotenv()


def configure_logging(level: str | None = None) -> None:
    level = (level or os.getenv("SHIFTCASH_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def pick_data_dir() -> Path:
    """First writable directory of $DATA_DIR, /data and ./data; cwd as last resort."""
    candidates = []
    env = os.getenv("DATA_DIR")
    if env:
        candidates.append(Path(env))
    candidates += [Path("/data"), Path.cwd() / "data"]

    for p in candidates:
        try:
            p.mkdir(parents=True, exist_ok=True)
            t = p / ".rwtest"
            t.write_text("ok")
            t.unlink(missing_ok=True)
            return p
        except OSError:
            logger.debug(f"Directorio de datos no utilizable: {p}")
            continue
    return Path.cwd()


def is_hosted() -> bool:
    return "RENDER" in os.environ or "SPACE_ID" in os.environ


def load_settings() -> Settings:
    data_dir = pick_data_dir()
    default_sqlite = f"sqlite:///{(data_dir / 'shiftcash.db').as_posix()}"
    database_url = os.getenv("DATABASE_URL", default_sqlite)

    # Exigir Postgres en hosting
    if is_hosted() and database_url.startswith("sqlite"):
        logger.error("Falta DATABASE_URL (Postgres). Configura la variable de entorno en el hosting.")

    reports_dir = Path(os.getenv("REPORTS_DIR", data_dir / "informes"))
    try:
        reports_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        reports_dir = Path.cwd() / "informes"
        reports_dir.mkdir(parents=True, exist_ok=True)

    tz = ZoneInfo(os.getenv("SHIFTCASH_TZ", DEFAULT_TZ))
    return Settings(data_dir=data_dir, database_url=database_url, reports_dir=reports_dir, tz=tz)
