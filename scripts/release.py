"""
Release phase: bring the schema to head, then run the idempotent seed.

Refuses to run without DATABASE_URL, and refuses sqlite when ENV=production.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def run_release() -> None:
    from dotenv import load_dotenv

    load_dotenv()
    db_url = _require_env("DATABASE_URL")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print(f"=== fintrack release (ENV={env or '(unset)'}) ===", flush=True)

    from alembic import command

    command.upgrade(alembic_config(db_url), "head")
    print("Schema at head.", flush=True)

    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("=== release done ===", flush=True)


if __name__ == "__main__":
    run_release()
