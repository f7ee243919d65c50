from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.fintrack.db import build_engine, make_sessionmaker


def create_script_engine(db_url: str) -> Engine:
    return build_engine(db_url)


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """One-off session for scripts: commits on success, disposes the engine either way."""
    engine = create_script_engine(db_url)
    s = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
