"""
Database wiring: one SQLAlchemy engine per process, sessions via session_scope().
init_db() registers core and plugin models and creates their tables.
"""
import importlib
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_PATH = Path.home() / ".emasjid" / "emasjid.db"

# Imported by init_db() so their tables exist on Base.metadata
MODEL_MODULES = (
    "emasjid.core.models",
    "emasjid.plugins.prayer_times.models",
)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def database_url(config_data: Optional[Dict[str, Any]] = None) -> str:
    """sqlite URL for database.path, creating its directory. Defaults to ~/.emasjid/emasjid.db."""
    path = ((config_data or {}).get("database") or {}).get("path") or DEFAULT_DB_PATH
    path = Path(path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def init_db(config_data: Optional[Dict[str, Any]] = None, db_url: Optional[str] = None) -> Engine:
    """Create the engine and tables once; later calls return the existing engine."""
    global _engine, _session_factory
    if _engine is not None:
        return _engine

    url = db_url or database_url(config_data)
    # Task timers and API workers share the engine from different threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, future=True, connect_args=connect_args)

    for module_name in MODEL_MODULES:
        importlib.import_module(module_name)
    Base.metadata.create_all(engine)

    _engine = engine
    _session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    logger.info(f"Database ready at {engine.url.render_as_string(hide_password=True)}")
    return engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session; commit when the block succeeds, roll back when it raises."""
    if _session_factory is None:
        raise RuntimeError("init_db() has not been called")
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_db() -> None:
    """Close the engine and forget it so init_db() can be called again."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        logger.debug("Database engine disposed")
    _engine = None
    _session_factory = None
