from typing import Dict, Optional

from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine

from workscope import config

# One Engine per URL so every data source keeps a single connection pool.
_ENGINES: Dict[str, Engine] = {}


def make_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create or return a cached SQLAlchemy Engine for `database_url`.

    Falls back to ``WORKSCOPE_DATABASE_URL`` when no URL is passed.
    """
    database_url = database_url or config.database_url()
    if not database_url:
        raise RuntimeError("WORKSCOPE_DATABASE_URL not set")
    engine = _ENGINES.get(database_url)
    if engine is None:
        if echo is None:
            echo = config.echo_sql()
        engine = create_engine(database_url, echo=echo)
        _ENGINES[database_url] = engine
    return engine


def init_orm(engine: Engine, metadata: MetaData) -> None:
    """Create all tables of `metadata` on `engine` if they do not exist."""
    metadata.create_all(engine)


def dispose_engines() -> None:
    """Dispose and forget every cached Engine."""
    for engine in _ENGINES.values():
        engine.dispose()
    _ENGINES.clear()
