"""Data source registry: maps entity types to the database they live in."""
from __future__ import annotations

import importlib
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import yaml
from sqlalchemy import MetaData
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from workscope.db.engine import init_orm, make_engine
from workscope.exceptions import UnknownDataSourceError

logger = logging.getLogger(__name__)

Bind = Union[str, Engine, sessionmaker]

# Entity types with no registered data source fall back to this one, if present.
DEFAULT_DATA_SOURCE = "default"


@dataclass
class DataSource:
    name: str
    session_factory: sessionmaker
    metadata: List[MetaData] = field(default_factory=list)

    def open_session(self) -> Session:
        # Entities must stay readable once their scope has committed and closed.
        return self.session_factory(expire_on_commit=False)

    def create_all(self) -> None:
        engine = self.session_factory.kw.get("bind")
        if engine is None:
            raise RuntimeError(f"Data source '{self.name}' has no engine bound")
        for md in self.metadata:
            init_orm(engine, md)


class DataSourceRegistry:
    """Thread-safe registry of data sources keyed by name and by entity type.

    Models may be declarative bases or mapped classes; lookup walks the
    entity's MRO so registering a base covers every model built on it.
    Types matching nothing resolve to the ``default`` data source.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sources: Dict[str, DataSource] = {}
        self._by_type: Dict[type, str] = {}

    def register(self, name: str, bind: Bind, *models: type) -> DataSource:
        if isinstance(bind, sessionmaker):
            session_factory = bind
        else:
            engine = make_engine(bind) if isinstance(bind, str) else bind
            session_factory = sessionmaker(bind=engine)
        with self._lock:
            source = self._sources.get(name)
            if source is None:
                source = DataSource(name=name, session_factory=session_factory)
                self._sources[name] = source
            else:
                source.session_factory = session_factory
            for model in models:
                self._by_type[model] = name
                md = getattr(model, "metadata", None)
                if md is not None and md not in source.metadata:
                    source.metadata.append(md)
        logger.debug("Registered data source %s for %d model(s)", name, len(models))
        return source

    def get(self, name: str) -> Optional[DataSource]:
        with self._lock:
            return self._sources.get(name)

    def resolve(self, entity_type: type) -> DataSource:
        with self._lock:
            for klass in entity_type.__mro__:
                name = self._by_type.get(klass)
                if name is not None:
                    return self._sources[name]
            fallback = self._sources.get(DEFAULT_DATA_SOURCE)
            if fallback is not None:
                return fallback
        raise UnknownDataSourceError(entity_type)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._sources)

    def create_all(self) -> None:
        """Create the tables of every registered data source."""
        with self._lock:
            sources = list(self._sources.values())
        for source in sources:
            source.create_all()


def _import_model(path: str) -> type:
    module_name, _, attr = path.partition(":")
    if not attr:
        module_name, _, attr = path.rpartition(".")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def load_data_sources(path: str, registry: Optional[DataSourceRegistry] = None) -> DataSourceRegistry:
    """Load data source definitions from a YAML file into `registry`.

    Expected layout::

        data_sources:
          orders:
            url: sqlite:///orders.db
            models: ["myapp.orders:Base"]

    Entries missing a url are skipped with a warning.
    """
    registry = registry or DataSourceRegistry()
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Data sources file '{path}' not found")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    for name, entry in (data.get("data_sources") or {}).items():
        if not entry or not entry.get("url"):
            logger.warning("Skipping data source %s: missing url", name)
            continue
        models = entry.get("models") or []
        if isinstance(models, str):
            models = [models]
        engine = make_engine(entry["url"], echo=entry.get("echo"))
        registry.register(name, engine, *[_import_model(m) for m in models])
    return registry
