from .engine import make_engine, init_orm, dispose_engines
from .data_sources import DataSource, DataSourceRegistry, load_data_sources

__all__ = [
    "make_engine",
    "init_orm",
    "dispose_engines",
    "DataSource",
    "DataSourceRegistry",
    "load_data_sources",
]
