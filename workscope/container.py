"""Dependency injection container for WorkScope."""
from typing import Optional

from dependency_injector import containers, providers

from workscope import config as env
from workscope.db.data_sources import DEFAULT_DATA_SOURCE, DataSourceRegistry, load_data_sources
from workscope.repository import Repository
from workscope.services.fetching_strategies import StrategyRegistry
from workscope.unit_of_work import UnitOfWorkFactory


# Environment variables used by the container (read via `workscope.config` helpers).
#
# WORKSCOPE_DATABASE_URL (str | optional)
#   Registered as the "default" data source; entity types without an explicit
#   data source resolve to it.
#
# WORKSCOPE_DATA_SOURCES_FILE (str path | optional)
#   YAML file with named data sources and the models stored in each.
#
# WORKSCOPE_DETACHED_NAVIGATION (str, default: "raise")
#   "raise": unloaded navigations raise once their scope has closed.
#   "empty": unloaded navigations become None / [] when the scope closes.
#
# WORKSCOPE_DEFAULT_LOADER (str, default: "selectin")
#   Loader used for eager fetch paths: "selectin", "joined" or "subquery".
#
# WORKSCOPE_ECHO_SQL (bool, default: false)
#   Passed to SQLAlchemy's create_engine(echo=...).
ENV = {
    "WORKSCOPE_DATABASE_URL": env.database_url(),
    "WORKSCOPE_DATA_SOURCES_FILE": env.data_sources_file(),
    "WORKSCOPE_DETACHED_NAVIGATION": env.detached_navigation(),
    "WORKSCOPE_DEFAULT_LOADER": env.default_loader(),
    "WORKSCOPE_ECHO_SQL": env.echo_sql(),
}


def build_data_sources(database_url: Optional[str] = None, data_sources_file: Optional[str] = None) -> DataSourceRegistry:
    registry = DataSourceRegistry()
    if data_sources_file:
        load_data_sources(data_sources_file, registry)
    if database_url:
        registry.register(DEFAULT_DATA_SOURCE, database_url)
    return registry


class Container(containers.DeclarativeContainer):
    """Dependency injection container for WorkScope."""

    config = providers.Configuration(default=ENV)

    data_sources = providers.Singleton(
        build_data_sources,
        database_url=config.WORKSCOPE_DATABASE_URL,
        data_sources_file=config.WORKSCOPE_DATA_SOURCES_FILE,
    )

    strategy_registry = providers.Singleton(
        StrategyRegistry
    )

    unit_of_work = providers.Singleton(
        UnitOfWorkFactory,
        data_sources=data_sources,
        detached_navigation=config.WORKSCOPE_DETACHED_NAVIGATION,
    )

    # Entity type is supplied at call time: container.repository(Customer)
    repository = providers.Factory(
        Repository,
        unit_of_work=unit_of_work,
        strategies=strategy_registry,
    )
