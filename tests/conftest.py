import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tests.support.hr import HRBase
from tests.support.orders import OrdersBase
from tests.support.seed import TestData
from workscope.db.data_sources import DataSourceRegistry
from workscope.services.fetching_strategies import StrategyRegistry
from workscope.unit_of_work import UnitOfWorkFactory


@pytest.fixture
def engines(tmp_path):
    # File-backed SQLite so every session of a data source sees the same database.
    orders_engine = create_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    hr_engine = create_engine(f"sqlite:///{tmp_path / 'hr.db'}")
    OrdersBase.metadata.create_all(orders_engine)
    HRBase.metadata.create_all(hr_engine)
    yield {"orders": orders_engine, "hr": hr_engine}
    orders_engine.dispose()
    hr_engine.dispose()


@pytest.fixture
def data_sources(engines):
    registry = DataSourceRegistry()
    registry.register("orders", engines["orders"], OrdersBase)
    registry.register("hr", engines["hr"], HRBase)
    return registry


@pytest.fixture
def unit_of_work(data_sources):
    return UnitOfWorkFactory(data_sources, detached_navigation="raise")


@pytest.fixture
def strategies():
    return StrategyRegistry()


@pytest.fixture
def orders_data(engines):
    return TestData(sessionmaker(bind=engines["orders"]))


@pytest.fixture
def hr_data(engines):
    return TestData(sessionmaker(bind=engines["hr"]))
