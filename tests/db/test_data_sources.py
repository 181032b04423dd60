import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from tests.support.hr import HRBase, SalesPerson
from tests.support.orders import Customer, Order, OrdersBase
from workscope.db.data_sources import DataSourceRegistry, load_data_sources
from workscope.db.engine import dispose_engines, make_engine
from workscope.exceptions import UnknownDataSourceError


def test_resolve_walks_declarative_base(data_sources):
    assert data_sources.resolve(Customer).name == "orders"
    assert data_sources.resolve(Order).name == "orders"
    assert data_sources.resolve(SalesPerson).name == "hr"


def test_explicit_model_registration_overrides_base(engines):
    registry = DataSourceRegistry()
    registry.register("orders", engines["orders"], OrdersBase)
    registry.register("archive", engines["hr"], Order)
    assert registry.resolve(Order).name == "archive"
    assert registry.resolve(Customer).name == "orders"


def test_unknown_entity_type_raises():
    with pytest.raises(UnknownDataSourceError):
        DataSourceRegistry().resolve(Customer)


def test_default_data_source_is_fallback(engines):
    registry = DataSourceRegistry()
    registry.register("default", engines["orders"])
    assert registry.resolve(Customer).name == "default"


def test_sessions_do_not_expire_on_commit(engines):
    registry = DataSourceRegistry()
    source = registry.register("orders", sessionmaker(bind=engines["orders"]), OrdersBase)
    session = source.open_session()
    try:
        assert session.expire_on_commit is False
    finally:
        session.close()


def test_create_all_creates_tables(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
    registry = DataSourceRegistry()
    registry.register("hr", engine, HRBase)
    registry.create_all()
    assert "sales_persons" in inspect(engine).get_table_names()
    engine.dispose()


def test_load_data_sources_from_yaml(tmp_path):
    orders_url = f"sqlite:///{tmp_path / 'orders.db'}"
    hr_url = f"sqlite:///{tmp_path / 'hr.db'}"
    path = tmp_path / "data_sources.yml"
    path.write_text(
        "data_sources:\n"
        "  orders:\n"
        f"    url: {orders_url}\n"
        "    models: ['tests.support.orders:OrdersBase']\n"
        "  hr:\n"
        f"    url: {hr_url}\n"
        "    models: tests.support.hr.HRBase\n"
        "  broken:\n"
        "    models: []\n"
    )
    try:
        registry = load_data_sources(str(path))
        assert sorted(registry.names()) == ["hr", "orders"]
        assert registry.resolve(Customer).name == "orders"
        assert registry.resolve(SalesPerson).name == "hr"
        assert registry.get("orders").session_factory.kw["bind"] is make_engine(orders_url)
    finally:
        dispose_engines()


def test_load_data_sources_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data_sources(str(tmp_path / "nope.yml"))


def test_make_engine_caches_per_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'cached.db'}"
    try:
        assert make_engine(url) is make_engine(url)
        assert make_engine(url) is not make_engine(f"sqlite:///{tmp_path / 'other.db'}")
    finally:
        dispose_engines()


def test_make_engine_requires_url(monkeypatch):
    monkeypatch.delenv("WORKSCOPE_DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        make_engine()
