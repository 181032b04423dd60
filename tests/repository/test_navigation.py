import pytest
from sqlalchemy.orm.exc import DetachedInstanceError

from tests.support.orders import Customer, Order
from workscope.exceptions import DetachedAccessError
from workscope.repository import Repository, navigation
from workscope.unit_of_work import UnitOfWorkFactory


def test_unknown_navigation_name_raises():
    with pytest.raises(AttributeError):
        navigation.is_loaded(Customer(first_name="a", last_name="b"), "last_name")


def test_transient_entity_navigation_loads_without_session():
    customer = Customer(first_name="a", last_name="b")
    assert navigation.load(customer, "orders") == []


def test_load_after_scope_close_raises(unit_of_work, orders_data):
    customer = orders_data.batch(lambda x: x.create_customer())

    with unit_of_work.scope():
        saved = Repository(Customer, unit_of_work).get(customer.customer_id)

    assert not navigation.is_loaded(saved, "orders")
    with pytest.raises(DetachedAccessError) as excinfo:
        navigation.load(saved, "orders")
    assert excinfo.value.name == "orders"


def test_loaded_navigation_is_available_after_scope_close(unit_of_work, orders_data):
    order = orders_data.batch(lambda x: x.create_order_for_customer(x.create_customer()))

    with unit_of_work.scope():
        saved = Repository(Order, unit_of_work).get(order.order_id)
        navigation.load(saved, "customer")

    assert navigation.is_loaded(saved, "customer")
    assert navigation.load(saved, "customer").customer_id == order.customer_id


def test_detached_errors_share_sqlalchemy_base_class(unit_of_work, orders_data):
    customer = orders_data.batch(lambda x: x.create_customer())

    with unit_of_work.scope():
        saved = Repository(Customer, unit_of_work).get(customer.customer_id)

    with pytest.raises(DetachedInstanceError):
        saved.orders
    with pytest.raises(DetachedInstanceError):
        navigation.load(saved, "orders")


def test_emptied_navigation_loads_again_after_attach(data_sources, orders_data):
    unit_of_work = UnitOfWorkFactory(data_sources, detached_navigation="empty")
    customer = orders_data.batch(lambda x: x.create_customer())

    with unit_of_work.scope():
        saved = Repository(Customer, unit_of_work).get(customer.customer_id)
    assert saved.orders == []

    orders_data.batch(lambda x: x.session.add(Order(customer_id=customer.customer_id)))

    with unit_of_work.scope():
        Repository(Customer, unit_of_work).attach(saved)
        assert not navigation.is_loaded(saved, "orders")
        assert len(navigation.load(saved, "orders")) == 1


def test_emptied_navigation_loads_again_after_save(data_sources, orders_data):
    unit_of_work = UnitOfWorkFactory(data_sources, detached_navigation="empty")
    customer = orders_data.batch(lambda x: x.create_customer())

    with unit_of_work.scope():
        saved = Repository(Customer, unit_of_work).get(customer.customer_id)

    orders_data.batch(lambda x: x.session.add(Order(customer_id=customer.customer_id)))

    with unit_of_work.scope() as scope:
        saved.last_name = "Changed"
        Repository(Customer, unit_of_work).save(saved)
        assert len(saved.orders) == 1
        scope.commit()
