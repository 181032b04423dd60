"""Seeds test databases through a plain SQLAlchemy session, outside any unit of work."""
import uuid
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from tests.support.hr import SalesPerson
from tests.support.orders import Customer, Order, OrderItem, Product


class DataActions:
    def __init__(self, session):
        self.session = session

    def create_customer(self, state: str = "PA") -> Customer:
        customer = Customer(
            first_name="John",
            last_name=f"Doe-{uuid.uuid4().hex[:6]}",
            street_address1="123 Main St",
            city="Sunset City",
            state=state,
            zip_code="12345",
        )
        self.session.add(customer)
        self.session.flush()
        return customer

    def create_customers_in_state(self, state: str, count: int) -> List[Customer]:
        return [self.create_customer(state=state) for _ in range(count)]

    def create_order_for_customer(self, customer: Customer) -> Order:
        order = Order(customer=customer)
        self.session.add(order)
        self.session.flush()
        return order

    def create_orders_for_customers(self, customers: List[Customer]) -> List[Order]:
        return [self.create_order_for_customer(c) for c in customers]

    def create_products(self, count: int) -> List[Product]:
        products = [Product(name=f"Product {i}", price=10 + i) for i in range(count)]
        self.session.add_all(products)
        self.session.flush()
        return products

    def create_order_for_products(self, products: List[Product]) -> Order:
        order = Order()
        self.session.add(order)
        for product in products:
            self.session.add(OrderItem(order=order, product=product, quantity=1))
        self.session.flush()
        return order

    def get_customer_by_id(self, customer_id: int) -> Optional[Customer]:
        return self.session.execute(select(Customer).where(Customer.customer_id == customer_id)).scalars().first()

    def create_sales_person(self) -> SalesPerson:
        person = SalesPerson(first_name="Jane", last_name="Seller", sales_quota=1000)
        self.session.add(person)
        self.session.flush()
        return person

    def get_sales_person(self, person_id: int) -> Optional[SalesPerson]:
        return self.session.get(SalesPerson, person_id)


class TestData:
    """Runs seeding actions in one committed session per batch."""

    __test__ = False

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def batch(self, fn: Callable[[DataActions], object]):
        with self.session_factory(expire_on_commit=False) as session:
            result = fn(DataActions(session))
            session.commit()
            return result
