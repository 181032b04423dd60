import logging
import os
import sys
import tempfile

# Ensure repo root is on sys.path so `workscope` and `tests` imports resolve when
# running the script directly.
ROOT = os.path.dirname(os.path.dirname(__file__))
sys.path.insert(0, ROOT)

from sqlalchemy import create_engine

from tests.support.hr import HRBase, SalesPerson
from tests.support.orders import Customer, Order, OrdersBase
from workscope.db.data_sources import DataSourceRegistry
from workscope.repository import Repository
from workscope.unit_of_work import UnitOfWorkFactory


logging.basicConfig(level=logging.DEBUG)


def main():
    tmp = tempfile.mkdtemp(prefix="workscope-")
    data_sources = DataSourceRegistry()
    data_sources.register("orders", create_engine(f"sqlite:///{tmp}/orders.db"), OrdersBase)
    data_sources.register("hr", create_engine(f"sqlite:///{tmp}/hr.db"), HRBase)
    data_sources.create_all()
    unit_of_work = UnitOfWorkFactory(data_sources)

    customer = Customer(first_name="Local", last_name="Smoke", state="PA")
    with unit_of_work.scope() as scope:
        Repository(Customer, unit_of_work).save(customer)
        Repository(Order, unit_of_work).save(Order(customer=customer))
        Repository(SalesPerson, unit_of_work).save(SalesPerson(first_name="Sam", last_name="Seller"))
        scope.commit()

    with unit_of_work.scope():
        saved = Repository(Customer, unit_of_work).with_(Customer.orders).get(customer.customer_id)

    print(f"customer {saved.customer_id} has {len(saved.orders)} order(s); data in {tmp}")


if __name__ == "__main__":
    main()
