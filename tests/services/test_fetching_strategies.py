import threading

import pytest

from tests.support.orders import Customer, Order
from workscope.services.fetching_strategies import PlanFetchingStrategy, StrategyRegistry


class Reporting:
    pass


class Billing:
    pass


class RecordingStrategy:
    def __init__(self, name, calls):
        self.name = name
        self.calls = calls

    def define(self, repository):
        self.calls.append(self.name)


def test_resolve_returns_strategies_in_registration_order():
    registry = StrategyRegistry()
    calls = []
    a = registry.register(Customer, Reporting, RecordingStrategy("a", calls))
    b = registry.register(Customer, Reporting, RecordingStrategy("b", calls))
    registry.register(Customer, Billing, RecordingStrategy("c", calls))

    assert registry.resolve(Customer, Reporting) == [a, b]
    assert registry.resolve(Order, Reporting) == []


def test_resolve_returns_a_copy():
    registry = StrategyRegistry()
    registry.register(Customer, Reporting, RecordingStrategy("a", []))
    resolved = registry.resolve(Customer, Reporting)
    resolved.clear()
    assert len(registry.resolve(Customer, Reporting)) == 1


def test_decorator_registers_instance():
    registry = StrategyRegistry()

    @registry.strategy(Customer, Billing)
    class WithOrders:
        def define(self, repository):
            repository.with_(Customer.orders)

    strategies = registry.resolve(Customer, Billing)
    assert len(strategies) == 1
    assert isinstance(strategies[0], WithOrders)


def test_register_rejects_objects_without_define():
    with pytest.raises(TypeError):
        StrategyRegistry().register(Customer, Billing, object())


def test_clear():
    registry = StrategyRegistry()
    registry.register(Customer, Billing, RecordingStrategy("a", []))
    registry.clear()
    assert registry.resolve(Customer, Billing) == []


def test_plan_strategy_calls_eagerly():
    seen = []

    class FakeRepository:
        def eagerly(self, build):
            seen.append(build)

    build = lambda f: f.fetch(Customer.orders)
    PlanFetchingStrategy(build).define(FakeRepository())
    assert seen == [build]


def test_concurrent_registration():
    registry = StrategyRegistry()

    def worker():
        for _ in range(50):
            registry.register(Customer, Reporting, PlanFetchingStrategy(lambda f: f))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(registry.resolve(Customer, Reporting)) == 200
