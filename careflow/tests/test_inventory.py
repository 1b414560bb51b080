import pytest

from careflow.models import Role
from careflow.services import inventory
from careflow.tests import builders

pytestmark = pytest.mark.django_db


def test_agents_need_every_medication_and_are_ranked_by_units():
    a, b = builders.make_medication(), builders.make_medication()
    small = builders.make_user(Role.PHARMACY)
    big = builders.make_user(Role.PHARMACY)
    partial = builders.make_user(Role.PHARMACY)
    builders.stock(small, a, 1)
    builders.stock(small, b, 1)
    builders.stock(big, a, 20)
    builders.stock(big, b, 5)
    builders.stock(partial, a, 100)

    assert inventory.agents_holding_stock([a.id, b.id]) == [big.id, small.id]
    assert inventory.agents_holding_stock([a.id]) == [partial.id, big.id, small.id]
    assert inventory.agent_holds_stock(small.id, [a.id, b.id])
    assert not inventory.agent_holds_stock(partial.id, [a.id, b.id])


def test_ties_break_on_agent_id():
    med = builders.make_medication()
    first = builders.make_user(Role.PHARMACY)
    second = builders.make_user(Role.PHARMACY)
    builders.stock(second, med, 3)
    builders.stock(first, med, 3)
    assert inventory.agents_holding_stock([med.id]) == [first.id, second.id]


def test_zero_stock_and_inactive_agents_do_not_count():
    med = builders.make_medication()
    empty = builders.make_user(Role.PHARMACY)
    closed = builders.make_user(Role.PHARMACY, is_active=False)
    builders.stock(empty, med, 0)
    builders.stock(closed, med, 9)
    assert inventory.agents_holding_stock([med.id]) == []


def test_non_pharmacy_stock_is_ignored():
    med = builders.make_medication()
    builders.stock(builders.make_user(Role.DOCTOR), med, 9)
    assert inventory.agents_holding_stock([med.id]) == []


def test_empty_request():
    assert inventory.agents_holding_stock([]) == []
    assert not inventory.agent_holds_stock(1, [])


def test_stock_levels_fill_missing_with_zero():
    a, b = builders.make_medication(), builders.make_medication()
    agent = builders.make_user(Role.PHARMACY)
    builders.stock(agent, a, 7)
    assert inventory.stock_levels(agent.id, [a.id, b.id]) == {a.id: 7, b.id: 0}
