from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from delivery_backend.analytics.store import clear_events
from delivery_backend.orders.service import place_order
from delivery_backend.search.cache import clear_cache
from delivery_backend.search.data_store import clear_dataframe
from delivery_backend.store import records
from delivery_backend.store.models import Address, Courier, Customer, MenuItem, Restaurant


@pytest.fixture(autouse=True)
def _reset_state():
    records.clear_store()
    clear_cache()
    clear_dataframe()
    clear_events()
    yield


@pytest.fixture
def world() -> SimpleNamespace:
    """Two customers, two restaurants with menus, two couriers."""
    ada = records.save("customers", Customer(name="Ada"))
    bob = records.save("customers", Customer(name="Bob"))
    ada_home = records.save("addresses", Address(
        customer_id=ada.id, street="1 Main St", city="Istanbul", country="Turkey",
        latitude=Decimal("41.01"), longitude=Decimal("29.01"),
    ))
    bob_home = records.save("addresses", Address(customer_id=bob.id, city="Istanbul"))

    pizzeria = records.save("restaurants", Restaurant(
        name="Luigi's Pizzeria", cuisine_type="Italian",
        city="Istanbul", state="Marmara", country="Turkey",
        latitude=Decimal("41.0"), longitude=Decimal("29.0"), delivery_range_km=10,
    ))
    kebab = records.save("restaurants", Restaurant(
        name="Kebab House", cuisine_type="Turkish",
        city="Istanbul", state="Marmara", country="Turkey",
        latitude=Decimal("41.05"), longitude=Decimal("29.05"), delivery_range_km=3,
    ))

    margherita = records.save("menu_items", MenuItem(
        restaurant_id=pizzeria.id, name="Margherita Pizza", price=Decimal("12.99"),
    ))
    cola = records.save("menu_items", MenuItem(
        restaurant_id=pizzeria.id, name="Cola", price=Decimal("2.50"),
    ))
    adana = records.save("menu_items", MenuItem(
        restaurant_id=kebab.id, name="Adana Kebab", price=Decimal("9.00"),
    ))

    courier_a = records.save("couriers", Courier(name="Cem", vehicle_type="scooter"))
    courier_b = records.save("couriers", Courier(name="Deniz", vehicle_type="bike"))

    return SimpleNamespace(
        ada=ada, bob=bob, ada_home=ada_home, bob_home=bob_home,
        pizzeria=pizzeria, kebab=kebab,
        margherita=margherita, cola=cola, adana=adana,
        courier_a=courier_a, courier_b=courier_b,
    )


@pytest.fixture
def pizza_order(world):
    """Ada orders two Margherita pizzas from the pizzeria."""
    return place_order({
        "customer_id": world.ada.id,
        "restaurant_id": world.pizzeria.id,
        "address_id": world.ada_home.id,
        "items": [{"menu_item_id": world.margherita.id, "quantity": 2}],
    })
