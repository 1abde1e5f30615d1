from __future__ import annotations

import threading
from unittest.mock import patch

from delivery_backend.config import DeliveryConfig
from delivery_backend.search.cache import get_cache_stats
from delivery_backend.search.index import search
from delivery_backend.store import records
from delivery_backend.store.models import Restaurant


def test_cache_miss_then_hit(world):
    first = search({"city": "Istanbul"})
    assert get_cache_stats()["misses"] == 1

    second = search({"city": "Istanbul"})
    stats = get_cache_stats()
    assert stats["hits"] == 1
    assert stats["hit_rate"] == 50.0
    assert first == second


def test_different_queries_miss(world):
    search({"city": "Istanbul"})
    search({"cuisine_type": "Italian"})
    stats = get_cache_stats()
    assert stats["misses"] == 2
    assert stats["hits"] == 0


def test_store_write_invalidates(world):
    before = search({"city": "Istanbul"})
    records.save("restaurants", Restaurant(name="Meze Bar", city="Istanbul"))
    after = search({"city": "Istanbul"})

    assert len(after) == len(before) + 1
    assert get_cache_stats()["hits"] == 0


def test_cached_results_are_copies(world):
    search({"city": "Istanbul"})[0].name = "Mutated"
    assert search({"city": "Istanbul"})[0].name == "Luigi's Pizzeria"


def test_expired_entries_miss(world):
    config = DeliveryConfig(search_cache_ttl=300)
    with patch("delivery_backend.search.cache.time.time", return_value=1_000.0):
        search({"city": "Istanbul"}, config=config)
    with patch("delivery_backend.search.cache.time.time", return_value=1_400.0):
        search({"city": "Istanbul"}, config=config)
    stats = get_cache_stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 2


def test_disabled_cache_is_bypassed(world):
    config = DeliveryConfig(search_cache_enabled=False)
    search({"city": "Istanbul"}, config=config)
    search({"city": "Istanbul"}, config=config)
    assert get_cache_stats() == {"size": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}


def test_search_waits_for_open_write(world):
    found = []
    worker = threading.Thread(target=lambda: found.extend(search({"name": "Luigi"})))

    with records.transaction():
        records.add_rating_total("RESTAURANT", world.pizzeria.id, 4)
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()

    worker.join(timeout=5)
    assert found[0].average_rating == 4.0
    assert search({"name": "Luigi"})[0].average_rating == 4.0
