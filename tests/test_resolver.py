"""Tests for fkseed.resolver and fkseed.cache."""

from __future__ import annotations

import random

import pytest

from fakes import FakeCatalog, col, make_pg_error
from fkseed.cache import InsertedIdCache
from fkseed.graph import DependencyGraphBuilder
from fkseed.models import DependencyEdge, DependencyNode, TableRef
from fkseed.resolver import (
    CatalogConstraintStrategy,
    ColumnMappingTable,
    ForeignKeyResolver,
    MappedNameStrategy,
    SuffixStrippedStrategy,
    TreeEdgeStrategy,
)


def _node(from_table, from_column, to_table, children=(), depth=0):
    edge = DependencyEdge("public", from_table, from_column, "public", to_table, "id")
    return DependencyNode(edge=edge, depth=depth, children=list(children))


@pytest.fixture
def cache() -> InsertedIdCache:
    return InsertedIdCache(rng=random.Random(3))


class TestInsertedIdCache:
    def test_miss_before_any_insert(self, cache):
        assert not cache.has("public.customers")
        assert cache.pick("public.customers") is None
        assert "public.customers" not in cache

    def test_pick_draws_from_cached_ids(self, cache):
        for value in (10, 11, 12):
            cache.add("public.customers", value)

        picks = {cache.pick("public.customers") for _ in range(50)}

        assert picks <= {10, 11, 12}
        assert len(picks) > 1
        assert cache.stats() == {"public.customers": 3}

    def test_clear_reports_table_count(self, cache):
        cache.add("public.a", 1)
        cache.add("public.b", 2)

        assert cache.clear() == 2
        assert len(cache) == 0


class TestColumnMappingTable:
    def test_seeded_with_known_exceptions(self):
        mappings = ColumnMappingTable()
        assert mappings.get("TipoCaracteristicaId") == "CaracteristicaId"

    def test_extensible_at_runtime(self):
        mappings = ColumnMappingTable({"BuyerId": "CustomerId"})
        mappings.add("SellerId", "CustomerId")

        assert mappings.get("BuyerId") == "CustomerId"
        assert "SellerId" in mappings
        assert mappings.get("unknown") is None


class TestStrategies:
    def test_tree_strategy_exact_match(self):
        subtree = [_node("orders", "customer_id", "customers")]
        edge = TreeEdgeStrategy().locate("customer_id", "public", "orders", subtree)
        assert edge.to_table == "customers"

    def test_tree_strategy_searches_descendants(self):
        nested = _node("products", "supplier_id", "suppliers", depth=1)
        subtree = [_node("orders", "product_id", "products", children=[nested])]

        edge = TreeEdgeStrategy().locate("supplier_id", "public", "products", subtree)

        assert edge.to_table == "suppliers"

    def test_mapped_name_strategy(self):
        subtree = [_node("pessoa", "CaracteristicaId", "caracteristica")]
        strategy = MappedNameStrategy(ColumnMappingTable())

        edge = strategy.locate("EstadoCivilCaracteristicaId", "public", "pessoa", subtree)

        assert edge.to_table == "caracteristica"
        assert strategy.locate("Unmapped", "public", "pessoa", subtree) is None

    def test_suffix_candidates(self):
        assert SuffixStrippedStrategy.candidates("CustomerId") == ["Customer", "Customer"]
        assert SuffixStrippedStrategy.candidates("customer_id") == ["customer", "customer_"]
        assert SuffixStrippedStrategy.candidates("ab_id") == ["ab_"]
        assert SuffixStrippedStrategy.candidates("name") == []

    def test_suffix_strategy_matches_stripped_column(self):
        subtree = [_node("orders", "Customer", "customers")]
        edge = SuffixStrippedStrategy().locate("CustomerId", "public", "orders", subtree)
        assert edge.to_table == "customers"

    def test_catalog_strategy(self, shop_catalog):
        strategy = CatalogConstraintStrategy(shop_catalog)

        assert strategy.locate("customer_id", "public", "orders", []).to_table == "customers"
        assert strategy.locate("quantity", "public", "orders", []) is None

    def test_catalog_strategy_error_is_a_miss(self, shop_catalog, monkeypatch):
        def broken(*args):
            raise make_pg_error(None, "server closed the connection")

        monkeypatch.setattr(shop_catalog, "find_fk_reference", broken)
        assert CatalogConstraintStrategy(shop_catalog).locate("customer_id", "public", "orders", []) is None


class TestForeignKeyResolver:
    def test_cache_hit_skips_database(self, shop_catalog, cache):
        cache.add("public.customers", 41)
        subtree = DependencyGraphBuilder(shop_catalog).build(TableRef("public", "orders"))
        resolver = ForeignKeyResolver(shop_catalog, cache)

        for _ in range(5):
            assert resolver.resolve("customer_id", "public", "orders", subtree=subtree) == 41

        assert shop_catalog.random_id_calls == []

    def test_matched_node_falls_back_to_existing_row(self, shop_catalog, cache):
        row = shop_catalog.add_row("customers", name="Ann")
        node = _node("orders", "customer_id", "customers")

        value = ForeignKeyResolver(shop_catalog, cache).resolve("customer_id", "public", "orders", matched_node=node)

        assert value == row["id"]
        assert shop_catalog.random_id_calls == ["public.customers"]

    def test_empty_target_resolves_to_none(self, shop_catalog, cache):
        node = _node("orders", "customer_id", "customers")
        assert ForeignKeyResolver(shop_catalog, cache).resolve("customer_id", "public", "orders", matched_node=node) is None

    def test_tree_match_is_final_even_when_target_empty(self, shop_catalog, cache):
        subtree = DependencyGraphBuilder(shop_catalog).build(TableRef("public", "orders"))

        value = ForeignKeyResolver(shop_catalog, cache).resolve("customer_id", "public", "orders", subtree=subtree)

        assert value is None
        assert shop_catalog.find_fk_reference_calls == []

    def test_catalog_fallback_when_tree_has_no_edge(self, cache):
        # second FK to the same table shares the edge identity, so it is absent from the tree
        catalog = FakeCatalog()
        catalog.add_table("accounts", [col("name", "text")])
        catalog.add_table("transfers", [col("from_account_id", fk=True), col("to_account_id", fk=True)])
        catalog.add_fk("transfers", "from_account_id", "accounts")
        catalog.add_fk("transfers", "to_account_id", "accounts")
        cache.add("public.accounts", 5)
        subtree = DependencyGraphBuilder(catalog).build(TableRef("public", "transfers"))
        assert len(subtree) == 1

        value = ForeignKeyResolver(catalog, cache).resolve("to_account_id", "public", "transfers", subtree=subtree)

        assert value == 5
        assert catalog.find_fk_reference_calls == [("public", "transfers", "to_account_id")]

    def test_non_fk_column_resolves_to_none(self, shop_catalog, cache):
        assert ForeignKeyResolver(shop_catalog, cache).resolve("quantity", "public", "orders") is None

    def test_strategy_order_is_respected(self, shop_catalog, cache):
        calls = []

        class Recording:
            def __init__(self, name, result=None):
                self.name = name
                self.result = result

            def locate(self, column, schema, table, subtree):
                calls.append(self.name)
                return self.result

        edge = DependencyEdge("public", "orders", "customer_id", "public", "customers", "id")
        cache.add("public.customers", 9)
        resolver = ForeignKeyResolver(
            shop_catalog, cache, strategies=[Recording("first"), Recording("second", edge), Recording("third")]
        )

        assert resolver.resolve("customer_id", "public", "orders") == 9
        assert calls == ["first", "second"]

    def test_repeat_resolution_stays_within_candidate_set(self, shop_catalog, cache):
        for value in (1, 2, 3):
            cache.add("public.customers", value)
        subtree = DependencyGraphBuilder(shop_catalog).build(TableRef("public", "orders"))
        resolver = ForeignKeyResolver(shop_catalog, cache)

        first = resolver.resolve("customer_id", "public", "orders", subtree=subtree)
        second = resolver.resolve("customer_id", "public", "orders", subtree=subtree)

        assert {first, second} <= {1, 2, 3}
        assert cache.get("public.customers") == [1, 2, 3]
