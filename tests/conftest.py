from __future__ import annotations

import pytest
from faker import Faker

from fakes import FakeCatalog, col
from fkseed.config import SeederSettings


@pytest.fixture
def fake() -> Faker:
    f = Faker()
    f.seed_instance(1234)
    return f


@pytest.fixture
def settings() -> SeederSettings:
    return SeederSettings(throttle_seconds=0, seed=7)


@pytest.fixture
def shop_catalog() -> FakeCatalog:
    """orders -> customers, orders -> products; both parents empty."""
    catalog = FakeCatalog()
    catalog.add_table("customers", [col("name", "character varying", limit=40)])
    catalog.add_table("products", [col("title", "text"), col("price", "numeric", limit=8)])
    catalog.add_table(
        "orders",
        [
            col("customer_id", fk=True),
            col("product_id", fk=True),
            col("quantity", "smallint", limit=16),
        ],
    )
    catalog.add_fk("orders", "customer_id", "customers")
    catalog.add_fk("orders", "product_id", "products")
    return catalog


@pytest.fixture
def self_ref_catalog() -> FakeCatalog:
    catalog = FakeCatalog()
    catalog.add_table(
        "category",
        [col("parent_id", nullable=True, fk=True), col("label", "character varying", limit=30)],
    )
    catalog.add_fk("category", "parent_id", "category")
    return catalog


@pytest.fixture
def cyclic_catalog() -> FakeCatalog:
    """a -> b -> c -> a, with nullable FKs so every insert can succeed."""
    catalog = FakeCatalog()
    for name, ref in (("a", "b"), ("b", "c"), ("c", "a")):
        catalog.add_table(name, [col(f"{ref}_id", nullable=True, fk=True)])
        catalog.add_fk(name, f"{ref}_id", ref)
    return catalog
