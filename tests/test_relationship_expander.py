"""
Tests for foreign-key expansion of the candidate set.
"""

from unittest.mock import MagicMock

import pytest

from table_probe.discovery.relationship_expander import RelationshipExpander
from table_probe.errors import CatalogError
from table_probe.events import Outcome, RecordingObserver, Stage
from table_probe.models import ForeignKeyEdge, TableRef

ORDERS = TableRef("public", "orders")
CUSTOMERS = TableRef("public", "customers")
ORDER_ITEMS = TableRef("public", "order_items")
PRODUCTS = TableRef("public", "products")

EDGES = {
    ORDERS: [
        ForeignKeyEdge(ORDERS, CUSTOMERS, "customer_id", "id"),
        ForeignKeyEdge(ORDER_ITEMS, ORDERS, "order_id", "id"),
    ],
    CUSTOMERS: [ForeignKeyEdge(ORDERS, CUSTOMERS, "customer_id", "id")],
    ORDER_ITEMS: [
        ForeignKeyEdge(ORDER_ITEMS, ORDERS, "order_id", "id"),
        ForeignKeyEdge(ORDER_ITEMS, PRODUCTS, "product_id", "id"),
    ],
}


@pytest.fixture
def catalog():
    catalog = MagicMock()
    catalog.foreign_keys.side_effect = lambda table: list(EDGES.get(table, []))
    return catalog


class TestRelationshipExpander:
    """Tests for RelationshipExpander.expand."""

    def test_outgoing_and_incoming(self, catalog):
        related = RelationshipExpander(catalog).expand([ORDERS])
        assert related == {CUSTOMERS, ORDER_ITEMS}

    def test_single_parent(self, catalog):
        catalog.foreign_keys.side_effect = lambda table: [ForeignKeyEdge(ORDERS, CUSTOMERS)]
        assert RelationshipExpander(catalog).expand([ORDERS]) == {CUSTOMERS}

    @pytest.mark.parametrize("seed", [
        [ORDERS],
        [ORDERS, CUSTOMERS],
        [ORDERS, ORDER_ITEMS],
        [ORDERS, CUSTOMERS, ORDER_ITEMS, PRODUCTS],
    ])
    def test_never_returns_seed_tables(self, catalog, seed):
        related = RelationshipExpander(catalog).expand(seed)
        assert not related & set(seed)

    def test_union_across_seeds(self, catalog):
        related = RelationshipExpander(catalog).expand([CUSTOMERS, ORDER_ITEMS])
        assert related == {ORDERS, PRODUCTS}

    def test_failed_lookup_is_skipped(self, catalog):
        def lookup(table):
            if table == ORDERS:
                raise CatalogError("timeout")
            return list(EDGES.get(table, []))

        catalog.foreign_keys.side_effect = lookup
        observer = RecordingObserver()

        related = RelationshipExpander(catalog, observer=observer).expand([ORDERS, ORDER_ITEMS])

        assert related == {PRODUCTS}
        failed = [e for e in observer.for_stage(Stage.RELATIONSHIPS) if e.outcome == Outcome.FAILED]
        assert [e.table for e in failed] == [ORDERS]

    def test_edges_recorded(self, catalog):
        expander = RelationshipExpander(catalog, max_workers=1)
        expander.expand([ORDERS])
        assert expander.edges == EDGES[ORDERS]

    def test_empty_seed(self, catalog):
        assert RelationshipExpander(catalog).expand([]) == set()
        catalog.foreign_keys.assert_not_called()
