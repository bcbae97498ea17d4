"""
Test suite for collection-level dependency ordering.
"""

import pytest

from fleetbind.binding import (
    CyclicDependencyError,
    DeclarationError,
    DeclarationStore,
    Reference,
    UnknownCollectionError,
    build_fleet_store,
    resolve_order,
    resolve_tiers,
)


class TestResolveTiers:
    """Test topological tiering of collections."""

    def test_addresses_before_instances(self):
        tiers = resolve_tiers(["instances", "addresses"], [("instances", "addresses")])
        assert tiers == [["addresses"], ["instances"]]

    def test_independent_collections_share_a_tier(self):
        tiers = resolve_tiers(["b", "a", "c"], [])
        assert tiers == [["a", "b", "c"]]

    def test_diamond(self):
        edges = [("app", "net"), ("db", "net"), ("lb", "app"), ("lb", "db")]
        tiers = resolve_tiers(["lb", "app", "db", "net"], edges)
        assert tiers == [["net"], ["app", "db"], ["lb"]]

    def test_duplicate_edges_counted_once(self):
        edges = [("instances", "addresses"), ("instances", "addresses")]
        assert resolve_order(["instances", "addresses"], edges) == ["addresses", "instances"]

    def test_cycle_detected(self):
        with pytest.raises(CyclicDependencyError) as excinfo:
            resolve_tiers(["a", "b", "c"], [("a", "b"), ("b", "a"), ("c", "a")])
        assert "a" in excinfo.value.collections
        assert "b" in excinfo.value.collections

    def test_self_reference_is_a_cycle(self):
        with pytest.raises(CyclicDependencyError):
            resolve_tiers(["a"], [("a", "a")])

    def test_unknown_collection(self):
        with pytest.raises(UnknownCollectionError, match="ghost"):
            resolve_tiers(["instances"], [("instances", "ghost")])


class TestDeclarationStore:
    """Test collection declaration and reference edges."""

    def test_fleet_store_edges(self, instances, addresses):
        store = build_fleet_store(instances, addresses)
        assert store.edges() == [("instances", "addresses")]
        assert len(store.references_from("instances")) == 2
        assert store.references_from("addresses") == []

    def test_collection_declared_once(self):
        store = DeclarationStore()
        store.add_collection("a", {})
        with pytest.raises(DeclarationError, match="already declared"):
            store.add_collection("a", {})

    def test_reference_to_undeclared_collection(self):
        store = DeclarationStore()
        store.add_collection("a", {})
        with pytest.raises(DeclarationError, match="undeclared"):
            store.add_reference(Reference("a", "x", "b", "y"))

    def test_entries_are_read_only(self, instances, addresses):
        store = build_fleet_store(instances, addresses)
        with pytest.raises(TypeError):
            store.collection("instances")["host-09"] = {}
        with pytest.raises(TypeError):
            store.collection("instances")["host-01"]["zone"] = "elsewhere"

    def test_store_keeps_declared_specs(self, instances, addresses):
        store = build_fleet_store(instances, addresses)
        assert store.specs("instances")["host-02"] is instances["host-02"]
        assert store.collection("instances")["host-02"]["machine_type"] == "e2-small"

    def test_invalid_key(self):
        store = DeclarationStore()
        with pytest.raises(DeclarationError, match="invalid key"):
            store.add_collection("a", {"": {}})

    def test_unknown_collection_lookup(self):
        with pytest.raises(DeclarationError, match="not declared"):
            DeclarationStore().collection("missing")
