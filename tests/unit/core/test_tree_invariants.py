"""
Tree invariant validation tests.

Each test either starts from a consistent store and checks it validates, or
corrupts one index behind the store's back and checks the matching
invariant catches it.
"""
import unittest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

import rustworkx as rx

from core.schemas import TreeNode
from core.tree_store import TreeStore
from core.tree_invariants import (
    InvariantSeverity,
    TreeInvariants,
    build_parent_graph,
    is_consistent,
    validate_store,
)


def build_store():
    return TreeStore([
        TreeNode(id=1, label="Root"),
        TreeNode(id=2, parent_id=1),
        TreeNode(id=3, parent_id=1),
        TreeNode(id=4, parent_id=2),
        TreeNode(id=5, label="Other root"),
    ])


class TestParentGraph(unittest.TestCase):
    """Tests for the rustworkx view of the store."""

    def test_one_edge_per_parent_link(self):
        graph, id_to_index = build_parent_graph(build_store())
        self.assertEqual(graph.num_nodes(), 5)
        self.assertEqual(graph.num_edges(), 3)
        self.assertTrue(graph.has_edge(id_to_index[1], id_to_index[2]))

    def test_descendants_match_store(self):
        store = build_store()
        graph, id_to_index = build_parent_graph(store)
        rx_descendants = {graph[i].id for i in rx.descendants(graph, id_to_index[1])}
        self.assertEqual(rx_descendants, {n.id for n in store.get_all_children(1)})

    def test_orphans_have_no_edge(self):
        store = TreeStore([TreeNode(id=1, parent_id=99)])
        graph, _ = build_parent_graph(store)
        self.assertEqual(graph.num_nodes(), 1)
        self.assertEqual(graph.num_edges(), 0)


class TestConsistentStores(unittest.TestCase):
    """Stores built and mutated through the API validate cleanly."""

    def test_empty_store_valid(self):
        report = validate_store(TreeStore())
        self.assertTrue(report.valid)
        self.assertEqual(report.violations, [])
        self.assertEqual(report.metrics["node_count"], 0)

    def test_sample_store_valid(self):
        report = build_store().validate()
        self.assertTrue(report.valid)
        self.assertEqual(report.metrics["root_count"], 2)
        self.assertEqual(report.metrics["edge_count"], 3)
        self.assertEqual(report.metrics["weakly_connected_components"], 2)

    def test_orphan_is_warning_not_error(self):
        store = TreeStore([TreeNode(id=1), TreeNode(id=2, parent_id=99)])
        report = validate_store(store)
        self.assertTrue(report.valid)
        self.assertEqual(len(report.warnings), 1)
        self.assertEqual(report.warnings[0].invariant, "parent_references")
        self.assertEqual(report.warnings[0].nodes_involved, [2])


class TestCorruptedIndexes(unittest.TestCase):
    """Index drift introduced behind the store's back is detected."""

    def test_wrong_id_key(self):
        store = build_store()
        store._node_map[1] = store._node_map[5]
        valid, violation = TreeInvariants.validate_id_index(store)
        self.assertFalse(valid)
        self.assertEqual(violation.severity, InvariantSeverity.ERROR)
        self.assertEqual(violation.nodes_involved, [1])

    def test_ghost_in_item_list(self):
        store = build_store()
        store._items.append(TreeNode(id=42))
        valid, violation = TreeInvariants.validate_item_list(store)
        self.assertFalse(valid)
        self.assertIn(42, violation.nodes_involved)

    def test_omission_from_item_list(self):
        store = build_store()
        store._items.pop()
        valid, violation = TreeInvariants.validate_item_list(store)
        self.assertFalse(valid)
        self.assertIn(5, violation.nodes_involved)

    def test_parent_changed_without_reindex(self):
        store = build_store()
        store.get_item(4).parent_id = 3
        valid, violation = TreeInvariants.validate_children_index(store)
        self.assertFalse(valid)
        self.assertIn(4, violation.nodes_involved)
        self.assertFalse(is_consistent(store))

    def test_duplicate_child_entry(self):
        store = build_store()
        store._children_map[1].append(store.get_item(2))
        valid, _ = TreeInvariants.validate_children_index(store)
        self.assertFalse(valid)

    def test_index_repaired_with_remove_item_from_children(self):
        store = build_store()
        store._children_map[1].append(store.get_item(2))
        store.remove_item_from_children(1, 2)
        self.assertTrue(is_consistent(store))

    def test_cycle_detected(self):
        store = build_store()
        # Bypass update_item's guard: 1 under 4, where 4 is below 1
        store.get_item(1).parent_id = 4
        store._children_map.setdefault(4, []).append(store.get_item(1))
        valid, violation = TreeInvariants.validate_acyclicity(store)
        self.assertFalse(valid)
        self.assertEqual(set(violation.nodes_involved), {1, 2, 4})

    def test_self_loop_detected(self):
        store = TreeStore([TreeNode(id=1, parent_id=1)])
        valid, violation = TreeInvariants.validate_acyclicity(store)
        self.assertFalse(valid)
        self.assertEqual(violation.nodes_involved, [1])


if __name__ == "__main__":
    unittest.main()
