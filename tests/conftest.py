"""
Pytest configuration and shared fixtures for the Canopy test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def make_sample_nodes():
    """
    Two trees:

        1 Root 1                2 Root 2
        ├── 3 Child 1.1         └── 8 Child 2.1
        │   ├── 5 Child 1.1.1
        │   └── 6 Child 1.1.2
        └── 4 Child 1.2
            └── 7 Child 1.2.1
    """
    from core.schemas import TreeNode

    return [
        TreeNode(id=1, parent_id=None, label="Root 1"),
        TreeNode(id=2, parent_id=None, label="Root 2"),
        TreeNode(id=3, parent_id=1, label="Child 1.1"),
        TreeNode(id=4, parent_id=1, label="Child 1.2"),
        TreeNode(id=5, parent_id=3, label="Child 1.1.1"),
        TreeNode(id=6, parent_id=3, label="Child 1.1.2"),
        TreeNode(id=7, parent_id=4, label="Child 1.2.1"),
        TreeNode(id=8, parent_id=2, label="Child 2.1"),
    ]


@pytest.fixture
def sample_nodes():
    """A fresh copy of the sample node list."""
    return make_sample_nodes()


@pytest.fixture
def sample_store(sample_nodes):
    """A store built from the sample nodes."""
    from core.tree_store import TreeStore
    return TreeStore(sample_nodes)


@pytest.fixture
def fresh_store():
    """An empty store."""
    from core.tree_store import TreeStore
    return TreeStore()


@pytest.fixture
def strict_store(sample_nodes):
    """The sample store in strict mode (rejections raise)."""
    from core.tree_store import TreeStore
    from infrastructure.config import StoreConfig
    return TreeStore(sample_nodes, config=StoreConfig(strict=True))
