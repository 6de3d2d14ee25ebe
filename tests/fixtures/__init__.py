"""Test fixtures for pytest.

This module re-exports the tree test models and builders for easier importing.
"""

from .tree_models import (
    Category,
    Folder,
    Page,
    add_node,
    stored_ancestry,
    stored_positions,
)

__all__ = [
    "Category",
    "Folder",
    "Page",
    "add_node",
    "stored_ancestry",
    "stored_positions",
]
