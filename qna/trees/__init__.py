"""
Interview tree storage and views.
"""

from .node_store import (
    create_root,
    design_prompt_of,
    iter_preorder,
    find_by_id,
    find_parent,
    path_to_root,
    node_depth,
    nodes_at_depth,
    append_children,
    answered_history,
    branch_history,
    history_item,
    validate_tree,
    node_to_dict,
    node_from_dict,
    rebuild_context,
)
from .render import to_anytree, render_tree

__all__ = [
    "create_root",
    "design_prompt_of",
    "iter_preorder",
    "find_by_id",
    "find_parent",
    "path_to_root",
    "node_depth",
    "nodes_at_depth",
    "append_children",
    "answered_history",
    "branch_history",
    "history_item",
    "validate_tree",
    "node_to_dict",
    "node_from_dict",
    "rebuild_context",
    "to_anytree",
    "render_tree",
]
