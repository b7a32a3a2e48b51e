"""Parent/child tree construction over id-keyed node maps.

Roles and permissions are both stored flat with a ``parent_id`` column.
These helpers turn such a map into nested views, bottom-up, without
mutating the nodes they read.
"""

import logging
from typing import Callable, FrozenSet, List, Mapping, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)


class TreeNode(Protocol):
    id: Optional[str]
    parent_id: Optional[str]


N = TypeVar("N", bound=TreeNode)
V = TypeVar("V")


def build_subtree(
    node: N,
    nodes: Mapping[str, N],
    make_view: Callable[[N, Optional[List[V]]], V],
    _ancestors: FrozenSet[str] = frozenset(),
) -> V:
    """
    Build the view of ``node`` with every descendant found in ``nodes``.

    Children are the entries whose ``parent_id`` equals ``node.id``, sorted
    by id. A child already on the path from the starting node is a cyclic
    reference: it is skipped and logged instead of recursed into.

    Args:
        node: Node to decorate.
        nodes: Every known node keyed by id.
        make_view: Builds a view from a node and its child views
            (None when there are no children).

    Returns:
        The view returned by ``make_view`` for ``node``.
    """
    ancestors = _ancestors | {node.id}
    children = sorted(
        (n for n in nodes.values() if n.parent_id is not None and n.parent_id == node.id),
        key=lambda n: n.id or "",
    )

    childs = []
    for child in children:
        if child.id in ancestors:
            logger.warning(
                f"Cyclic parent reference: {child.id} is an ancestor of {node.id}; branch cut"
            )
            continue
        childs.append(build_subtree(child, nodes, make_view, ancestors))

    return make_view(node, childs or None)


def root_nodes(nodes: Mapping[str, N]) -> List[N]:
    """Nodes without a parent, sorted by id."""
    return sorted(
        (n for n in nodes.values() if n.parent_id is None),
        key=lambda n: n.id or "",
    )
