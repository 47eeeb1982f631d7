"""
===============================================================================
PATCHED CONICS - Relative-Frame Nodes
===============================================================================
A relative-frame node is an immutable offset value plus an optional parent
node of the same type. The absolute value of a node is the sum of the offsets
along its parent chain. Spacecraft state is stored this way so that a craft
near a moon is expressed as a small offset from the moon, which itself is an
offset from its planet; no large absolute values are ever differenced.

Nodes are never mutated and a parent must exist before its child, so the
chain is acyclic and finite by construction.

Frame identity
--------------
Two nodes are equal when they have the same concrete type, bit-identical
offsets and equal parents. A frame recomputed for the same instant therefore
compares equal to the original, and "same relative tree" reduces to parent
equality.

Operations
----------
    consolidate_once   -- merge a node with its parent (one level shallower)
    synchronize        -- bring two nodes onto their deepest shared frame
    match_relative     -- re-express another node relative to this parent
    relative_to        -- re-express this node relative to a given anchor

Arithmetic and ordering are only defined between nodes of the same relative
tree; anything else raises ``ValueError``.
===============================================================================
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Agreement required between a re-expressed node and its source
_MATCH_RTOL = 1e-9
_MATCH_ATOL = 1e-6


class RelativeNode:
    """
    Base class for values expressed relative to a parent value.

    Subclasses provide the offset representation through three hooks:
    ``offset`` (the stored value), ``_zero_offset`` and ``_with_offset``
    (a constructor for a sibling of the same type). Offsets must support
    ``+`` and ``-`` and be comparable with ``np.array_equal``.
    """

    __slots__ = ('_parent',)

    def __init__(self, parent: Optional[RelativeNode] = None) -> None:
        if parent is not None and type(parent) is not type(self):
            raise ValueError(
                f"{type(self).__name__} cannot be relative to a "
                f"{type(parent).__name__}"
            )
        self._parent = parent

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @property
    def offset(self) -> Any:
        raise NotImplementedError

    def _zero_offset(self) -> Any:
        raise NotImplementedError

    def _with_offset(self, offset: Any, parent: Optional[RelativeNode]) -> RelativeNode:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Chain inspection
    # ------------------------------------------------------------------

    def has_parent(self) -> bool:
        return self._parent is not None

    @property
    def parent(self) -> RelativeNode:
        """
        Immediate parent node.

        Raises
        ------
        ValueError
            If this node is a root.
        """
        if self._parent is None:
            raise ValueError(f"{type(self).__name__} has no parent")
        return self._parent

    @property
    def parent_or_none(self) -> Optional[RelativeNode]:
        return self._parent

    def relative_tree(self) -> List[RelativeNode]:
        """Return ``[self, parent, grandparent, ...]``."""
        tree = []
        node: Optional[RelativeNode] = self
        while node is not None:
            tree.append(node)
            node = node._parent
        return tree

    @property
    def depth(self) -> int:
        """Number of ancestors above this node."""
        return len(self.relative_tree()) - 1

    def same_relative_tree(self, other: RelativeNode) -> bool:
        """True when both nodes hang off equal parents."""
        return _nodes_equal(self._parent, other._parent)

    def convergence_item(self, other: RelativeNode) -> Optional[RelativeNode]:
        """
        First node of ``other.relative_tree()`` that also appears in this
        node's tree, or None when the trees never meet.
        """
        own_tree = self.relative_tree()
        for node in other.relative_tree():
            if _contains(own_tree, node):
                return node
        return None

    def convergence_index(self, other: RelativeNode) -> int:
        """
        Index of :meth:`convergence_item` within this node's tree, or the
        tree length when there is no convergence.
        """
        own_tree = self.relative_tree()
        item = self.convergence_item(other)
        if item is None:
            return len(own_tree)
        return _index_of(own_tree, item)

    # ------------------------------------------------------------------
    # Flattening
    # ------------------------------------------------------------------

    def absolute_offset(self) -> Any:
        """Sum of offsets along the whole chain."""
        return self._offset_until(None)

    def absolute(self) -> RelativeNode:
        """Fully flattened copy of this node with no parent."""
        return self._with_offset(self.absolute_offset(), None)

    def consolidate_once(self) -> RelativeNode:
        """
        Merge this node with its immediate parent.

        The result is relative to the grandparent and has the same absolute
        value as this node.
        """
        parent = self.parent
        return self._with_offset(self.offset + parent.offset, parent._parent)

    def _offset_until(self, ancestor: Optional[RelativeNode]) -> Any:
        # Sum offsets from self up to, but excluding, ancestor
        total = self._zero_offset()
        node: Optional[RelativeNode] = self
        while node is not None:
            if ancestor is not None and _nodes_equal(node, ancestor):
                return total
            total = total + node.offset
            node = node._parent
        if ancestor is not None:
            raise ValueError(
                f"{type(self).__name__} chain does not contain the requested ancestor"
            )
        return total

    # ------------------------------------------------------------------
    # Frame alignment
    # ------------------------------------------------------------------

    def synchronize(self, other: RelativeNode) -> Tuple[RelativeNode, RelativeNode]:
        """
        Re-express both nodes relative to their deepest shared frame.

        Each side is consolidated one level at a time until both share the
        same parent. When the chains have no common ancestor both nodes are
        returned fully flattened.

        Returns
        -------
        (self_synced, other_synced)
        """
        common = _first_common(
            other._parent.relative_tree() if other._parent is not None else [],
            self._parent.relative_tree() if self._parent is not None else [],
        )
        if common is None:
            return self.absolute(), other.absolute()

        a, b = self, other
        while not _nodes_equal(a._parent, common):
            a = a.consolidate_once()
        while not _nodes_equal(b._parent, common):
            b = b.consolidate_once()
        return a, b

    def match_relative(self, other: RelativeNode) -> RelativeNode:
        """
        Re-express *other* so that it is relative to exactly this node's
        parent chain.
        """
        if self._parent is None:
            return other.absolute()
        return other.relative_to(self._parent)

    def relative_to(self, anchor: RelativeNode) -> RelativeNode:
        """
        Re-express this node with *anchor* as its parent.

        Only the offsets below the first frame shared by both chains are
        summed, so large common ancestors never enter the arithmetic.
        """
        if type(anchor) is not type(self):
            raise ValueError(
                f"Cannot express {type(self).__name__} relative to "
                f"{type(anchor).__name__}"
            )
        shared = _first_common(self.relative_tree(), anchor.relative_tree())
        offset = self._offset_until(shared) - anchor._offset_until(shared)
        result = self._with_offset(offset, anchor)

        expected = np.asarray(self.absolute_offset(), dtype=np.float64)
        actual = np.asarray(result.absolute_offset(), dtype=np.float64)
        if not np.allclose(actual, expected, rtol=_MATCH_RTOL, atol=_MATCH_ATOL):
            raise RuntimeError(
                f"{type(self).__name__} re-expression drifted: "
                f"expected {expected}, got {actual}"
            )
        return result

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _require_same_tree(self, other: RelativeNode, operation: str) -> None:
        if type(other) is not type(self):
            raise ValueError(
                f"{type(self).__name__} {operation}: operand is a {type(other).__name__}"
            )
        if not self.same_relative_tree(other):
            raise ValueError(
                f"{type(self).__name__} {operation}: operands are not in the "
                f"same relative tree"
            )

    def __add__(self, other: RelativeNode) -> RelativeNode:
        self._require_same_tree(other, 'add')
        return self._with_offset(self.offset + other.offset, self._parent)

    def __sub__(self, other: RelativeNode) -> RelativeNode:
        self._require_same_tree(other, 'sub')
        return self._with_offset(self.offset - other.offset, self._parent)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(other) is not type(self):
            return NotImplemented
        return (np.array_equal(self.offset, other.offset)
                and _nodes_equal(self._parent, other._parent))

    __hash__ = None


# =============================================================================
# CHAIN HELPERS
# =============================================================================

def _nodes_equal(a: Optional[RelativeNode], b: Optional[RelativeNode]) -> bool:
    if a is None or b is None:
        return a is b
    return a == b


def _index_of(tree: List[RelativeNode], node: RelativeNode) -> int:
    for index, candidate in enumerate(tree):
        if _nodes_equal(candidate, node):
            return index
    return -1


def _contains(tree: List[RelativeNode], node: RelativeNode) -> bool:
    return _index_of(tree, node) >= 0


def _first_common(search: List[RelativeNode],
                  within: List[RelativeNode]) -> Optional[RelativeNode]:
    # First node of `search` that also appears in `within`
    for node in search:
        if _contains(within, node):
            return node
    return None
