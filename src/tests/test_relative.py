"""
===============================================================================
PATCHED CONICS - Relative Frame Test Suite
===============================================================================
Tests for relative-frame nodes: structural equality, flattening, one-level
consolidation, frame synchronisation and re-expression, arithmetic guards,
temporal ordering, kinematic stepping, basis changes and the memo cell.
===============================================================================
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from patchedconics.core.memo import MemoCell
from patchedconics.core.states import (
    AccelerationState,
    KinematicState,
    KinematicTemporalState,
    TemporalState,
)
from patchedconics.core.vector import change_basis, inverse_change_basis


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """A long absolute clock with two nested children."""
    root = TemporalState(1.0e9)
    return root, root.child(5.0), root.child(5.0).child(2.0)


@pytest.fixture
def frames():
    """Planet -> moon -> craft kinematic chain."""
    planet = KinematicState([1.0e11, 0.0, 0.0], [0.0, 3.0e4, 0.0])
    moon = KinematicState([3.8e8, 0.0, 0.0], [0.0, 1.0e3, 0.0], parent=planet)
    craft = KinematicState([2.0e6, 1.0e5, 0.0], [0.0, 1.5e3, 10.0], parent=moon)
    return planet, moon, craft


# =============================================================================
# Equality and flattening
# =============================================================================

class TestStructure:
    """Identity, depth and absolute values of node chains."""

    def test_structural_equality(self, clock):
        root, child, _ = clock
        assert child == TemporalState(5.0, TemporalState(1.0e9))
        assert child != TemporalState(5.0, TemporalState(2.0e9))
        assert child != TemporalState(5.0)

    def test_kinematic_equality_is_bitwise(self):
        a = KinematicState([1.0, 2.0, 3.0], [0.0, 0.0, 1.0])
        assert a == KinematicState([1.0, 2.0, 3.0], [0.0, 0.0, 1.0])
        assert a != KinematicState([1.0, 2.0, 3.0 + 1e-12], [0.0, 0.0, 1.0])

    def test_depth_and_tree(self, clock):
        root, child, grandchild = clock
        assert root.depth == 0
        assert grandchild.depth == 2
        assert grandchild.relative_tree()[-1] == root

    def test_convergence_on_shared_ancestor(self, clock):
        root, child, grandchild = clock
        sibling = root.child(9.0)
        assert grandchild.convergence_item(sibling) == root
        assert grandchild.convergence_index(sibling) == 2
        assert grandchild.convergence_item(child) == child
        assert grandchild.convergence_index(child) == 1

    def test_no_convergence(self, clock):
        _, _, grandchild = clock
        stranger = TemporalState(1.0, TemporalState(42.0))
        assert grandchild.convergence_item(stranger) is None
        assert grandchild.convergence_index(stranger) == len(grandchild.relative_tree())

    def test_absolute_time(self, clock):
        _, _, grandchild = clock
        assert grandchild.absolute_time == pytest.approx(1.0e9 + 7.0)
        assert not grandchild.absolute().has_parent()

    def test_root_has_no_parent(self, clock):
        root, _, _ = clock
        with pytest.raises(ValueError):
            root.parent

    def test_absolute_position(self, frames):
        _, _, craft = frames
        assert_allclose(craft.absolute_position, [1.0e11 + 3.8e8 + 2.0e6, 1.0e5, 0.0])
        assert_allclose(craft.absolute_velocity, [0.0, 3.0e4 + 1.0e3 + 1.5e3, 10.0])

    def test_vectors_are_read_only(self, frames):
        _, _, craft = frames
        with pytest.raises(ValueError):
            craft.position[0] = 0.0

    def test_mixed_parent_type_rejected(self):
        with pytest.raises(ValueError):
            KinematicState([0, 0, 0], [0, 0, 0], parent=TemporalState(1.0))


# =============================================================================
# Frame operations
# =============================================================================

class TestFrameOperations:
    """consolidate_once, synchronize, match_relative and relative_to."""

    def test_consolidate_once(self, clock):
        root, _, grandchild = clock
        merged = grandchild.consolidate_once()
        assert merged == TemporalState(7.0, root)
        assert merged.absolute_time == grandchild.absolute_time

    def test_consolidate_root_raises(self, clock):
        root, _, _ = clock
        with pytest.raises(ValueError):
            root.consolidate_once()

    def test_synchronize_to_deepest_shared_frame(self, clock):
        root, _, grandchild = clock
        other = root.child(7.5)
        a, b = grandchild.synchronize(other)
        assert a.parent == root and b.parent == root
        assert a.relative_time == pytest.approx(7.0)
        assert b.relative_time == pytest.approx(7.5)

    def test_synchronize_without_common_ancestor(self):
        a = TemporalState(1.0, TemporalState(10.0))
        b = TemporalState(2.0, TemporalState(20.0))
        a_sync, b_sync = a.synchronize(b)
        assert not a_sync.has_parent() and not b_sync.has_parent()
        assert a_sync.relative_time == 11.0
        assert b_sync.relative_time == 22.0

    def test_match_relative(self, clock):
        root, child, _ = clock
        foreign = TemporalState(3.0, TemporalState(1.0e9 + 50.0))
        matched = child.match_relative(foreign)
        assert matched.parent == root
        assert matched.relative_time == pytest.approx(53.0)

    def test_relative_to_skips_shared_ancestors(self, frames):
        planet, moon, craft = frames
        station = KinematicState([3.8e8, 0.0, 5.0e5], [0.0, 1.0e3, 0.0], parent=planet)
        rel = craft.relative_to(station)
        assert rel.parent == station
        assert_allclose(rel.position, [2.0e6, 1.0e5, -5.0e5])
        assert_allclose(rel.velocity, [0.0, 1.5e3, 10.0])
        assert_allclose(rel.absolute_position, craft.absolute_position)

    def test_relative_to_other_type_raises(self, frames):
        _, _, craft = frames
        with pytest.raises(ValueError):
            craft.relative_to(TemporalState(0.0))

    def test_elapsed_since(self, clock):
        root, _, grandchild = clock
        assert grandchild.elapsed_since(root) == pytest.approx(7.0)
        assert root.elapsed_since(grandchild) == pytest.approx(-7.0)

    def test_with_absolute_time_keeps_parent(self, clock):
        root, child, _ = clock
        moved = child.with_absolute_time(1.0e9 + 20.0)
        assert moved.parent == root
        assert moved.relative_time == pytest.approx(20.0)
        assert moved.absolute_time == pytest.approx(1.0e9 + 20.0)

    def test_with_absolute_time_on_root(self, clock):
        root, _, _ = clock
        moved = root.with_absolute_time(3.0)
        assert moved == TemporalState(3.0)


# =============================================================================
# Arithmetic and ordering
# =============================================================================

class TestArithmetic:
    """Operators are only defined inside one relative tree."""

    def test_add_and_sub_same_tree(self, clock):
        root, _, _ = clock
        total = TemporalState(1.5, root) + TemporalState(2.0, root)
        assert total == TemporalState(3.5, root)
        assert (TemporalState(1.5, root) - TemporalState(2.0, root)).relative_time == -0.5

    def test_add_across_trees_raises(self, clock):
        root, child, _ = clock
        with pytest.raises(ValueError):
            child + TemporalState(1.0)

    def test_ordering_across_depths(self, clock):
        root, child, grandchild = clock
        assert child < grandchild
        assert grandchild > child
        assert root.child(7.0) <= grandchild
        assert root.child(7.0) >= grandchild

    def test_ordering_with_non_time_raises(self, clock):
        _, child, _ = clock
        with pytest.raises(ValueError):
            child.less_than(KinematicState([0, 0, 0], [0, 0, 0]))


# =============================================================================
# Kinematic stepping
# =============================================================================

class TestKinematics:

    def test_step_straight_line(self, frames):
        _, moon, craft = frames
        stepped = craft.step(10.0)
        assert stepped.parent == moon
        assert_allclose(stepped.position, craft.position + 10.0 * craft.velocity)
        assert_allclose(stepped.velocity, craft.velocity)

    def test_step_with_acceleration(self):
        state = KinematicState([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])
        accel = AccelerationState([0.0, 2.0, 0.0])
        stepped = state.step(3.0, accel)
        assert_allclose(stepped.position, [3.0, 9.0, 0.0])
        assert_allclose(stepped.velocity, [1.0, 6.0, 0.0])

    def test_consolidate_kinematic_keeps_time(self, frames, clock):
        _, moon, craft = frames
        _, child, _ = clock
        state = KinematicTemporalState(craft, child)
        merged = state.consolidate_kinematic()
        assert merged.time == child
        assert merged.kinematics.parent == moon.parent
        assert_allclose(merged.absolute_position, state.absolute_position)


# =============================================================================
# Basis changes
# =============================================================================

class TestBasisChange:

    @pytest.fixture
    def basis(self):
        c, s = np.cos(0.3), np.sin(0.3)
        return np.array([c, s, 0.0]), np.array([-s, c, 0.0]), np.array([0.0, 0.0, 1.0])

    def test_change_basis_projects_onto_axes(self, basis):
        i, j, k = basis
        local = change_basis(np.array([1.0, 2.0, 3.0]), i, j, k)
        assert_allclose(local, [np.dot(i, [1, 2, 3]), np.dot(j, [1, 2, 3]), 3.0])

    def test_inverse_recovers_vector(self, basis):
        vec = np.array([-4.0e8, 1.5e7, 2.0e3])
        back = inverse_change_basis(change_basis(vec, *basis), *basis)
        assert_allclose(back, vec, rtol=1e-12, atol=1e-6)


# =============================================================================
# Memo cell
# =============================================================================

class TestMemoCell:

    def test_factory_runs_once(self):
        calls = []
        cell = MemoCell()

        def factory():
            calls.append(1)
            return 42

        assert cell.get(factory) == 42
        assert cell.get(factory) == 42
        assert len(calls) == 1

    def test_none_is_a_stored_value(self):
        cell = MemoCell()
        assert cell.get(lambda: None) is None
        assert cell.is_set
        assert cell.peek() is None

    def test_peek_before_fill_raises(self):
        with pytest.raises(RuntimeError):
            MemoCell().peek()
