"""
Tests for the OwnershipTracker state machine.
"""

import pytest
from castsema.analysis.ownership import HandleState, OwnershipMode, OwnershipTracker
from castsema.shared.errors import (
    DoubleReleaseError,
    NonCopyableError,
    UseAfterMoveError,
    UseAfterReleaseError,
)
from castsema.shared.types import DOUBLE, INT


@pytest.fixture
def tracker():
    return OwnershipTracker()


class TestUniqueHandles:
    """move transfers ownership; copy is refused"""

    def test_created_valid(self, tracker):
        handle = tracker.make_unique(INT)
        assert handle.mode is OwnershipMode.UNIQUE
        assert handle.state is HandleState.VALID
        assert handle.ref_count == 1

    def test_move_then_use_original(self, tracker):
        original = tracker.make_unique(INT)
        moved = tracker.move(original)
        assert original.state is HandleState.MOVED
        assert moved.is_valid
        assert moved.pointee == INT
        with pytest.raises(UseAfterMoveError):
            tracker.use(original)

    @pytest.mark.parametrize("operation", ["move", "copy", "release", "use"])
    def test_every_operation_on_moved_handle_fails(self, tracker, operation):
        original = tracker.make_unique(INT)
        tracker.move(original)
        with pytest.raises(UseAfterMoveError):
            getattr(tracker, operation)(original)

    def test_moved_to_handle_behaves_fresh(self, tracker):
        moved = tracker.move(tracker.make_unique(DOUBLE))
        tracker.use(moved)
        again = tracker.move(moved)
        tracker.release(again)
        assert again.state is HandleState.DESTROYED

    def test_copy_is_refused(self, tracker):
        handle = tracker.make_unique(INT)
        with pytest.raises(NonCopyableError):
            tracker.copy(handle)
        assert handle.is_valid


class TestSharedHandles:
    """Reference counting across one lineage"""

    def test_two_copies_count_three(self, tracker):
        original = tracker.make_shared(INT)
        first = tracker.copy(original)
        second = tracker.copy(first)
        assert original.ref_count == first.ref_count == second.ref_count == 3

    def test_last_release_frees_the_pointee(self, tracker):
        original = tracker.make_shared(INT)
        copies = [tracker.copy(original), tracker.copy(original)]
        tracker.release(original)
        tracker.release(copies[0])
        assert not original.lineage.freed
        tracker.release(copies[1])
        assert original.lineage.count == 0
        assert original.lineage.freed

    def test_fourth_release_fails(self, tracker):
        original = tracker.make_shared(INT)
        handles = [original, tracker.copy(original), tracker.copy(original)]
        for handle in handles:
            tracker.release(handle)
        with pytest.raises(DoubleReleaseError):
            tracker.release(handles[0])

    def test_use_after_release(self, tracker):
        handle = tracker.make_shared(INT)
        alias = tracker.copy(handle)
        tracker.release(handle)
        with pytest.raises(UseAfterReleaseError):
            tracker.use(handle)
        tracker.use(alias)

    def test_move_keeps_the_count(self, tracker):
        original = tracker.make_shared(INT)
        tracker.copy(original)
        moved = tracker.move(original)
        assert moved.lineage is original.lineage
        assert moved.ref_count == 2

    def test_separate_lineages(self, tracker):
        a = tracker.make_shared(INT)
        b = tracker.make_shared(INT)
        tracker.copy(a)
        assert a.ref_count == 2
        assert b.ref_count == 1


class TestScopes:
    """Scope exit releases what the scope still owns."""

    def test_exit_releases_valid_handles(self, tracker):
        with tracker.scope():
            unique = tracker.make_unique(INT)
            shared = tracker.make_shared(INT)
        assert unique.state is HandleState.DESTROYED
        assert shared.lineage.freed

    def test_moved_and_released_handles_are_skipped(self, tracker):
        tracker.enter_scope()
        moved_from = tracker.make_unique(INT)
        target = tracker.move(moved_from)
        released = tracker.make_shared(INT)
        tracker.release(released)
        assert tracker.exit_scope() == [target]

    def test_inner_scope_only(self, tracker):
        tracker.enter_scope()
        outer = tracker.make_unique(INT)
        with tracker.scope():
            inner = tracker.make_unique(INT)
        assert inner.state is HandleState.DESTROYED
        assert outer.is_valid
        tracker.exit_scope()
        assert not outer.is_valid

    def test_exit_without_scope(self, tracker):
        with pytest.raises(RuntimeError):
            tracker.exit_scope()

    def test_adopted_handle_outlives_inner_scope(self, tracker):
        tracker.enter_scope()
        with tracker.scope():
            handle = tracker.make_unique(INT)
            tracker.adopt(handle, 0)
        assert handle.is_valid
        assert tracker.exit_scope() == [handle]
        assert handle.state is HandleState.DESTROYED

    def test_adopt_into_missing_scope(self, tracker):
        tracker.enter_scope()
        handle = tracker.make_unique(INT)
        with pytest.raises(RuntimeError):
            tracker.adopt(handle, 1)
