"""
Ownership tracking as the resolver drives it: handle-typed lets copy,
move() transfers, release() destroys, scopes release what they own.
"""

from castsema.analysis.ownership import HandleState
from castsema.utils.config import EXIT_CLEAN, EXIT_FATAL, EXIT_FINDINGS
from tests.test_utils import analyze, assert_clean, type_name, violation_codes


class TestHandleConstruction:
    """make_unique / make_shared and handle templates"""

    def test_handle_types(self, driver):
        result = analyze("""
            class Point { int x; };
            let u = make_unique<int>(5);
            let s = std::make_shared<Point>();
            let t = unique_ptr<double>(new double(1.5));
            let px = s->x;
            let deref = *u;
        """, driver)
        assert_clean(result)
        assert type_name(result, "make_unique<int>(5)") == "unique_ptr<int>"
        assert type_name(result, "make_shared<Point>()") == "shared_ptr<Point>"
        assert type_name(result, "unique_ptr<double>(new double(1.5))") == "unique_ptr<double>"
        assert type_name(result, "s->x") == "int"
        assert type_name(result, "*u") == "int"

    def test_pointee_argument_is_converted(self, driver):
        result = analyze("let u = make_unique<int>(1.5);", driver)
        assert [c.classification.note_codes for c in result.report.casts] == [("W0101",)]

    def test_null_initializes_a_handle(self, driver):
        result = analyze("let h: shared_ptr<int> = nullptr;", driver)
        assert_clean(result)

    def test_every_handle_released_at_exit(self, driver):
        result = analyze("""
            let u = make_unique<int>(1);
            let s = make_shared<int>(2);
        """, driver)
        assert all(h.state is HandleState.DESTROYED for h in result.ctx.tracker.handles)


class TestCopyAndMove:
    """Handle-typed lets copy lvalues and take over temporaries."""

    def test_use_after_move(self, driver):
        result = analyze("""
            let a = make_unique<int>(5);
            let b = move(a);
            let c = *a;
        """, driver)
        assert violation_codes(result) == ["E0382"]
        assert result.report.fatal is None
        assert result.exit_code == EXIT_FINDINGS

    def test_moved_to_handle_is_usable(self, driver):
        result = analyze("""
            let a = make_unique<int>(5);
            let b = move(a);
            let c = *b;
        """, driver)
        assert_clean(result)

    def test_unique_copy(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            let b = a;
        """, driver)
        assert violation_codes(result) == ["E0384"]

    def test_shared_copies_share_a_lineage(self, driver):
        result = analyze("""
            let a = make_shared<double>(1.0);
            let b = a;
            let c = b;
        """, driver)
        assert_clean(result)
        handles = result.ctx.tracker.handles
        assert len(handles) == 3
        assert all(h.lineage is handles[0].lineage for h in handles)
        assert handles[0].lineage.freed

    def test_strict_makes_violations_fatal(self, driver):
        source = """
            let a = make_unique<int>(1);
            let b = a;
        """
        assert analyze(source, driver).exit_code == EXIT_FINDINGS
        assert analyze(source, driver, strict=True).exit_code == EXIT_FATAL


class TestRelease:
    """Explicit release and scope exit"""

    def test_double_release(self, driver):
        result = analyze("""
            let a = make_shared<int>(1);
            release(a);
            release(a);
        """, driver)
        assert violation_codes(result) == ["E0385"]
        assert type_name(result, "release(a)") == "void"

    def test_use_after_release(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            release(a);
            let v = *a;
        """, driver)
        assert violation_codes(result) == ["E0383"]

    def test_release_of_moved_handle(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            let b = move(a);
            release(a);
        """, driver)
        assert violation_codes(result) == ["E0382"]

    def test_block_releases_its_handles(self, driver):
        result = analyze("""
            {
                let inner = make_unique<int>(1);
            }
            let outer = make_unique<int>(2);
        """, driver)
        assert_clean(result)
        inner, outer = result.ctx.tracker.handles
        assert inner.state is HandleState.DESTROYED

    def test_function_scope(self, driver):
        result = analyze("""
            int peek() {
                let h = make_shared<int>(3);
                return *h;
            }
        """, driver)
        assert_clean(result)
        assert result.ctx.tracker.handles[0].lineage.freed


class TestAssignment:
    """Assigning to a handle variable releases the previous handle."""

    def test_reassignment_releases_previous(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            a = make_unique<int>(2);
            let v = *a;
        """, driver)
        assert_clean(result)
        first, second = result.ctx.tracker.handles
        assert first.state is HandleState.DESTROYED
        assert second.origin.line == 3

    def test_assignment_revives_moved_variable(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            let b = move(a);
            a = make_unique<int>(2);
            let v = *a;
        """, driver)
        assert result.exit_code == EXIT_CLEAN

    def test_shared_assignment_copies(self, driver):
        result = analyze("""
            let a = make_shared<int>(1);
            let b = make_shared<int>(2);
            b = a;
        """, driver)
        assert_clean(result)
        original = result.ctx.tracker.handles[0]
        assert original.lineage.freed
        assert original.lineage.count == 0

    def test_refused_copy_keeps_target_handle(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            let b = make_unique<int>(2);
            b = a;
            release(b);
            let v = *b;
        """, driver)
        assert violation_codes(result) == ["E0384", "E0383"]
        assert len(result.ctx.tracker.handles) == 2

    def test_refused_move_keeps_target_handle(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            let c = move(a);
            let b = make_unique<int>(2);
            b = move(a);
            release(b);
            let v = *b;
        """, driver)
        assert violation_codes(result) == ["E0382", "E0383"]


class TestOwningScope:
    """A handle stored into a variable lives as long as that variable's scope."""

    def test_moved_into_outer_variable(self, driver):
        result = analyze("""
            let a: unique_ptr<int> = nullptr;
            {
                let b = make_unique<int>(1);
                a = move(b);
            }
            let v = *a;
        """, driver)
        assert violation_codes(result) == []
        assert_clean(result)
        assert all(h.state is not HandleState.VALID for h in result.ctx.tracker.handles)

    def test_created_into_outer_variable(self, driver):
        result = analyze("""
            let a: unique_ptr<int> = nullptr;
            {
                a = make_unique<int>(1);
            }
            let v = *a;
        """, driver)
        assert violation_codes(result) == []
        assert result.exit_code == EXIT_CLEAN

    def test_shared_copy_into_outer_variable(self, driver):
        result = analyze("""
            let a: shared_ptr<int> = nullptr;
            {
                let s = make_shared<int>(1);
                a = s;
            }
            let v = *a;
        """, driver)
        assert violation_codes(result) == []
        lineage = result.ctx.tracker.handles[0].lineage
        assert lineage.freed
        assert lineage.count == 0

    def test_inner_variable_still_released(self, driver):
        result = analyze("""
            let a: unique_ptr<int> = nullptr;
            {
                let b = make_unique<int>(1);
                a = move(b);
                let c = make_unique<int>(2);
            }
            let v = *a;
        """, driver)
        assert violation_codes(result) == []
        moved_from, moved_to, inner = result.ctx.tracker.handles
        assert inner.state is HandleState.DESTROYED
        assert moved_to.origin.line == 5

    def test_moved_out_of_outer_variable(self, driver):
        result = analyze("""
            let a = make_unique<int>(1);
            {
                let b = move(a);
            }
            let v = *a;
        """, driver)
        assert violation_codes(result) == ["E0382"]


class TestHandleTests:
    """Comparing a handle with nullptr and testing it with !"""

    def test_compare_with_nullptr(self, driver):
        result = analyze("""
            let h = make_unique<int>(1);
            let a = h == nullptr;
            let b = nullptr != h;
            let c = !h;
        """, driver)
        assert_clean(result)
        assert type_name(result, "h == nullptr") == "bool"
        assert type_name(result, "nullptr != h") == "bool"
        assert type_name(result, "!h") == "bool"

    def test_moved_from_handle_may_be_tested(self, driver):
        result = analyze("""
            let h = make_unique<int>(1);
            let g = move(h);
            let empty = h == nullptr;
        """, driver)
        assert violation_codes(result) == []
