"""Tests for capture analysis and effective immutability."""

import pytest

from lambdac import (
    LambdacCaptureAnalyzer, LambdacCaptureError, LambdacCaptureErrorType, LambdacBinding, LambdacFrameKind,
    LambdacASTName, LambdacASTThis, LambdacASTLiteral, LambdacASTAssign, LambdacASTBinary, LambdacASTMethodCall,
    LambdacASTLocalVariable, LambdacASTExpressionStatement, LambdacASTIf, LambdacASTWhile, LambdacASTBlock,
    LambdacASTReturn, LambdacASTThrow, LambdacASTNew,
    LambdacClassType, INT, STRING, BOOLEAN, VOID
)


SERVICE = LambdacClassType("HealthService")


def assign(target, value=None, operator="=", line=None):
    """Build an assignment statement."""
    return LambdacASTExpressionStatement(LambdacASTAssign(target, value, operator, line=line, column=9))


def int_literal(value):
    """Build an int constant."""
    return LambdacASTLiteral(value, INT)


class TestCaptureSets:
    """Test which names are captured."""

    def test_no_captures(self, helpers):
        """Test that a literal using only its parameters captures nothing."""
        body = helpers.block()
        literal = helpers.literal(
            ("s",),
            LambdacASTMethodCall(LambdacASTName("s"), "isHealthy", result_type=BOOLEAN),
            helpers.method_scope(body)
        )

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.is_empty
        assert len(capture_set) == 0
        assert not capture_set.uses_enclosing_instance

    def test_captures_effectively_final_local(self, helpers):
        """Test that a local that is never reassigned is captured."""
        body = helpers.block(LambdacASTLocalVariable("prefix", STRING, LambdacASTLiteral("srv-", STRING)))
        literal = helpers.literal(
            ("s",),
            LambdacASTBinary("+", LambdacASTName("prefix"), LambdacASTName("s")),
            helpers.method_scope(body)
        )

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.names() == ("prefix",)
        assert capture_set.types() == (STRING,)
        capture = capture_set.get("prefix")
        assert capture is not None
        assert capture.frame_kind == LambdacFrameKind.LOCAL
        assert capture.is_effectively_final

    def test_captures_parameter(self, helpers):
        """Test that a parameter of the enclosing method is captured."""
        body = helpers.block()
        literal = helpers.literal(
            ("s",),
            LambdacASTBinary(">", LambdacASTName("s"), LambdacASTName("threshold")),
            helpers.method_scope(body, params=(LambdacBinding("threshold", INT),))
        )

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.names() == ("threshold",)
        assert capture_set.captures[0].frame_kind == LambdacFrameKind.PARAMETER

    def test_capture_order_follows_first_reference(self, helpers):
        """Test that captures are ordered by first reference in the body."""
        body = helpers.block(
            LambdacASTLocalVariable("a", INT, int_literal(1)),
            LambdacASTLocalVariable("b", INT, int_literal(2)),
        )
        literal = helpers.literal(
            (),
            LambdacASTBinary("+", LambdacASTName("b"), LambdacASTBinary("*", LambdacASTName("a"), LambdacASTName("b"))),
            helpers.method_scope(body)
        )

        assert LambdacCaptureAnalyzer().analyze(literal).names() == ("b", "a")

    def test_literal_parameter_shadows_outer_local(self, helpers):
        """Test that a literal parameter hides an outer binding of the same name."""
        body = helpers.block(
            LambdacASTLocalVariable("x", INT, int_literal(0)),
            assign("x", int_literal(1)),
        )
        literal = helpers.literal(("x",), LambdacASTName("x"), helpers.method_scope(body))

        assert LambdacCaptureAnalyzer().analyze(literal).is_empty

    def test_local_shadows_instance_member(self, helpers):
        """Test that the innermost binding wins over an instance member."""
        body = helpers.block(LambdacASTLocalVariable("name", STRING, LambdacASTLiteral("a", STRING)))
        scope = helpers.method_scope(body, instance_members=(LambdacBinding("name", STRING),))
        literal = helpers.literal((), LambdacASTName("name"), scope)

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.names() == ("name",)
        assert capture_set.ambient == ()
        assert not capture_set.uses_enclosing_instance

    def test_nested_literal_free_names_propagate(self, helpers):
        """Test that names used by a nested literal are captured by the outer one."""
        body = helpers.block(LambdacASTLocalVariable("offset", INT, int_literal(5)))
        scope = helpers.method_scope(body)
        inner = helpers.literal(("y",), LambdacASTBinary("+", LambdacASTName("y"), LambdacASTName("offset")), scope)
        outer = helpers.literal((), inner, scope)

        assert LambdacCaptureAnalyzer().analyze(outer).names() == ("offset",)

    def test_block_local_is_not_captured(self, helpers):
        """Test that a local declared inside the literal body is not a capture."""
        body = helpers.block()
        literal_body = LambdacASTBlock((
            LambdacASTLocalVariable("count", INT, int_literal(0)),
            assign("count", int_literal(1)),
        ))
        literal = helpers.literal((), literal_body, helpers.method_scope(body))

        assert LambdacCaptureAnalyzer().analyze(literal).is_empty

    def test_unresolved_names_are_not_captured(self, helpers):
        """Test that names no frame declares are left to the surrounding compiler."""
        body = helpers.block()
        literal = helpers.literal((), LambdacASTName("MAX_RETRIES"), helpers.method_scope(body))

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.is_empty
        assert capture_set.unresolved == ("MAX_RETRIES",)


class TestEnclosingInstance:
    """Test ambient instance-level references."""

    def test_instance_field_is_ambient(self, helpers):
        """Test that an instance field is reached through the enclosing instance."""
        body = helpers.block()
        scope = helpers.method_scope(body, instance_members=(LambdacBinding("timeout", INT),))
        literal = helpers.literal((), LambdacASTName("timeout"), scope)

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.is_empty
        assert capture_set.ambient == ("timeout",)
        assert capture_set.uses_enclosing_instance
        assert capture_set.enclosing_instance_type == SERVICE

    def test_static_member_does_not_use_instance(self, helpers):
        """Test that a static member is ambient without needing the instance."""
        body = helpers.block()
        scope = helpers.method_scope(body, instance_members=(LambdacBinding("DEFAULT_PORT", INT, is_static=True),))
        literal = helpers.literal((), LambdacASTName("DEFAULT_PORT"), scope)

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.ambient == ("DEFAULT_PORT",)
        assert not capture_set.uses_enclosing_instance
        assert capture_set.enclosing_instance_type is None

    def test_this_uses_enclosing_instance(self, helpers):
        """Test that 'this' refers to the lexically enclosing instance."""
        body = helpers.block()
        literal = helpers.literal(
            ("s",),
            LambdacASTMethodCall(LambdacASTThis(), "check", (LambdacASTName("s"),), result_type=BOOLEAN),
            helpers.method_scope(body)
        )

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.is_empty
        assert capture_set.uses_enclosing_instance
        assert capture_set.enclosing_instance_type == SERVICE

    def test_unqualified_instance_method_call(self, helpers):
        """Test that calling an instance method without a receiver uses the enclosing instance."""
        body = helpers.block()
        scope = helpers.method_scope(body, instance_members=(LambdacBinding("log", VOID),))
        literal = helpers.literal(
            (),
            LambdacASTMethodCall(None, "log", (LambdacASTLiteral("tick", STRING),), result_type=VOID),
            scope
        )

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.ambient == ("log",)
        assert capture_set.uses_enclosing_instance

    def test_this_in_static_context(self, helpers):
        """Test that 'this' without an enclosing instance is reported as unresolved."""
        body = helpers.block()
        literal = helpers.literal((), LambdacASTThis(), helpers.method_scope(body, instance_type=None))

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert not capture_set.uses_enclosing_instance
        assert capture_set.unresolved == ("this",)


class TestEffectiveImmutability:
    """Test rejection of captured variables that are reassigned."""

    def test_reassigned_local(self, helpers):
        """Test that reassigning an initialized local after the literal is rejected."""
        body = helpers.block(
            LambdacASTLocalVariable("count", INT, int_literal(0)),
            assign("count", int_literal(1), line=7),
        )
        literal = helpers.literal((), LambdacASTName("count"), helpers.method_scope(body))

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        error = exc_info.value
        assert error.error_type == LambdacCaptureErrorType.MUTABLE_CAPTURE
        assert error.identifier == "count"
        assert error.assignment_line == 7
        assert error.assignment_column == 9
        assert "line 7, column 9" in str(error)

    def test_reassigned_parameter(self, helpers):
        """Test that a parameter assigned anywhere in the method is rejected."""
        body = helpers.block(assign("limit", int_literal(10), line=3))
        literal = helpers.literal(
            (), LambdacASTName("limit"), helpers.method_scope(body, params=(LambdacBinding("limit", INT),))
        )

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.identifier == "limit"
        assert exc_info.value.assignment_line == 3

    def test_conditional_reassignment(self, helpers):
        """Test that reassigning in one branch of an if is still a reassignment."""
        body = helpers.block(
            LambdacASTLocalVariable("limit", INT, int_literal(0)),
            LambdacASTIf(LambdacASTName("flag"), LambdacASTBlock((assign("limit", int_literal(5), line=4),))),
        )
        scope = helpers.method_scope(body, params=(LambdacBinding("flag", BOOLEAN),))
        literal = helpers.literal((), LambdacASTName("limit"), scope)

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.identifier == "limit"
        assert exc_info.value.assignment_line == 4

    def test_definite_assignment_in_both_branches(self, helpers):
        """Test that one assignment per path to an uninitialized local is a definition."""
        body = helpers.block(
            LambdacASTLocalVariable("limit", INT),
            LambdacASTIf(
                LambdacASTName("flag"),
                assign("limit", int_literal(1)),
                assign("limit", int_literal(2)),
            ),
        )
        scope = helpers.method_scope(body, params=(LambdacBinding("flag", BOOLEAN),))
        literal = helpers.literal((), LambdacASTName("limit"), scope)

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.names() == ("limit",)

    def test_definite_assignment_with_early_return(self, helpers):
        """Test that a branch leaving through return does not reach the later assignment."""
        body = helpers.block(
            LambdacASTLocalVariable("limit", INT),
            LambdacASTIf(
                LambdacASTName("flag"),
                helpers.block(assign("limit", int_literal(1)), LambdacASTReturn()),
            ),
            assign("limit", int_literal(2)),
        )
        scope = helpers.method_scope(body, params=(LambdacBinding("flag", BOOLEAN),))
        literal = helpers.literal((), LambdacASTName("limit"), scope)

        capture_set = LambdacCaptureAnalyzer().analyze(literal)

        assert capture_set.names() == ("limit",)

    def test_definite_assignment_with_throw_in_else(self, helpers):
        """Test that a throwing else branch contributes no path."""
        body = helpers.block(
            LambdacASTLocalVariable("limit", INT),
            LambdacASTIf(
                LambdacASTName("flag"),
                assign("limit", int_literal(1)),
                helpers.block(
                    assign("limit", int_literal(2)),
                    LambdacASTThrow(LambdacASTNew(LambdacClassType("IllegalStateException"))),
                ),
            ),
        )
        scope = helpers.method_scope(body, params=(LambdacBinding("flag", BOOLEAN),))
        literal = helpers.literal((), LambdacASTName("limit"), scope)

        assert LambdacCaptureAnalyzer().analyze(literal).names() == ("limit",)

    def test_assignment_after_falling_through_branch(self, helpers):
        """Test that a branch which assigns and falls through still makes a later assignment a reassignment."""
        body = helpers.block(
            LambdacASTLocalVariable("limit", INT),
            LambdacASTIf(
                LambdacASTName("flag"),
                helpers.block(assign("limit", int_literal(1))),
                LambdacASTReturn(),
            ),
            assign("limit", int_literal(2), line=4),
        )
        scope = helpers.method_scope(body, params=(LambdacBinding("flag", BOOLEAN),))
        literal = helpers.literal((), LambdacASTName("limit"), scope)

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.assignment_line == 4

    def test_second_assignment_after_definition(self, helpers):
        """Test that assigning an uninitialized local twice is rejected."""
        body = helpers.block(
            LambdacASTLocalVariable("limit", INT),
            assign("limit", int_literal(1), line=2),
            assign("limit", int_literal(2), line=3),
        )
        literal = helpers.literal((), LambdacASTName("limit"), helpers.method_scope(body))

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.assignment_line == 3

    def test_assignment_in_loop(self, helpers):
        """Test that assigning inside a loop is a reassignment even if it is the first."""
        body = helpers.block(
            LambdacASTLocalVariable("total", INT),
            LambdacASTWhile(LambdacASTName("flag"), LambdacASTBlock((assign("total", int_literal(1), line=5),))),
        )
        scope = helpers.method_scope(body, params=(LambdacBinding("flag", BOOLEAN),))
        literal = helpers.literal((), LambdacASTName("total"), scope)

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.assignment_line == 5

    def test_compound_assignment(self, helpers):
        """Test that compound assignment always counts as reassignment."""
        body = helpers.block(
            LambdacASTLocalVariable("total", INT),
            assign("total", None, operator="++", line=6),
        )
        literal = helpers.literal((), LambdacASTName("total"), helpers.method_scope(body))

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.assignment_line == 6

    def test_assignment_inside_literal(self, helpers):
        """Test that a literal assigning to a captured variable is rejected."""
        body = helpers.block(LambdacASTLocalVariable("hits", INT, int_literal(0)))
        literal = helpers.literal(
            (), LambdacASTAssign("hits", int_literal(1), "+=", line=12, column=3), helpers.method_scope(body)
        )

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        assert exc_info.value.identifier == "hits"
        assert exc_info.value.assignment_line == 12

    def test_redeclaration_in_inner_block_shadows(self, helpers):
        """Test that assignments to a shadowing redeclaration do not count."""
        body = helpers.block(
            LambdacASTLocalVariable("x", INT, int_literal(0)),
            LambdacASTBlock((
                LambdacASTLocalVariable("x", INT, int_literal(1)),
                assign("x", int_literal(2)),
            )),
        )
        literal = helpers.literal((), LambdacASTName("x"), helpers.method_scope(body))

        assert LambdacCaptureAnalyzer().analyze(literal).names() == ("x",)

    def test_assignments_in_other_literals_are_ignored(self, helpers):
        """Test that the scan skips nested literals elsewhere in the block."""
        other = helpers.literal(("x",), LambdacASTAssign("x", int_literal(3)))
        body = helpers.block(
            LambdacASTLocalVariable("x", INT, int_literal(0)),
            LambdacASTExpressionStatement(other),
        )
        literal = helpers.literal((), LambdacASTName("x"), helpers.method_scope(body))

        assert LambdacCaptureAnalyzer().analyze(literal).names() == ("x",)

    def test_all_violations_are_reported(self, helpers):
        """Test that the error lists every mutable capture."""
        body = helpers.block(
            LambdacASTLocalVariable("a", INT, int_literal(0)),
            LambdacASTLocalVariable("b", INT, int_literal(0)),
            assign("a", int_literal(1), line=3),
            assign("b", int_literal(1), line=4),
        )
        literal = helpers.literal(
            (), LambdacASTBinary("+", LambdacASTName("a"), LambdacASTName("b")), helpers.method_scope(body)
        )

        with pytest.raises(LambdacCaptureError) as exc_info:
            LambdacCaptureAnalyzer().analyze(literal)

        violations = exc_info.value.violations
        assert [violation.identifier for violation in violations] == ["a", "b"]
        assert [violation.assignment_line for violation in violations] == [3, 4]


class TestIdempotence:
    """Test that analysis results are cached on the literal."""

    def test_repeated_analysis_returns_same_set(self, helpers):
        """Test that analyzing twice returns the identical capture set."""
        body = helpers.block(LambdacASTLocalVariable("prefix", STRING, LambdacASTLiteral("x", STRING)))
        literal = helpers.literal((), LambdacASTName("prefix"), helpers.method_scope(body))

        first = LambdacCaptureAnalyzer().analyze(literal)
        second = LambdacCaptureAnalyzer().analyze(literal)

        assert first is second

    def test_repeated_failure_raises_same_error(self, helpers):
        """Test that a cached failure is raised again."""
        body = helpers.block(
            LambdacASTLocalVariable("count", INT, int_literal(0)),
            assign("count", int_literal(1)),
        )
        literal = helpers.literal((), LambdacASTName("count"), helpers.method_scope(body))
        analyzer = LambdacCaptureAnalyzer()

        with pytest.raises(LambdacCaptureError) as first:
            analyzer.analyze(literal)

        with pytest.raises(LambdacCaptureError) as second:
            analyzer.analyze(literal)

        assert first.value is second.value

    def test_clearing_the_cache(self, helpers):
        """Test that a cleared cache is recomputed to an equal result."""
        body = helpers.block(LambdacASTLocalVariable("prefix", STRING, LambdacASTLiteral("x", STRING)))
        literal = helpers.literal((), LambdacASTName("prefix"), helpers.method_scope(body))
        analyzer = LambdacCaptureAnalyzer()

        first = analyzer.analyze(literal)
        literal.analysis.clear()
        second = analyzer.analyze(literal)

        assert first is not second
        assert first == second
