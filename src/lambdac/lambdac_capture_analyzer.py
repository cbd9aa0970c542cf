"""Capture analysis for function literals.

The capture analyzer finds the free variables of a function literal, resolves
each against the literal's enclosing scope chain and decides what has to be
captured:

- parameters and locals of enclosing methods/blocks are captured, and must be
  effectively immutable;
- instance-level bindings (fields, instance methods) and `this` are reached
  through the lexically enclosing instance, so they are recorded as ambient
  references rather than captures;
- names that no frame declares are left to the surrounding compiler (static
  members, external names) and never captured.

Effective immutability is decided by scanning the block that owns the
variable, from its declaration to the end of the block.  The scan follows
control paths so a variable declared without an initializer may be assigned
once on every path (for example once in each branch of an if) and still be
immutable.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from lambdac.lambdac_ast import (
    LambdacASTNode, LambdacASTFunctionLiteral, LambdacASTBlock, LambdacASTLocalVariable, LambdacASTName,
    LambdacASTThis, LambdacASTAssign, LambdacASTMethodCall, LambdacASTIf, LambdacASTWhile, LambdacASTStatement,
    LambdacASTReturn, LambdacASTThrow, can_complete_normally
)
from lambdac.lambdac_error import LambdacCaptureError
from lambdac.lambdac_scope import LambdacFrameKind, LambdacScopeEntry, EMPTY_SCOPE
from lambdac.lambdac_types import LambdacType


@dataclass(frozen=True)
class LambdacCapturedVariable:
    """A local or parameter captured by a function literal."""
    name: str
    binding_type: LambdacType
    frame_kind: LambdacFrameKind
    is_effectively_final: bool = True

    def __repr__(self) -> str:
        return f"LambdacCapturedVariable({self.name}: {self.binding_type.describe()}, {self.frame_kind.value})"


@dataclass(frozen=True)
class LambdacCaptureSet:
    """
    The result of capture analysis.

    Only the captured variables count towards the size of the set.  Ambient
    instance-level references and use of the enclosing instance are kept
    separately: they are reached through the enclosing instance, not copied.
    """
    captures: Tuple[LambdacCapturedVariable, ...] = ()
    ambient: Tuple[str, ...] = ()
    uses_enclosing_instance: bool = False
    enclosing_instance_type: LambdacType | None = None
    unresolved: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True if nothing needs to be captured."""
        return not self.captures

    def __len__(self) -> int:
        return len(self.captures)

    def names(self) -> Tuple[str, ...]:
        """Get the captured variable names in capture order."""
        return tuple(capture.name for capture in self.captures)

    def types(self) -> Tuple[LambdacType, ...]:
        """Get the captured variable types in capture order."""
        return tuple(capture.binding_type for capture in self.captures)

    def get(self, name: str) -> LambdacCapturedVariable | None:
        """Get the captured variable with the given name, if any."""
        for capture in self.captures:
            if capture.name == name:
                return capture

        return None


EMPTY_CAPTURE_SET = LambdacCaptureSet()


class _FreeNameCollector:
    """Collects the free names referenced inside a literal body."""

    def __init__(self, literal: LambdacASTFunctionLiteral) -> None:
        self.references: Dict[str, LambdacASTNode] = {}
        self.writes: Dict[str, LambdacASTAssign] = {}
        self.implicit_calls: List[str] = []
        self.uses_this = False
        self._declared: List[Set[str]] = [set(literal.param_names())]
        self._walk(literal.body)

    def _is_declared(self, name: str) -> bool:
        return any(name in names for names in self._declared)

    def _walk(self, node: LambdacASTNode) -> None:
        if isinstance(node, LambdacASTFunctionLiteral):
            # Nested literals bind their own parameters; their free names are ours too
            self._declared.append(set(node.param_names()))
            self._walk(node.body)
            self._declared.pop()
            return

        if isinstance(node, LambdacASTBlock):
            self._declared.append(set())
            for statement in node.statements:
                self._walk(statement)

            self._declared.pop()
            return

        if isinstance(node, LambdacASTLocalVariable):
            if node.initializer is not None:
                self._walk(node.initializer)

            self._declared[-1].add(node.name)
            return

        if isinstance(node, LambdacASTName):
            if not self._is_declared(node.name):
                self.references.setdefault(node.name, node)

            return

        if isinstance(node, LambdacASTThis):
            self.uses_this = True
            return

        if isinstance(node, LambdacASTAssign):
            if not self._is_declared(node.target):
                self.references.setdefault(node.target, node)
                self.writes.setdefault(node.target, node)

        elif isinstance(node, LambdacASTMethodCall) and node.target is None:
            if node.name not in self.implicit_calls:
                self.implicit_calls.append(node.name)

        for child in node.children():
            self._walk(child)


class _ReassignmentScanner:
    """
    Finds the first reassignment of a name within a region of statements.

    The scan carries the number of assignments made so far on the current
    control path, or None once the path has left the block through return or
    throw.  An assignment is a reassignment if the variable already holds a
    value on that path, or if it sits inside a loop.  Nested function
    literals are skipped: assignments inside them are attributed to the
    literal that contains them.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.offender: LambdacASTAssign | None = None
        self._loop_depth = 0

    def scan(self, statements: Tuple[LambdacASTStatement, ...], initialized: bool) -> LambdacASTAssign | None:
        """
        Scan a statement sequence.

        Args:
            statements: Statements following the declaration
            initialized: True if the variable already has a value at the start

        Returns:
            The first reassignment found, or None if the variable is effectively immutable
        """
        self._scan_sequence(statements, 1 if initialized else 0)
        return self.offender

    def _scan_sequence(self, statements: Tuple[LambdacASTStatement, ...], count: int | None) -> int | None:
        for statement in statements:
            if count is None:
                # The rest of the block is unreachable
                break

            if isinstance(statement, LambdacASTLocalVariable) and statement.name == self.name:
                # Redeclaration shadows the variable for the rest of this block
                return self._scan(statement.initializer, count)

            count = self._scan(statement, count)

        return count

    def _scan(self, node: LambdacASTNode | None, count: int | None) -> int | None:
        if node is None or count is None or isinstance(node, LambdacASTFunctionLiteral):
            return count

        if isinstance(node, LambdacASTBlock):
            return self._scan_sequence(node.statements, count)

        if isinstance(node, LambdacASTIf):
            count = self._scan(node.condition, count)
            then_count = self._scan(node.then_branch, count)
            else_count = self._scan(node.else_branch, count)

            # Only branches that fall through reach the code after the if
            reaching = [c for c in (then_count, else_count) if c is not None]
            return max(reaching) if reaching else None

        if isinstance(node, (LambdacASTReturn, LambdacASTThrow)):
            self._scan(node.value, count)
            return None

        if isinstance(node, LambdacASTWhile):
            self._loop_depth += 1
            count = self._scan(node.condition, count)
            body_count = self._scan(node.body, count)
            self._loop_depth -= 1
            if not can_complete_normally(node):
                return None

            return body_count if body_count is not None else count

        if isinstance(node, LambdacASTAssign):
            count = self._scan(node.value, count)
            if node.target != self.name:
                return count

            if self.offender is None and (count >= 1 or self._loop_depth > 0 or node.is_compound):
                self.offender = node

            return count + 1

        for child in node.children():
            count = self._scan(child, count)

        return count


class LambdacCaptureAnalyzer:
    """
    Computes capture sets for function literals.

    The result for each literal is cached on the literal node itself, so
    re-running the analysis returns the identical capture set (or re-raises
    the identical error) without walking the body again.
    """

    def __init__(self) -> None:
        """Initialize the analyzer."""
        self._logger = logging.getLogger("LambdacCaptureAnalyzer")

    def analyze(self, literal: LambdacASTFunctionLiteral) -> LambdacCaptureSet:
        """
        Analyze a function literal.

        Args:
            literal: Literal to analyze

        Returns:
            The literal's capture set

        Raises:
            LambdacCaptureError: If a captured variable is reassigned; the error
                names the first offender and lists every violation
        """
        analysis = literal.analysis
        if analysis.capture_error is not None:
            raise analysis.capture_error

        if analysis.capture_set is not None:
            return analysis.capture_set

        try:
            capture_set = self._analyze(literal)

        except LambdacCaptureError as e:
            analysis.capture_error = e
            raise

        analysis.capture_set = capture_set
        self._logger.debug("Literal %s captures %s", literal.describe(), list(capture_set.names()))
        return capture_set

    def _analyze(self, literal: LambdacASTFunctionLiteral) -> LambdacCaptureSet:
        scope = literal.scope if literal.scope is not None else EMPTY_SCOPE
        collector = _FreeNameCollector(literal)

        captures: List[LambdacCapturedVariable] = []
        ambient: List[str] = []
        unresolved: List[str] = []
        violations: List[LambdacCaptureError] = []
        uses_instance = False

        for name in collector.references:
            entry = scope.lookup(name)
            if entry is None:
                unresolved.append(name)
                continue

            if entry.frame.kind == LambdacFrameKind.INSTANCE:
                ambient.append(name)
                if not entry.binding.is_static:
                    uses_instance = True

                continue

            offender = collector.writes.get(name)
            if offender is None:
                offender = self._find_reassignment(entry)

            if offender is not None:
                violations.append(LambdacCaptureError(
                    name,
                    assignment_line=offender.line,
                    assignment_column=offender.column,
                    line=literal.line,
                    column=literal.column,
                    source_file=literal.source_file
                ))

            captures.append(LambdacCapturedVariable(
                name=name,
                binding_type=entry.binding.binding_type,
                frame_kind=entry.frame.kind,
                is_effectively_final=offender is None
            ))

        for method_name in collector.implicit_calls:
            for frame in scope.innermost_first():
                if frame.kind != LambdacFrameKind.INSTANCE:
                    continue

                binding = frame.lookup_local(method_name)
                if binding is not None:
                    ambient.append(method_name)
                    uses_instance = uses_instance or not binding.is_static
                    break

        instance_frame = scope.enclosing_instance()
        if collector.uses_this:
            if instance_frame is None:
                unresolved.append("this")

            else:
                uses_instance = True

        if violations:
            for violation in violations:
                violation.violations = violations

            raise violations[0]

        return LambdacCaptureSet(
            captures=tuple(captures),
            ambient=tuple(ambient),
            uses_enclosing_instance=uses_instance and instance_frame is not None,
            enclosing_instance_type=instance_frame.instance_type if uses_instance and instance_frame else None,
            unresolved=tuple(unresolved)
        )

    def _find_reassignment(self, entry: LambdacScopeEntry) -> LambdacASTAssign | None:
        """
        Scan the owning block for a reassignment of a captured binding.

        Args:
            entry: Resolved frame and binding

        Returns:
            The first reassignment, or None if the binding is effectively immutable
        """
        block = entry.frame.block
        if block is None:
            return None

        declaration = entry.binding.declaration
        statements = block.statements
        initialized = True
        if declaration is not None:
            initialized = declaration.initializer is not None
            index = self._index_of(statements, declaration)
            if index is not None:
                statements = statements[index + 1:]

        return _ReassignmentScanner(entry.binding.name).scan(statements, initialized)

    def _index_of(
        self,
        statements: Tuple[LambdacASTStatement, ...],
        declaration: LambdacASTLocalVariable
    ) -> int | None:
        """Find a declaration among a block's statements, by identity first and then by value."""
        for index, statement in enumerate(statements):
            if statement is declaration:
                return index

        for index, statement in enumerate(statements):
            if statement == declaration:
                return index

        return None
