"""lambdac expression tree - the already-parsed input to the compiler.

The surface parser builds these nodes; the compiler never parses text.  All
nodes are immutable and carry source location metadata for diagnostics.

Expressions whose static type cannot be derived locally (field accesses,
method calls) carry an optional type annotation supplied by the general type
checker.  A missing annotation means "unknown" and is never reported as an
error.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Tuple, Union, TYPE_CHECKING

from lambdac.lambdac_types import LambdacType, LambdacClassType

if TYPE_CHECKING:
    from lambdac.lambdac_scope import LambdacLexicalScope


class LambdacReferenceKind(IntEnum):
    """
    What a functional value is derived from.

    The integer values are the reference_kind byte in call-site descriptors.
    """
    LITERAL = 0
    STATIC = 1
    BOUND_INSTANCE = 2
    UNBOUND_INSTANCE = 3
    CONSTRUCTOR = 4


@dataclass(frozen=True)
class LambdacASTNode(ABC):
    """
    Abstract base class for all lambdac AST nodes.

    Source location fields are keyword-only so node fields stay positional.
    """
    line: int | None = field(default=None, kw_only=True)
    column: int | None = field(default=None, kw_only=True)
    source_file: str = field(default="", kw_only=True)

    @abstractmethod
    def describe(self) -> str:
        """Describe the node in source-like notation."""

    def children(self) -> Tuple['LambdacASTNode', ...]:
        """Get the direct child nodes, in evaluation order."""
        return ()


@dataclass(frozen=True)
class LambdacASTExpression(LambdacASTNode):
    """Base class for expressions."""

    def describe(self) -> str:
        return "<expression>"


@dataclass(frozen=True)
class LambdacASTStatement(LambdacASTNode):
    """Base class for statements."""

    def describe(self) -> str:
        return "<statement>"


@dataclass(frozen=True)
class LambdacASTName(LambdacASTExpression):
    """An unqualified identifier."""
    name: str

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class LambdacASTThis(LambdacASTExpression):
    """An unqualified reference to the enclosing instance."""

    def describe(self) -> str:
        return "this"


@dataclass(frozen=True)
class LambdacASTLiteral(LambdacASTExpression):
    """A constant value with its type."""
    value: Any
    literal_type: LambdacType

    def describe(self) -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"

        if self.value is None:
            return "null"

        if isinstance(self.value, str):
            return f'"{self.value}"'

        return str(self.value)


@dataclass(frozen=True)
class LambdacASTFieldAccess(LambdacASTExpression):
    """target.name"""
    target: LambdacASTExpression
    name: str
    field_type: LambdacType | None = None

    def describe(self) -> str:
        return f"{self.target.describe()}.{self.name}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.target,)


@dataclass(frozen=True)
class LambdacASTMethodCall(LambdacASTExpression):
    """A method call; target is None for an unqualified call."""
    target: LambdacASTExpression | None
    name: str
    args: Tuple[LambdacASTExpression, ...] = ()
    result_type: LambdacType | None = None

    def describe(self) -> str:
        args = ", ".join(arg.describe() for arg in self.args)
        if self.target is None:
            return f"{self.name}({args})"

        return f"{self.target.describe()}.{self.name}({args})"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        if self.target is None:
            return self.args

        return (self.target,) + self.args


@dataclass(frozen=True)
class LambdacASTNew(LambdacASTExpression):
    """Instance creation: new ClassType(args)."""
    class_type: LambdacClassType
    args: Tuple[LambdacASTExpression, ...] = ()

    def describe(self) -> str:
        args = ", ".join(arg.describe() for arg in self.args)
        return f"new {self.class_type.describe()}({args})"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return self.args


@dataclass(frozen=True)
class LambdacASTBinary(LambdacASTExpression):
    """A binary operation."""
    operator: str
    left: LambdacASTExpression
    right: LambdacASTExpression

    def describe(self) -> str:
        return f"{self.left.describe()} {self.operator} {self.right.describe()}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class LambdacASTUnary(LambdacASTExpression):
    """A prefix unary operation such as !x or -x."""
    operator: str
    operand: LambdacASTExpression

    def describe(self) -> str:
        return f"{self.operator}{self.operand.describe()}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.operand,)


@dataclass(frozen=True)
class LambdacASTAssign(LambdacASTExpression):
    """
    Assignment to a simple name.

    operator is "=" for plain assignment, "+=" and friends for compound
    assignment, and "++" / "--" (with no value) for increments.
    """
    target: str
    value: LambdacASTExpression | None
    operator: str = "="

    @property
    def is_compound(self) -> bool:
        """True for anything other than plain assignment."""
        return self.operator != "="

    def describe(self) -> str:
        if self.value is None:
            return f"{self.target}{self.operator}"

        return f"{self.target} {self.operator} {self.value.describe()}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        if self.value is None:
            return ()

        return (self.value,)


@dataclass(frozen=True)
class LambdacASTParameter:
    """A function literal parameter; declared_type is None when it is inferred."""
    name: str
    declared_type: LambdacType | None = None


@dataclass
class LambdacLiteralAnalysis:
    """Per-literal analysis cache, filled in once by the capture analyzer."""
    capture_set: Any = None
    capture_error: Any = None

    def clear(self) -> None:
        """Discard cached results."""
        self.capture_set = None
        self.capture_error = None


@dataclass(frozen=True)
class LambdacASTFunctionLiteral(LambdacASTExpression):
    """
    An anonymous function literal: (params) -> body.

    The body is either a single expression or a block.  The scope is the chain
    of binding frames enclosing the literal's textual occurrence.
    """
    params: Tuple[LambdacASTParameter, ...]
    body: Union[LambdacASTExpression, 'LambdacASTBlock']
    scope: Union['LambdacLexicalScope', None] = None
    analysis: LambdacLiteralAnalysis = field(
        default_factory=LambdacLiteralAnalysis, compare=False, repr=False, kw_only=True
    )

    @property
    def arity(self) -> int:
        """Number of parameters."""
        return len(self.params)

    @property
    def has_block_body(self) -> bool:
        """True if the body is a block rather than a single expression."""
        return isinstance(self.body, LambdacASTBlock)

    def param_names(self) -> Tuple[str, ...]:
        """Get the parameter names in order."""
        return tuple(param.name for param in self.params)

    def describe(self) -> str:
        params = ", ".join(
            param.name if param.declared_type is None else f"{param.declared_type.describe()} {param.name}"
            for param in self.params
        )
        body = "{...}" if self.has_block_body else self.body.describe()
        return f"({params}) -> {body}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.body,)


@dataclass(frozen=True)
class LambdacASTMemberReference(LambdacASTExpression):
    """
    A member reference: Type::member, expr::member or Type::new.

    BOUND_INSTANCE references carry a receiver expression (and may also carry
    the receiver's static type as target_type); every other kind carries a
    target type.  The scope is used to type a receiver that is a plain name.
    """
    kind: LambdacReferenceKind
    member_name: str
    target_type: LambdacClassType | None = None
    receiver: LambdacASTExpression | None = None
    scope: Union['LambdacLexicalScope', None] = None

    def __post_init__(self) -> None:
        if self.kind == LambdacReferenceKind.LITERAL:
            raise ValueError("A member reference cannot have reference kind LITERAL")

        if self.kind == LambdacReferenceKind.BOUND_INSTANCE and self.receiver is None:
            raise ValueError("A bound instance reference needs a receiver expression")

        if self.kind != LambdacReferenceKind.BOUND_INSTANCE and self.target_type is None:
            raise ValueError(f"A {self.kind.name} reference needs a target type")

    @property
    def is_constructor(self) -> bool:
        """True for Type::new references."""
        return self.kind == LambdacReferenceKind.CONSTRUCTOR

    def describe(self) -> str:
        name = "new" if self.is_constructor else self.member_name
        if self.receiver is not None:
            return f"{self.receiver.describe()}::{name}"

        assert self.target_type is not None
        return f"{self.target_type.describe()}::{name}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        if self.receiver is None:
            return ()

        return (self.receiver,)


@dataclass(frozen=True)
class LambdacASTExpressionStatement(LambdacASTStatement):
    """An expression evaluated for its effect."""
    expression: LambdacASTExpression

    def describe(self) -> str:
        return f"{self.expression.describe()};"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.expression,)


@dataclass(frozen=True)
class LambdacASTLocalVariable(LambdacASTStatement):
    """Local variable declaration, optionally initialized."""
    name: str
    declared_type: LambdacType | None = None
    initializer: LambdacASTExpression | None = None

    def describe(self) -> str:
        type_name = "var" if self.declared_type is None else self.declared_type.describe()
        if self.initializer is None:
            return f"{type_name} {self.name};"

        return f"{type_name} {self.name} = {self.initializer.describe()};"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        if self.initializer is None:
            return ()

        return (self.initializer,)


@dataclass(frozen=True)
class LambdacASTReturn(LambdacASTStatement):
    """return [value];"""
    value: LambdacASTExpression | None = None

    def describe(self) -> str:
        if self.value is None:
            return "return;"

        return f"return {self.value.describe()};"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        if self.value is None:
            return ()

        return (self.value,)


@dataclass(frozen=True)
class LambdacASTThrow(LambdacASTStatement):
    """throw value;"""
    value: LambdacASTExpression

    def describe(self) -> str:
        return f"throw {self.value.describe()};"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.value,)


@dataclass(frozen=True)
class LambdacASTIf(LambdacASTStatement):
    """if (condition) then_branch [else else_branch]"""
    condition: LambdacASTExpression
    then_branch: LambdacASTStatement
    else_branch: LambdacASTStatement | None = None

    def describe(self) -> str:
        text = f"if ({self.condition.describe()}) {self.then_branch.describe()}"
        if self.else_branch is not None:
            text += f" else {self.else_branch.describe()}"

        return text

    def children(self) -> Tuple[LambdacASTNode, ...]:
        if self.else_branch is None:
            return (self.condition, self.then_branch)

        return (self.condition, self.then_branch, self.else_branch)


@dataclass(frozen=True)
class LambdacASTWhile(LambdacASTStatement):
    """while (condition) body"""
    condition: LambdacASTExpression
    body: LambdacASTStatement

    def describe(self) -> str:
        return f"while ({self.condition.describe()}) {self.body.describe()}"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return (self.condition, self.body)


@dataclass(frozen=True)
class LambdacASTBlock(LambdacASTStatement):
    """{ statements }"""
    statements: Tuple[LambdacASTStatement, ...] = ()

    def describe(self) -> str:
        if not self.statements:
            return "{}"

        return "{ " + " ".join(statement.describe() for statement in self.statements) + " }"

    def children(self) -> Tuple[LambdacASTNode, ...]:
        return self.statements


def can_complete_normally(statement: LambdacASTStatement | None) -> bool:
    """
    Conservative check whether execution can fall off the end of a statement.

    return and throw never complete; a block completes if every statement in
    it does; an if completes if either branch does (or it has no else); a
    while loop completes unless its condition is the constant true.
    """
    if statement is None:
        return True

    if isinstance(statement, (LambdacASTReturn, LambdacASTThrow)):
        return False

    if isinstance(statement, LambdacASTBlock):
        return all(can_complete_normally(s) for s in statement.statements)

    if isinstance(statement, LambdacASTIf):
        if statement.else_branch is None:
            return True

        return can_complete_normally(statement.then_branch) or can_complete_normally(statement.else_branch)

    if isinstance(statement, LambdacASTWhile):
        condition = statement.condition
        return not (isinstance(condition, LambdacASTLiteral) and condition.value is True)

    return True
