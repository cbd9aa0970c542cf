"""Static types of function literal body expressions.

The general type checker is outside this compiler, so the typer only derives
what it can locally: literal constants, names bound by the literal or its
scope, `this`, instance creation, operators, and the type annotations the
general type checker attached to field accesses and method calls.  Anything
else is reported as unknown (None), and callers treat unknown as compatible.
"""

from typing import Dict

from lambdac.lambdac_ast import (
    LambdacASTExpression, LambdacASTLiteral, LambdacASTName, LambdacASTThis, LambdacASTFieldAccess,
    LambdacASTMethodCall, LambdacASTNew, LambdacASTBinary, LambdacASTUnary, LambdacASTAssign
)
from lambdac.lambdac_scope import LambdacLexicalScope, EMPTY_SCOPE
from lambdac.lambdac_types import (
    LambdacType, LambdacClassType, LambdacPrimitiveType, BOOLEAN, INT, LONG, FLOAT, DOUBLE, STRING, BOXED_TYPES
)


_BOOLEAN_OPERATORS = frozenset({"==", "!=", "<", ">", "<=", ">=", "&&", "||", "instanceof"})
_ARITHMETIC_OPERATORS = frozenset({"+", "-", "*", "/", "%", "&", "|", "^", "<<", ">>", ">>>"})

# Binary numeric promotion order, widest first
_NUMERIC_RANK = (DOUBLE, FLOAT, LONG)


class LambdacExpressionTyper:
    """Derives static types of expressions where that is possible without a full type checker."""

    def __init__(self, scope: LambdacLexicalScope | None = None) -> None:
        """
        Initialize the typer.

        Args:
            scope: Scope used to type names not bound by the literal itself
        """
        self.scope = scope if scope is not None else EMPTY_SCOPE

    def type_of(self, expr: LambdacASTExpression, locals_map: Dict[str, LambdacType | None]) -> LambdacType | None:
        """
        Get the static type of an expression.

        Args:
            expr: Expression to type
            locals_map: Types of the literal's parameters and locals visible at expr;
                None marks a local whose type is unknown

        Returns:
            The static type, or None if it cannot be derived here
        """
        if isinstance(expr, LambdacASTLiteral):
            return expr.literal_type

        if isinstance(expr, LambdacASTName):
            if expr.name in locals_map:
                return locals_map[expr.name]

            entry = self.scope.lookup(expr.name)
            return entry.binding.binding_type if entry is not None else None

        if isinstance(expr, LambdacASTThis):
            frame = self.scope.enclosing_instance()
            return frame.instance_type if frame is not None else None

        if isinstance(expr, LambdacASTFieldAccess):
            return expr.field_type

        if isinstance(expr, LambdacASTMethodCall):
            return expr.result_type

        if isinstance(expr, LambdacASTNew):
            return expr.class_type

        if isinstance(expr, LambdacASTBinary):
            return self._type_of_binary(expr, locals_map)

        if isinstance(expr, LambdacASTUnary):
            if expr.operator == "!":
                return BOOLEAN

            return self.type_of(expr.operand, locals_map)

        if isinstance(expr, LambdacASTAssign):
            if expr.target in locals_map:
                return locals_map[expr.target]

            entry = self.scope.lookup(expr.target)
            return entry.binding.binding_type if entry is not None else None

        # Function literals and member references are poly expressions: no standalone type
        return None

    def _type_of_binary(self, expr: LambdacASTBinary, locals_map: Dict[str, LambdacType | None]) -> LambdacType | None:
        if expr.operator in _BOOLEAN_OPERATORS:
            return BOOLEAN

        if expr.operator not in _ARITHMETIC_OPERATORS:
            return None

        left = self.type_of(expr.left, locals_map)
        right = self.type_of(expr.right, locals_map)
        if expr.operator == "+" and STRING in (left, right):
            return STRING

        if left is None or right is None:
            return None

        left = _unboxed(left)
        right = _unboxed(right)
        if left == BOOLEAN and right == BOOLEAN and expr.operator in ("&", "|", "^"):
            return BOOLEAN

        for rank in _NUMERIC_RANK:
            if rank in (left, right):
                return rank

        return INT


def _unboxed(lambdac_type: LambdacType) -> LambdacType:
    """Map a boxed class type to its primitive; other types are returned unchanged."""
    if isinstance(lambdac_type, LambdacPrimitiveType):
        return lambdac_type

    if isinstance(lambdac_type, LambdacClassType):
        for primitive, boxed in BOXED_TYPES.items():
            if boxed.name == lambdac_type.name:
                return primitive

    return lambdac_type
