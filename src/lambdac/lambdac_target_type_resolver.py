"""Target type resolution for function literals and member references.

A function literal or member reference has no type of its own; it takes the
type of the single-abstract-method interface its context expects.  The
resolver finds that target and checks that the literal or reference fits it:

- with a single expected type, the type must name a SAM interface and the
  literal's arity, declared parameter types and return shape must match the
  interface's functional signature;
- with a set of overload candidates (the literal is a call argument), the
  candidates are filtered down to those whose parameter at the argument
  position is a SAM interface of matching arity, and the survivors must agree
  on their functional signature.

Member references are matched structurally against the signature.  An
unbound instance reference (Type::method on an instance method) takes its
receiver as the signature's first parameter.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from lambdac.lambdac_ast import (
    LambdacASTNode, LambdacASTFunctionLiteral, LambdacASTMemberReference, LambdacASTBlock, LambdacASTReturn,
    LambdacASTLocalVariable, LambdacASTMethodCall, LambdacASTAssign, LambdacASTNew, LambdacASTStatement,
    LambdacReferenceKind, can_complete_normally
)
from lambdac.lambdac_error import (
    LambdacResolutionError, LambdacResolutionErrorType, LambdacShapeError, LambdacShapeErrorType
)
from lambdac.lambdac_expression_typer import LambdacExpressionTyper
from lambdac.lambdac_interface import LambdacFunctionalSignature, LambdacInterfaceType
from lambdac.lambdac_interface_shape_validator import LambdacInterfaceShapeValidator
from lambdac.lambdac_type_table import LambdacTypeTable
from lambdac.lambdac_types import LambdacType, LambdacClassType, LambdacMember, VOID, is_void


LambdacFunctionalNode = Union[LambdacASTFunctionLiteral, LambdacASTMemberReference]


@dataclass(frozen=True)
class LambdacOverloadCandidate:
    """One applicable method of an overloaded call, as supplied by the call-site resolver."""
    name: str
    param_types: Tuple[LambdacType, ...]

    def describe(self) -> str:
        """Describe the candidate as name(params)."""
        params = ", ".join(p.describe() for p in self.param_types)
        return f"{self.name}({params})"


@dataclass(frozen=True)
class LambdacCandidateOverloadSet:
    """The overloads applicable at a call where a literal appears as an argument."""
    argument_index: int
    candidates: Tuple[LambdacOverloadCandidate, ...]


LambdacResolutionContext = Union[LambdacType, LambdacCandidateOverloadSet]


@dataclass(frozen=True)
class LambdacResolvedBinding:
    """
    A literal or member reference bound to its functional target.

    parameter_types are the literal's parameter types (declared or inferred).
    For member references, member is the matched method or constructor and
    receiver_type is the bound receiver's type (BOUND_INSTANCE only).
    """
    node: LambdacFunctionalNode
    target_type: LambdacClassType
    interface: LambdacInterfaceType
    signature: LambdacFunctionalSignature
    reference_kind: LambdacReferenceKind
    parameter_types: Tuple[LambdacType, ...] = ()
    member: LambdacMember | None = None
    receiver_type: LambdacType | None = None

    @property
    def is_literal(self) -> bool:
        """True if the binding is for a function literal."""
        return self.reference_kind == LambdacReferenceKind.LITERAL


@dataclass(frozen=True)
class _FunctionalCandidate:
    candidate: LambdacOverloadCandidate
    target_type: LambdacClassType
    signature: LambdacFunctionalSignature

    def describe(self) -> str:
        return f"{self.candidate.describe()} via {self.signature.describe()}"


class LambdacTargetTypeResolver:
    """Resolves the SAM target of function literals and member references."""

    def __init__(
        self,
        type_table: LambdacTypeTable,
        shape_validator: LambdacInterfaceShapeValidator | None = None
    ) -> None:
        """
        Initialize the resolver.

        Args:
            type_table: Frozen metadata for the compilation unit
            shape_validator: Validator to share with other analyses (one is
                created if not supplied)
        """
        self.type_table = type_table
        self.shape_validator = shape_validator or LambdacInterfaceShapeValidator(type_table)
        self._logger = logging.getLogger("LambdacTargetTypeResolver")

    def resolve(self, node: LambdacFunctionalNode, context: LambdacResolutionContext) -> LambdacResolvedBinding:
        """
        Resolve the functional target of a literal or member reference.

        Args:
            node: Function literal or member reference
            context: The expected type, or the overload candidates of the
                call the node is an argument of

        Returns:
            The resolved binding

        Raises:
            LambdacResolutionError: If the node cannot be bound to a unique target
            LambdacShapeError: If a target interface sits on an inheritance cycle
        """
        if isinstance(context, LambdacCandidateOverloadSet):
            binding = self._resolve_overloaded(node, context)

        else:
            binding = self._resolve_expected(node, context)

        self._logger.debug("Resolved %s to %s", node.describe(), binding.signature.describe())
        return binding

    def _error(
        self,
        node: LambdacASTNode,
        error_type: LambdacResolutionErrorType,
        message: str,
        **kwargs
    ) -> LambdacResolutionError:
        return LambdacResolutionError(
            error_type,
            message,
            line=node.line,
            column=node.column,
            source_file=node.source_file,
            **kwargs
        )

    def _functional_target(
        self,
        node: LambdacFunctionalNode,
        expected: LambdacType
    ) -> Tuple[LambdacClassType, LambdacInterfaceType, LambdacFunctionalSignature]:
        """Look up and validate the interface named by an expected type."""
        interface = None
        if isinstance(expected, LambdacClassType):
            interface = self.type_table.lookup_interface(expected.name)

        if interface is None:
            raise self._error(
                node,
                LambdacResolutionErrorType.NOT_FUNCTIONAL,
                f"Target type '{expected.describe()}' is not a functional interface",
                received=node.describe(),
                suggestion="Function literals and member references need an interface type with one abstract method"
            )

        assert isinstance(expected, LambdacClassType)
        try:
            signature = self.shape_validator.validate(interface, expected.type_args)

        except LambdacShapeError as e:
            if e.error_type == LambdacShapeErrorType.CYCLIC_INHERITANCE:
                raise

            raise self._error(
                node,
                LambdacResolutionErrorType.NOT_FUNCTIONAL,
                f"Target type '{expected.describe()}' is not a functional interface: {e.message}",
                candidates=e.conflicting,
                received=node.describe()
            ) from e

        return expected, interface, signature

    def _resolve_expected(self, node: LambdacFunctionalNode, expected: LambdacType) -> LambdacResolvedBinding:
        target_type, interface, signature = self._functional_target(node, expected)
        if isinstance(node, LambdacASTFunctionLiteral):
            return self._bind_literal(node, target_type, interface, signature)

        return self._bind_reference(node, target_type, interface, signature)

    def _bind_literal(
        self,
        literal: LambdacASTFunctionLiteral,
        target_type: LambdacClassType,
        interface: LambdacInterfaceType,
        signature: LambdacFunctionalSignature
    ) -> LambdacResolvedBinding:
        if literal.arity != signature.arity:
            raise self._error(
                literal,
                LambdacResolutionErrorType.ARITY_MISMATCH,
                f"Function literal has {literal.arity} parameter(s) but "
                f"{signature.describe()} takes {signature.arity}",
                candidates=[signature.describe()],
                received=literal.describe()
            )

        parameter_types: List[LambdacType] = []
        for param, expected_type in zip(literal.params, signature.param_types):
            if param.declared_type is None:
                parameter_types.append(expected_type)
                continue

            if not self.type_table.is_assignable(param.declared_type, expected_type):
                raise self._error(
                    literal,
                    LambdacResolutionErrorType.PARAMETER_TYPE_MISMATCH,
                    f"Parameter '{param.name}' is declared as {param.declared_type.describe()} "
                    f"but {signature.describe()} passes {expected_type.describe()}",
                    candidates=[signature.describe()],
                    expected=expected_type.describe(),
                    received=param.declared_type.describe()
                )

            parameter_types.append(param.declared_type)

        locals_map: Dict[str, LambdacType | None] = dict(zip(literal.param_names(), parameter_types))
        self._check_return_shape(literal, signature, locals_map)

        return LambdacResolvedBinding(
            node=literal,
            target_type=target_type,
            interface=interface,
            signature=signature,
            reference_kind=LambdacReferenceKind.LITERAL,
            parameter_types=tuple(parameter_types)
        )

    def _check_return_shape(
        self,
        literal: LambdacASTFunctionLiteral,
        signature: LambdacFunctionalSignature,
        locals_map: Dict[str, LambdacType | None]
    ) -> None:
        """
        Check the literal's body against the signature's return type.

        Raises:
            LambdacResolutionError: RETURN_SHAPE_MISMATCH on any violation
        """
        typer = LambdacExpressionTyper(literal.scope)
        return_type = signature.return_type

        if not isinstance(literal.body, LambdacASTBlock):
            body = literal.body
            if is_void(return_type):
                if not isinstance(body, (LambdacASTMethodCall, LambdacASTAssign, LambdacASTNew)):
                    raise self._return_mismatch(
                        literal, signature, f"Expression '{body.describe()}' is not a statement expression"
                    )

                return

            body_type = typer.type_of(body, locals_map)
            self._check_value(literal, signature, body, body_type)
            return

        for statement, value_type in self._collect_returns(literal.body, typer, dict(locals_map)):
            if is_void(return_type):
                if statement.value is not None:
                    raise self._return_mismatch(
                        statement, signature, f"'{statement.describe()}' returns a value from a void function"
                    )

                continue

            if statement.value is None:
                raise self._return_mismatch(statement, signature, "'return;' without a value")

            self._check_value(statement, signature, statement.value, value_type)

        if not is_void(return_type) and can_complete_normally(literal.body):
            raise self._return_mismatch(literal, signature, "Not every path through the block returns a value")

    def _check_value(
        self,
        node: LambdacASTNode,
        signature: LambdacFunctionalSignature,
        value: LambdacASTNode,
        value_type: LambdacType | None
    ) -> None:
        if value_type is None:
            return

        if is_void(value_type):
            raise self._return_mismatch(node, signature, f"'{value.describe()}' does not produce a value")

        if not self.type_table.is_assignable(value_type, signature.return_type):
            raise self._return_mismatch(
                node,
                signature,
                f"'{value.describe()}' has type {value_type.describe()}, "
                f"not assignable to {signature.return_type.describe()}"
            )

    def _return_mismatch(
        self,
        node: LambdacASTNode,
        signature: LambdacFunctionalSignature,
        detail: str
    ) -> LambdacResolutionError:
        return self._error(
            node,
            LambdacResolutionErrorType.RETURN_SHAPE_MISMATCH,
            f"Function literal body does not match the return type of {signature.describe()}",
            candidates=[signature.describe()],
            received=detail,
            expected=f"A body producing {signature.return_type.describe()}"
        )

    def _collect_returns(
        self,
        node: LambdacASTNode,
        typer: LambdacExpressionTyper,
        locals_map: Dict[str, LambdacType | None]
    ) -> List[Tuple[LambdacASTReturn, LambdacType | None]]:
        """Find the return statements of a block body together with the types of their values."""
        if isinstance(node, LambdacASTFunctionLiteral):
            return []

        if isinstance(node, LambdacASTReturn):
            value_type = typer.type_of(node.value, locals_map) if node.value is not None else VOID
            return [(node, value_type)]

        if isinstance(node, LambdacASTLocalVariable):
            local_type = node.declared_type
            if local_type is None and node.initializer is not None:
                local_type = typer.type_of(node.initializer, locals_map)

            # Known but untyped locals still shadow outer bindings
            locals_map[node.name] = local_type

            return []

        if isinstance(node, LambdacASTBlock):
            block_locals = dict(locals_map)
            returns: List[Tuple[LambdacASTReturn, LambdacType | None]] = []
            for statement in node.statements:
                returns.extend(self._collect_returns(statement, typer, block_locals))

            return returns

        returns = []
        for child in node.children():
            if isinstance(child, LambdacASTStatement):
                returns.extend(self._collect_returns(child, typer, locals_map))

        return returns

    def _bind_reference(
        self,
        reference: LambdacASTMemberReference,
        target_type: LambdacClassType,
        interface: LambdacInterfaceType,
        signature: LambdacFunctionalSignature
    ) -> LambdacResolvedBinding:
        kind = reference.kind
        receiver_type = None
        if kind == LambdacReferenceKind.CONSTRUCTOR:
            member = self._match_constructor(reference, signature)

        elif kind == LambdacReferenceKind.BOUND_INSTANCE:
            receiver_type = self._receiver_type(reference)
            matches = [
                m for m in self.type_table.members_named(receiver_type.name, reference.member_name)
                if not m.is_static and self._accepts(signature.param_types, m.param_types)
            ]
            member = self._single_match(reference, signature, matches, receiver_type.name)

        else:
            member, kind = self._match_type_reference(reference, signature)

        self._check_reference_return(reference, signature, member)
        return LambdacResolvedBinding(
            node=reference,
            target_type=target_type,
            interface=interface,
            signature=signature,
            reference_kind=kind,
            parameter_types=signature.param_types,
            member=member,
            receiver_type=receiver_type
        )

    def _receiver_type(self, reference: LambdacASTMemberReference) -> LambdacClassType:
        """Get the static type of a bound reference's receiver."""
        receiver_type: LambdacType | None = reference.target_type
        if receiver_type is None and reference.receiver is not None:
            receiver_type = LambdacExpressionTyper(reference.scope).type_of(reference.receiver, {})

        if not isinstance(receiver_type, LambdacClassType):
            raise self._error(
                reference,
                LambdacResolutionErrorType.UNRESOLVED_MEMBER,
                f"Cannot determine the receiver type of '{reference.describe()}'",
                suggestion="Annotate the receiver expression with its static type"
            )

        return receiver_type

    def _match_constructor(
        self,
        reference: LambdacASTMemberReference,
        signature: LambdacFunctionalSignature
    ) -> LambdacMember:
        assert reference.target_type is not None
        constructors = self.type_table.constructors_of(reference.target_type.name)
        matches = [c for c in constructors if self._accepts(signature.param_types, c.param_types)]
        if matches:
            return self._single_match(reference, signature, matches, reference.target_type.name)

        if not any(c.arity == signature.arity for c in constructors):
            if constructors:
                # Needs an adapter; strategy selection rejects the mismatched parameter list
                self._logger.debug(
                    "No constructor of %s takes %d parameter(s); deferring to selection",
                    reference.target_type.describe(),
                    signature.arity
                )
                return constructors[0]

            raise self._error(
                reference,
                LambdacResolutionErrorType.ARITY_MISMATCH,
                f"'{reference.describe()}' has no constructor taking {signature.arity} parameter(s) "
                f"as required by {signature.describe()}",
                candidates=[c.describe() for c in constructors],
                suggestion="Constructor references are matched by parameter list only; supply an interface "
                    "whose abstract method takes exactly the constructor's parameters"
            )

        raise self._error(
            reference,
            LambdacResolutionErrorType.UNRESOLVED_MEMBER,
            f"No constructor of '{reference.target_type.describe()}' accepts the parameters of "
            f"{signature.describe()}",
            candidates=[c.describe() for c in constructors]
        )

    def _match_type_reference(
        self,
        reference: LambdacASTMemberReference,
        signature: LambdacFunctionalSignature
    ) -> Tuple[LambdacMember, LambdacReferenceKind]:
        """
        Match Type::method under both the static and the unbound-instance reading.

        Returns:
            The matched member and the reading that matched
        """
        assert reference.target_type is not None
        owner = reference.target_type
        members = self.type_table.members_named(owner.name, reference.member_name)

        static_matches = [
            m for m in members if m.is_static and self._accepts(signature.param_types, m.param_types)
        ]
        unbound_matches: List[LambdacMember] = []
        if signature.arity >= 1 and self.type_table.is_assignable(signature.param_types[0], owner):
            unbound_matches = [
                m for m in members if not m.is_static and self._accepts(signature.param_types[1:], m.param_types)
            ]

        if static_matches and unbound_matches:
            raise self._error(
                reference,
                LambdacResolutionErrorType.STATIC_INSTANCE_AMBIGUITY,
                f"'{reference.describe()}' matches both a static and an instance method",
                candidates=[m.describe() for m in static_matches + unbound_matches],
                suggestion="Use a function literal to say which method is meant"
            )

        if unbound_matches:
            return (
                self._single_match(reference, signature, unbound_matches, owner.name),
                LambdacReferenceKind.UNBOUND_INSTANCE
            )

        return (
            self._single_match(reference, signature, static_matches, owner.name),
            LambdacReferenceKind.STATIC
        )

    def _single_match(
        self,
        reference: LambdacASTMemberReference,
        signature: LambdacFunctionalSignature,
        matches: List[LambdacMember],
        owner_name: str
    ) -> LambdacMember:
        if len(matches) == 1:
            return matches[0]

        if len(matches) > 1:
            raise self._error(
                reference,
                LambdacResolutionErrorType.AMBIGUOUS_TARGET,
                f"'{reference.describe()}' matches more than one member of '{owner_name}'",
                candidates=[m.describe() for m in matches]
            )

        named = self.type_table.members_named(owner_name, reference.member_name)
        if not named:
            raise self._error(
                reference,
                LambdacResolutionErrorType.UNRESOLVED_MEMBER,
                f"'{owner_name}' has no member named '{reference.member_name}'",
                received=reference.describe()
            )

        arities = {signature.arity, signature.arity - 1}
        error_type = LambdacResolutionErrorType.UNRESOLVED_MEMBER
        if not any(m.arity in arities for m in named):
            error_type = LambdacResolutionErrorType.ARITY_MISMATCH

        raise self._error(
            reference,
            error_type,
            f"No member '{reference.member_name}' of '{owner_name}' fits {signature.describe()}",
            candidates=[m.describe() for m in named]
        )

    def _check_reference_return(
        self,
        reference: LambdacASTMemberReference,
        signature: LambdacFunctionalSignature,
        member: LambdacMember
    ) -> None:
        if is_void(signature.return_type):
            return

        if is_void(member.return_type) or not self.type_table.is_assignable(member.return_type, signature.return_type):
            raise self._error(
                reference,
                LambdacResolutionErrorType.RETURN_SHAPE_MISMATCH,
                f"'{member.describe()}' does not return a value assignable to {signature.return_type.describe()}",
                candidates=[signature.describe()]
            )

    def _accepts(self, provided: Tuple[LambdacType, ...], declared: Tuple[LambdacType, ...]) -> bool:
        """Return True if arguments of the provided types can be passed to the declared parameters."""
        if len(provided) != len(declared):
            return False

        return all(self.type_table.is_assignable(p, d) for p, d in zip(provided, declared))

    def _resolve_overloaded(
        self,
        node: LambdacFunctionalNode,
        overloads: LambdacCandidateOverloadSet
    ) -> LambdacResolvedBinding:
        functional: List[_FunctionalCandidate] = []
        for candidate in overloads.candidates:
            if overloads.argument_index >= len(candidate.param_types):
                continue

            param_type = candidate.param_types[overloads.argument_index]
            if not isinstance(param_type, LambdacClassType):
                continue

            interface = self.type_table.lookup_interface(param_type.name)
            if interface is None or not self.shape_validator.is_functional(interface, param_type.type_args):
                continue

            signature = self.shape_validator.validate(interface, param_type.type_args)
            functional.append(_FunctionalCandidate(candidate, param_type, signature))

        considered = [candidate.describe() for candidate in overloads.candidates]
        if not functional:
            raise self._error(
                node,
                LambdacResolutionErrorType.NOT_FUNCTIONAL,
                f"No overload takes a functional interface at argument {overloads.argument_index}",
                candidates=considered,
                received=node.describe()
            )

        compatible = [f for f in functional if self._arity_compatible(node, f.signature)]
        if not compatible:
            raise self._error(
                node,
                LambdacResolutionErrorType.ARITY_MISMATCH,
                f"No overload's functional interface matches the arity of '{node.describe()}'",
                candidates=[f.describe() for f in functional]
            )

        first = compatible[0]
        if any(not self._signatures_interchangeable(first.signature, other.signature) for other in compatible[1:]):
            raise self._error(
                node,
                LambdacResolutionErrorType.AMBIGUOUS_TARGET,
                f"'{node.describe()}' fits more than one overload",
                candidates=[f.describe() for f in compatible],
                suggestion="Declare the parameter types explicitly or cast to the intended interface"
            )

        return self._resolve_expected(node, first.target_type)

    def _arity_compatible(self, node: LambdacFunctionalNode, signature: LambdacFunctionalSignature) -> bool:
        """Check whether a literal or reference could possibly implement a signature of this arity."""
        arity = signature.arity
        if isinstance(node, LambdacASTFunctionLiteral):
            return node.arity == arity

        if node.kind == LambdacReferenceKind.CONSTRUCTOR:
            assert node.target_type is not None
            return any(c.arity == arity for c in self.type_table.constructors_of(node.target_type.name))

        if node.kind == LambdacReferenceKind.BOUND_INSTANCE:
            receiver_type = self._receiver_type(node)
            return any(
                not m.is_static and m.arity == arity
                for m in self.type_table.members_named(receiver_type.name, node.member_name)
            )

        assert node.target_type is not None
        return any(
            (m.is_static and m.arity == arity) or (not m.is_static and m.arity == arity - 1)
            for m in self.type_table.members_named(node.target_type.name, node.member_name)
        )

    def _signatures_interchangeable(
        self,
        first: LambdacFunctionalSignature,
        second: LambdacFunctionalSignature
    ) -> bool:
        """Return True if two functional signatures are mutually assignable."""
        if first.arity != second.arity:
            return False

        if not self.type_table.is_mutually_assignable(first.return_type, second.return_type):
            return False

        return all(
            self.type_table.is_mutually_assignable(a, b) for a, b in zip(first.param_types, second.param_types)
        )
