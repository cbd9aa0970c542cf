"""Invocation strategy selection.

A function literal that captures nothing, and any static, unbound-instance or
constructor reference, needs no per-evaluation state: it is linked once and
shared (STATIC).  A literal that captures locals or parameters, and a bound
instance reference (which captures its receiver), is constructed at every
evaluation from the captured values (CAPTURING).

Use of the enclosing instance alone does not make a literal CAPTURING; the
instance is passed as a separate back-reference recorded on the plan.
"""

import logging
from typing import Tuple

from lambdac.lambdac_ast import LambdacReferenceKind
from lambdac.lambdac_capture_analyzer import LambdacCaptureSet, EMPTY_CAPTURE_SET
from lambdac.lambdac_error import (
    LambdacResolutionError, LambdacResolutionErrorType, LambdacShapeError
)
from lambdac.lambdac_interface_shape_validator import LambdacInterfaceShapeValidator
from lambdac.lambdac_invocation_plan import LambdacInvocationPlan, LambdacInvocationStrategy
from lambdac.lambdac_target_type_resolver import LambdacResolvedBinding
from lambdac.lambdac_types import LambdacType


class LambdacInvocationStrategySelector:
    """Chooses between STATIC and CAPTURING invocation for resolved call sites."""

    def __init__(self, shape_validator: LambdacInterfaceShapeValidator | None = None) -> None:
        """
        Initialize the selector.

        Args:
            shape_validator: Validator used to find the erased functional
                signature; without one, the instantiated signature is erased
                parameter by parameter
        """
        self.shape_validator = shape_validator
        self._logger = logging.getLogger("LambdacInvocationStrategySelector")

    def select(
        self,
        binding: LambdacResolvedBinding,
        capture_set: LambdacCaptureSet | None = None
    ) -> LambdacInvocationPlan:
        """
        Select the invocation strategy for a resolved binding.

        The result depends only on the binding and capture set, so selecting
        twice for the same inputs gives equal plans.

        Args:
            binding: Resolved target of a literal or member reference
            capture_set: Capture set of the literal (ignored for member references)

        Returns:
            The invocation plan

        Raises:
            LambdacResolutionError: If a constructor reference needs an adapter
        """
        signature = binding.signature
        erased_params, erased_return = self._erased_signature(binding)
        capture_set = capture_set if capture_set is not None else EMPTY_CAPTURE_SET

        if binding.is_literal:
            strategy = LambdacInvocationStrategy.CAPTURING if capture_set.captures else LambdacInvocationStrategy.STATIC
            plan = LambdacInvocationPlan(
                strategy=strategy,
                param_types=signature.param_types,
                return_type=signature.return_type,
                captured_types=capture_set.types(),
                reference_kind=LambdacReferenceKind.LITERAL,
                interface_name=signature.interface_name,
                method_name=signature.method_name,
                implementation_name=self._literal_implementation_name(binding),
                captured_names=capture_set.names(),
                erased_param_types=erased_params,
                erased_return_type=erased_return,
                uses_enclosing_instance=capture_set.uses_enclosing_instance,
                enclosing_instance_type=capture_set.enclosing_instance_type
            )

        else:
            plan = self._select_reference(binding, erased_params, erased_return)

        self._logger.debug("Selected %s for %s", plan.describe(), binding.node.describe())
        return plan

    def _select_reference(
        self,
        binding: LambdacResolvedBinding,
        erased_params: Tuple[LambdacType, ...],
        erased_return: LambdacType
    ) -> LambdacInvocationPlan:
        signature = binding.signature
        member = binding.member
        assert member is not None

        if binding.reference_kind == LambdacReferenceKind.CONSTRUCTOR and member.arity != signature.arity:
            raise LambdacResolutionError(
                LambdacResolutionErrorType.ARITY_MISMATCH,
                f"Constructor '{member.describe()}' does not take the parameters of {signature.describe()}",
                candidates=[signature.describe()],
                suggestion="Use an interface whose abstract method takes exactly the constructor's parameters",
                line=binding.node.line,
                column=binding.node.column,
                source_file=binding.node.source_file
            )

        captured_types: Tuple[LambdacType, ...] = ()
        captured_names: Tuple[str, ...] = ()
        strategy = LambdacInvocationStrategy.STATIC
        if binding.reference_kind == LambdacReferenceKind.BOUND_INSTANCE:
            assert binding.receiver_type is not None
            strategy = LambdacInvocationStrategy.CAPTURING
            captured_types = (binding.receiver_type,)
            captured_names = ("<receiver>",)

        member_name = "new" if member.is_constructor else member.name
        return LambdacInvocationPlan(
            strategy=strategy,
            param_types=signature.param_types,
            return_type=signature.return_type,
            captured_types=captured_types,
            reference_kind=binding.reference_kind,
            interface_name=signature.interface_name,
            method_name=signature.method_name,
            implementation_name=f"{member.owner}::{member_name}",
            captured_names=captured_names,
            erased_param_types=erased_params,
            erased_return_type=erased_return
        )

    def _literal_implementation_name(self, binding: LambdacResolvedBinding) -> str:
        node = binding.node
        line = node.line if node.line is not None else 0
        column = node.column if node.column is not None else 0
        return f"lambda${line}${column}"

    def _erased_signature(self, binding: LambdacResolvedBinding) -> Tuple[Tuple[LambdacType, ...], LambdacType]:
        """Get the functional signature of the raw interface."""
        signature = binding.signature
        if self.shape_validator is not None:
            try:
                raw = self.shape_validator.validate(binding.interface)

            except LambdacShapeError:
                # Unification can differ between raw and parameterized use
                self._logger.debug("Raw %s is not functional; erasing instantiated signature", binding.interface.name)

            else:
                return raw.param_types, raw.return_type

        return tuple(p.erase() for p in signature.param_types), signature.return_type.erase()
