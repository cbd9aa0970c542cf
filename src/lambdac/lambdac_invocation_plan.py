"""Invocation plans - the strategy chosen for a literal or member reference call site."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Tuple

from lambdac.lambdac_ast import LambdacReferenceKind
from lambdac.lambdac_types import LambdacType


class LambdacInvocationStrategy(IntEnum):
    """
    How a functional value is materialised at its evaluation site.

    STATIC values are linked once and shared; CAPTURING values are constructed
    at each evaluation from the captured values.  The integer values are the
    strategy byte in call-site descriptors.
    """
    STATIC = 0
    CAPTURING = 1


@dataclass(frozen=True)
class LambdacInvocationPlan:
    """
    The selected invocation strategy for one call site.

    Equality and hashing cover exactly the fields a call-site descriptor
    encodes, so a decoded plan compares equal to the plan it was emitted from.
    The remaining fields are linkage metadata for the code generator.
    """
    strategy: LambdacInvocationStrategy
    param_types: Tuple[LambdacType, ...]
    return_type: LambdacType
    captured_types: Tuple[LambdacType, ...] = ()
    reference_kind: LambdacReferenceKind = LambdacReferenceKind.LITERAL

    interface_name: str = field(default="", compare=False)
    method_name: str = field(default="", compare=False)
    implementation_name: str = field(default="", compare=False)
    captured_names: Tuple[str, ...] = field(default=(), compare=False)
    erased_param_types: Tuple[LambdacType, ...] = field(default=(), compare=False)
    erased_return_type: LambdacType | None = field(default=None, compare=False)
    uses_enclosing_instance: bool = field(default=False, compare=False)
    enclosing_instance_type: LambdacType | None = field(default=None, compare=False)

    @property
    def is_static(self) -> bool:
        """True for the STATIC strategy."""
        return self.strategy == LambdacInvocationStrategy.STATIC

    @property
    def capture_count(self) -> int:
        """Number of captured values supplied at each evaluation."""
        return len(self.captured_types)

    def describe(self) -> str:
        """Describe the plan on one line."""
        params = ", ".join(p.describe() for p in self.param_types)
        text = f"{self.strategy.name} {self.reference_kind.name} ({params}) -> {self.return_type.describe()}"
        if self.captured_types:
            captures = ", ".join(c.describe() for c in self.captured_types)
            text += f" capturing [{captures}]"

        return text
