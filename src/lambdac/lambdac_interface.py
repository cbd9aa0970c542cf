"""Interface metadata for the lambdac compiler.

Interfaces are declared by the surface parser and registered with the type
table.  They may be mutated while the metadata is being built (parents can be
attached after creation), but the type table is frozen before any literal is
analysed, after which they are treated as read-only.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from lambdac.lambdac_types import LambdacClassType, LambdacType, LambdacTypeVariable, OBJECT, INT, STRING, BOOLEAN


@dataclass(frozen=True)
class LambdacMethodSignature:
    """A method signature: name, ordered parameter types and return type."""
    name: str
    param_types: Tuple[LambdacType, ...]
    return_type: LambdacType

    @property
    def arity(self) -> int:
        """Number of parameters."""
        return len(self.param_types)

    def erased_key(self) -> Tuple[str, Tuple[LambdacType, ...]]:
        """
        Get the override identity of this signature.

        Two signatures with the same key describe the same method obligation;
        return types are compared separately by the shape validator.
        """
        return (self.name, tuple(p.erase() for p in self.param_types))

    def substitute(self, bindings: Dict[str, LambdacType]) -> 'LambdacMethodSignature':
        """Apply type variable bindings to parameter and return types."""
        if not bindings:
            return self

        return LambdacMethodSignature(
            self.name,
            tuple(p.substitute(bindings) for p in self.param_types),
            self.return_type.substitute(bindings)
        )

    def describe(self) -> str:
        """Describe the signature as name(params) -> return."""
        params = ", ".join(p.describe() for p in self.param_types)
        return f"{self.name}({params}) -> {self.return_type.describe()}"


@dataclass(frozen=True)
class LambdacFunctionalSignature:
    """The unique abstract method of a SAM interface after generic substitution."""
    interface_name: str
    method_name: str
    param_types: Tuple[LambdacType, ...]
    return_type: LambdacType

    @property
    def arity(self) -> int:
        """Number of parameters."""
        return len(self.param_types)

    def describe(self) -> str:
        """Describe the signature as Interface.method(params) -> return."""
        params = ", ".join(p.describe() for p in self.param_types)
        return f"{self.interface_name}.{self.method_name}({params}) -> {self.return_type.describe()}"


@dataclass(eq=False)
class LambdacInterfaceType:
    """
    A nominal interface declaration.

    Interfaces compare by identity: two declarations with the same name are
    still distinct declarations.
    """
    name: str
    type_params: Tuple[LambdacTypeVariable, ...] = ()
    abstract_methods: List[LambdacMethodSignature] = field(default_factory=list)
    default_methods: List[LambdacMethodSignature] = field(default_factory=list)
    static_methods: List[LambdacMethodSignature] = field(default_factory=list)
    parents: List['LambdacParentInterface'] = field(default_factory=list)

    def extend(self, parent: 'LambdacInterfaceType', *type_args: LambdacType) -> 'LambdacInterfaceType':
        """
        Add a parent interface.

        Args:
            parent: Parent interface declaration
            type_args: Type arguments supplied to the parent's type parameters

        Returns:
            self, so declarations can be chained
        """
        self.parents.append(LambdacParentInterface(parent, tuple(type_args)))
        return self

    def as_type(self, *type_args: LambdacType) -> LambdacClassType:
        """Get a class type naming this interface with the given type arguments."""
        return LambdacClassType(self.name, tuple(type_args))

    def __repr__(self) -> str:
        return f"LambdacInterfaceType({self.name})"


@dataclass(frozen=True)
class LambdacParentInterface:
    """A parent edge in the interface inheritance graph."""
    interface: LambdacInterfaceType
    type_args: Tuple[LambdacType, ...] = ()


# Methods every object already implements; redeclaring them in an interface
# never creates an abstract obligation.
OBJECT_METHODS: Tuple[LambdacMethodSignature, ...] = (
    LambdacMethodSignature("equals", (OBJECT,), BOOLEAN),
    LambdacMethodSignature("hashCode", (), INT),
    LambdacMethodSignature("toString", (), STRING),
)

OBJECT_METHOD_KEYS = frozenset(method.erased_key() for method in OBJECT_METHODS)
