"""Type model for the lambdac functional-type compiler.

Types are immutable value objects with structural equality.  They are used in
method signatures, binding frames and invocation plans, and are interned to
opaque numeric ids by the type table when descriptors are emitted.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class LambdacType(ABC):
    """Abstract base class for all lambdac types."""

    @abstractmethod
    def describe(self) -> str:
        """Describe the type in source-like notation."""

    def erase(self) -> 'LambdacType':
        """Return the erasure of this type."""
        return self

    def substitute(self, bindings: Dict[str, 'LambdacType']) -> 'LambdacType':
        """
        Replace type variables using the given bindings.

        Args:
            bindings: Mapping from type variable name to replacement type

        Returns:
            The substituted type (self if nothing changes)
        """
        return self

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class LambdacPrimitiveType(LambdacType):
    """A primitive type such as int or boolean (void included)."""
    name: str

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class LambdacClassType(LambdacType):
    """A nominal class or interface type, optionally parameterized."""
    name: str
    type_args: Tuple[LambdacType, ...] = ()

    def describe(self) -> str:
        if not self.type_args:
            return self.name

        args = ", ".join(arg.describe() for arg in self.type_args)
        return f"{self.name}<{args}>"

    def erase(self) -> 'LambdacClassType':
        if not self.type_args:
            return self

        return LambdacClassType(self.name)

    def substitute(self, bindings: Dict[str, LambdacType]) -> 'LambdacClassType':
        if not self.type_args:
            return self

        return LambdacClassType(self.name, tuple(arg.substitute(bindings) for arg in self.type_args))


@dataclass(frozen=True)
class LambdacTypeVariable(LambdacType):
    """A type variable declared by a generic interface or class."""
    name: str
    bound: LambdacType | None = None  # None means Object

    def describe(self) -> str:
        return self.name

    def erase(self) -> LambdacType:
        if self.bound is None:
            return OBJECT

        return self.bound.erase()

    def substitute(self, bindings: Dict[str, LambdacType]) -> LambdacType:
        return bindings.get(self.name, self)


@dataclass(frozen=True)
class LambdacMember:
    """
    A method or constructor declared by a class.

    Constructors use the name "<init>" and return their owner type.
    """
    owner: str
    name: str
    param_types: Tuple[LambdacType, ...]
    return_type: LambdacType
    is_static: bool = False
    is_constructor: bool = False

    @property
    def arity(self) -> int:
        """Number of declared parameters."""
        return len(self.param_types)

    def describe(self) -> str:
        """Describe the member as Owner::name(params) -> return."""
        params = ", ".join(p.describe() for p in self.param_types)
        name = "new" if self.is_constructor else self.name
        prefix = "static " if self.is_static else ""
        return f"{prefix}{self.owner}::{name}({params}) -> {self.return_type.describe()}"


CONSTRUCTOR_NAME = "<init>"

VOID = LambdacPrimitiveType("void")
BOOLEAN = LambdacPrimitiveType("boolean")
BYTE = LambdacPrimitiveType("byte")
SHORT = LambdacPrimitiveType("short")
CHAR = LambdacPrimitiveType("char")
INT = LambdacPrimitiveType("int")
LONG = LambdacPrimitiveType("long")
FLOAT = LambdacPrimitiveType("float")
DOUBLE = LambdacPrimitiveType("double")

OBJECT = LambdacClassType("Object")
STRING = LambdacClassType("String")

PRIMITIVE_TYPES: Tuple[LambdacPrimitiveType, ...] = (VOID, BOOLEAN, BYTE, SHORT, CHAR, INT, LONG, FLOAT, DOUBLE)

# Wrapper class for each primitive value type
BOXED_TYPES: Dict[LambdacPrimitiveType, LambdacClassType] = {
    BOOLEAN: LambdacClassType("Boolean"),
    BYTE: LambdacClassType("Byte"),
    SHORT: LambdacClassType("Short"),
    CHAR: LambdacClassType("Character"),
    INT: LambdacClassType("Integer"),
    LONG: LambdacClassType("Long"),
    FLOAT: LambdacClassType("Float"),
    DOUBLE: LambdacClassType("Double"),
}


def is_void(lambdac_type: LambdacType) -> bool:
    """Return True if the type is void."""
    return lambdac_type == VOID
