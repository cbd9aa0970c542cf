"""Type table for the lambdac compiler.

The type table is the shared metadata for a compilation unit.  It records the
class hierarchy, the interface declarations and the members of each class, and
it answers assignability questions.  It also interns types to the opaque
numeric ids written into call-site descriptors.

The table is built up front and then frozen.  After freezing, declarations are
rejected; only type-id interning still changes state, and that is guarded by a
lock so analyses of independent literals can run concurrently.
"""

from collections import deque
from dataclasses import dataclass, field
import threading
from typing import Dict, Iterable, List, Set, Tuple

from lambdac.lambdac_error import LambdacMetadataError
from lambdac.lambdac_interface import LambdacInterfaceType
from lambdac.lambdac_types import (
    LambdacType, LambdacPrimitiveType, LambdacClassType, LambdacTypeVariable, LambdacMember,
    BYTE, SHORT, CHAR, INT, LONG, FLOAT, DOUBLE, VOID, OBJECT, STRING,
    PRIMITIVE_TYPES, BOXED_TYPES, CONSTRUCTOR_NAME
)


# Primitive widening conversions (source -> permitted targets)
_WIDENING: Dict[LambdacPrimitiveType, Tuple[LambdacPrimitiveType, ...]] = {
    BYTE: (SHORT, INT, LONG, FLOAT, DOUBLE),
    SHORT: (INT, LONG, FLOAT, DOUBLE),
    CHAR: (INT, LONG, FLOAT, DOUBLE),
    INT: (LONG, FLOAT, DOUBLE),
    LONG: (FLOAT, DOUBLE),
    FLOAT: (DOUBLE,),
}


@dataclass
class LambdacClassInfo:
    """Declaration details for a class or interface known to the type table."""
    name: str
    type_params: Tuple[LambdacTypeVariable, ...] = ()
    supertypes: Tuple[LambdacClassType, ...] = ()
    members: List[LambdacMember] = field(default_factory=list)
    is_interface: bool = False


class LambdacTypeTable:
    """
    Shared, freezable metadata for one compilation unit.

    Example usage:
        table = LambdacTypeTable()
        table.declare_class("Server", members=[...])
        table.declare_interface(predicate)
        table.freeze()

        table.is_assignable(LambdacClassType("Server"), OBJECT)  # True
    """

    def __init__(self) -> None:
        """Initialize the table with primitives, Object, String and the boxed types."""
        self._classes: Dict[str, LambdacClassInfo] = {}
        self._interfaces: Dict[str, LambdacInterfaceType] = {}
        self._type_ids: Dict[LambdacType, int] = {}
        self._types_by_id: Dict[int, LambdacType] = {}
        self._next_type_id = 1
        self._lock = threading.Lock()
        self._frozen = False

        for primitive in PRIMITIVE_TYPES:
            self.type_id(primitive)

        self._classes[OBJECT.name] = LambdacClassInfo(name=OBJECT.name)
        self.declare_class(STRING.name)
        for boxed in BOXED_TYPES.values():
            self.declare_class(boxed.name)

    @property
    def is_frozen(self) -> bool:
        """True once the metadata has been frozen."""
        return self._frozen

    def freeze(self) -> None:
        """Freeze the metadata; further declarations are rejected."""
        self._frozen = True

    def _check_mutable(self, what: str) -> None:
        if self._frozen:
            raise LambdacMetadataError(
                message=f"Cannot declare {what} after the type table has been frozen",
                suggestion="Declare all classes and interfaces before any literal is analyzed"
            )

    def declare_class(
        self,
        name: str,
        type_params: Tuple[LambdacTypeVariable, ...] = (),
        supertypes: Iterable[LambdacClassType] = (),
        members: Iterable[LambdacMember] = ()
    ) -> LambdacClassType:
        """
        Declare a class.

        Args:
            name: Class name
            type_params: Type parameters of the class
            supertypes: Direct supertypes (Object is implied)
            members: Methods and constructors declared by the class

        Returns:
            The raw class type for the declared class

        Raises:
            LambdacMetadataError: If the table is frozen or the name is already declared
        """
        self._check_mutable(f"class '{name}'")
        if name in self._classes:
            raise LambdacMetadataError(message=f"Type '{name}' is already declared")

        self._classes[name] = LambdacClassInfo(
            name=name,
            type_params=tuple(type_params),
            supertypes=tuple(supertypes) or (OBJECT,),
            members=list(members)
        )
        return LambdacClassType(name)

    def declare_interface(self, interface: LambdacInterfaceType) -> LambdacClassType:
        """
        Declare an interface.

        The interface's abstract and default methods become instance members and
        its static methods become static members, so member references such as
        Predicate::test resolve against them.

        Args:
            interface: Interface declaration

        Returns:
            The raw class type naming the interface

        Raises:
            LambdacMetadataError: If the table is frozen or the name is already declared
        """
        self._check_mutable(f"interface '{interface.name}'")
        if interface.name in self._classes:
            raise LambdacMetadataError(message=f"Type '{interface.name}' is already declared")

        members: List[LambdacMember] = []
        for method in interface.abstract_methods + interface.default_methods:
            members.append(LambdacMember(interface.name, method.name, method.param_types, method.return_type))

        for method in interface.static_methods:
            members.append(
                LambdacMember(interface.name, method.name, method.param_types, method.return_type, is_static=True)
            )

        self._interfaces[interface.name] = interface
        self._classes[interface.name] = LambdacClassInfo(
            name=interface.name,
            type_params=interface.type_params,
            members=members,
            is_interface=True
        )
        return LambdacClassType(interface.name)

    def add_member(self, member: LambdacMember) -> None:
        """Add a member to an already declared class."""
        self._check_mutable(f"member '{member.name}'")
        info = self._classes.get(member.owner)
        if info is None:
            raise LambdacMetadataError(message=f"Cannot add member to undeclared type '{member.owner}'")

        info.members.append(member)

    def lookup_interface(self, name: str) -> LambdacInterfaceType | None:
        """Get the interface declared under the given name, if any."""
        return self._interfaces.get(name)

    def is_declared(self, name: str) -> bool:
        """Return True if a class or interface with this name is declared."""
        return name in self._classes

    def supertypes(self, class_type: LambdacClassType) -> Tuple[LambdacClassType, ...]:
        """
        Get the direct supertypes of a class type with its type arguments applied.

        Interfaces report their parent interfaces; everything else reports the
        declared supertypes.
        """
        info = self._classes.get(class_type.name)
        if info is None or class_type.name == OBJECT.name:
            return ()

        bindings = self._bindings_for(info, class_type)
        if info.is_interface:
            interface = self._interfaces[class_type.name]
            parents = tuple(
                LambdacClassType(parent.interface.name, tuple(arg.substitute(bindings) for arg in parent.type_args))
                for parent in interface.parents
            )
            return parents or (OBJECT,)

        return tuple(supertype.substitute(bindings) for supertype in info.supertypes)

    def _bindings_for(self, info: LambdacClassInfo, class_type: LambdacClassType) -> Dict[str, LambdacType]:
        if not class_type.type_args:
            return {param.name: param.erase() for param in info.type_params}

        return {param.name: arg for param, arg in zip(info.type_params, class_type.type_args)}

    def is_assignable(self, source: LambdacType, target: LambdacType) -> bool:
        """
        Determine whether a value of the source type may be assigned to the target type.

        Covers identity, primitive widening, boxing and unboxing, subtyping
        through the declared hierarchy, and type variables (via their bounds).
        Type arguments are invariant; raw types match any parameterization.
        """
        if source == target:
            return True

        if source == VOID or target == VOID:
            return False

        if isinstance(source, LambdacPrimitiveType):
            if isinstance(target, LambdacPrimitiveType):
                return target in _WIDENING.get(source, ())

            boxed = BOXED_TYPES.get(source)
            return boxed is not None and self.is_assignable(boxed, target)

        if isinstance(target, LambdacPrimitiveType):
            for primitive, boxed in BOXED_TYPES.items():
                if isinstance(source, LambdacClassType) and source.name == boxed.name:
                    return self.is_assignable(primitive, target)

            return False

        if isinstance(target, LambdacTypeVariable):
            # Unsubstituted type variables accept anything within their bound
            return self.is_assignable(source, target.erase())

        if isinstance(source, LambdacTypeVariable):
            return self.is_assignable(source.bound or OBJECT, target)

        assert isinstance(source, LambdacClassType) and isinstance(target, LambdacClassType)
        if target.name == OBJECT.name:
            return True

        return self._is_subclass(source, target)

    def _is_subclass(self, source: LambdacClassType, target: LambdacClassType) -> bool:
        queue = deque([source])
        seen: Set[LambdacClassType] = set()
        while queue:
            current = queue.popleft()
            if current in seen:
                continue

            seen.add(current)
            if current.name == target.name:
                if not current.type_args or not target.type_args:
                    return True

                if current.type_args == target.type_args:
                    return True

                continue

            queue.extend(self.supertypes(current))

        return False

    def is_mutually_assignable(self, first: LambdacType, second: LambdacType) -> bool:
        """Return True if each type is assignable to the other."""
        if first == VOID or second == VOID:
            return first == second

        return self.is_assignable(first, second) and self.is_assignable(second, first)

    def members_named(self, type_name: str, name: str) -> List[LambdacMember]:
        """
        Get the methods with the given name that a type declares or inherits.

        Static methods are only reported for the type that declares them.
        Methods overridden in a subtype hide the inherited declaration.

        Args:
            type_name: Name of the class or interface
            name: Method name

        Returns:
            Matching members, most derived first
        """
        result: List[LambdacMember] = []
        seen_keys: Set[Tuple[Tuple[LambdacType, ...], bool]] = set()
        queue = deque([LambdacClassType(type_name)])
        visited: Set[str] = set()
        is_declaring_type = True
        while queue:
            current = queue.popleft()
            if current.name in visited:
                continue

            visited.add(current.name)
            info = self._classes.get(current.name)
            if info is None:
                continue

            for member in info.members:
                if member.name != name or member.is_constructor:
                    continue

                if member.is_static and not is_declaring_type:
                    continue

                key = (tuple(p.erase() for p in member.param_types), member.is_static)
                if key in seen_keys:
                    continue

                seen_keys.add(key)
                result.append(member)

            is_declaring_type = False
            queue.extend(self.supertypes(current))

        return result

    def constructors_of(self, type_name: str) -> List[LambdacMember]:
        """Get the constructors declared by a class."""
        info = self._classes.get(type_name)
        if info is None or info.is_interface:
            return []

        return [member for member in info.members if member.is_constructor]

    def type_id(self, lambdac_type: LambdacType) -> int:
        """
        Get the opaque id for a type, interning it on first use.

        Args:
            lambdac_type: Type to intern

        Returns:
            Id that maps back to the same type via type_for_id
        """
        with self._lock:
            type_id = self._type_ids.get(lambdac_type)
            if type_id is None:
                type_id = self._next_type_id
                self._next_type_id += 1
                self._type_ids[lambdac_type] = type_id
                self._types_by_id[type_id] = lambdac_type

            return type_id

    def type_for_id(self, type_id: int) -> LambdacType:
        """
        Get the type interned under an id.

        Raises:
            LambdacMetadataError: If no type has been interned under that id
        """
        with self._lock:
            lambdac_type = self._types_by_id.get(type_id)

        if lambdac_type is None:
            raise LambdacMetadataError(message=f"Unknown type id {type_id}")

        return lambdac_type


def constructor(owner: str, *param_types: LambdacType) -> LambdacMember:
    """Build a constructor member for the given owner class."""
    return LambdacMember(owner, CONSTRUCTOR_NAME, tuple(param_types), LambdacClassType(owner), is_constructor=True)


def method(
    owner: str,
    name: str,
    param_types: Tuple[LambdacType, ...],
    return_type: LambdacType,
    is_static: bool = False
) -> LambdacMember:
    """Build a method member for the given owner class."""
    return LambdacMember(owner, name, tuple(param_types), return_type, is_static=is_static)
