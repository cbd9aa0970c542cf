"""Interface shape validation - decides whether an interface is a SAM type.

An interface qualifies as a single-abstract-method (SAM) type when the abstract
methods it declares or inherits, after override unification, reduce to exactly
one method obligation.  Default and static methods never count, and neither do
redeclarations of the methods every object already implements (equals,
hashCode, toString).

Override unification keys each abstract method by its erased signature
identity (name plus erased parameter types).  Methods with the same key
collapse into one entry no matter how many interfaces declare them, which is
what makes diamond inheritance work: two parents independently declaring
apply() leave the child with a single obligation.
"""

import logging
import threading
from typing import Dict, List, Tuple

from lambdac.lambdac_error import LambdacShapeError, LambdacShapeErrorType
from lambdac.lambdac_interface import (
    LambdacFunctionalSignature, LambdacInterfaceType, LambdacMethodSignature, OBJECT_METHOD_KEYS
)
from lambdac.lambdac_type_table import LambdacTypeTable
from lambdac.lambdac_types import LambdacType


_SignatureKey = Tuple[str, Tuple[LambdacType, ...]]


class LambdacInterfaceShapeValidator:
    """
    Validates interfaces as functional (SAM) targets.

    Results are memoised per (interface, type arguments).  The memo and the
    record of cyclic interface families are shared by every analysis that uses
    this validator, so access to them is serialised with a lock.
    """

    def __init__(self, type_table: LambdacTypeTable | None = None) -> None:
        """
        Initialize the validator.

        Args:
            type_table: Type table used to compare return types of unified
                methods; without one, return types must match exactly
        """
        self.type_table = type_table
        self._cache: Dict[Tuple[LambdacInterfaceType, Tuple[LambdacType, ...]],
                          LambdacFunctionalSignature | LambdacShapeError] = {}
        self._cyclic_families: Dict[LambdacInterfaceType, LambdacShapeError] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger("LambdacInterfaceShapeValidator")

    def validate(
        self,
        interface: LambdacInterfaceType,
        type_args: Tuple[LambdacType, ...] = ()
    ) -> LambdacFunctionalSignature:
        """
        Validate an interface and extract its functional signature.

        Args:
            interface: Interface to validate
            type_args: Type arguments for the interface's type parameters; an
                empty tuple means raw use (parameters are erased)

        Returns:
            The unique abstract method with type arguments substituted

        Raises:
            LambdacShapeError: If the interface has no abstract method, more than
                one, or sits on an inheritance cycle
        """
        key = (interface, tuple(type_args))
        with self._lock:
            cached = self._cache.get(key)
            poisoned = self._cyclic_families.get(interface)

        if poisoned is not None:
            raise poisoned

        if cached is not None:
            if isinstance(cached, LambdacShapeError):
                raise cached

            return cached

        try:
            result = self._validate(interface, tuple(type_args))

        except LambdacShapeError as e:
            with self._lock:
                self._cache[key] = e

            raise

        with self._lock:
            self._cache[key] = result

        self._logger.debug("Interface %s is functional: %s", interface.name, result.describe())
        return result

    def is_functional(self, interface: LambdacInterfaceType, type_args: Tuple[LambdacType, ...] = ()) -> bool:
        """Return True if the interface is a SAM type; cycles still propagate."""
        try:
            self.validate(interface, type_args)

        except LambdacShapeError as e:
            if e.error_type == LambdacShapeErrorType.CYCLIC_INHERITANCE:
                raise

            return False

        return True

    def _validate(
        self,
        interface: LambdacInterfaceType,
        type_args: Tuple[LambdacType, ...]
    ) -> LambdacFunctionalSignature:
        collected: Dict[_SignatureKey, LambdacMethodSignature] = {}
        conflicts: List[str] = []

        self._collect(interface, self._bind(interface, type_args), [], frozenset(), collected, conflicts)

        if not collected:
            raise LambdacShapeError(
                LambdacShapeErrorType.NO_ABSTRACT_METHOD,
                interface.name,
                message=f"Interface '{interface.name}' has no abstract method",
                expected="Exactly one abstract method (default, static and Object methods do not count)",
                suggestion="A functional target needs a single abstract method for the literal to implement"
            )

        if len(collected) > 1 or conflicts:
            signatures = [signature.describe() for signature in collected.values()] + conflicts
            raise LambdacShapeError(
                LambdacShapeErrorType.MULTIPLE_ABSTRACT_METHODS,
                interface.name,
                message=f"Interface '{interface.name}' has more than one abstract method",
                conflicting=signatures,
                received="Abstract methods: " + "; ".join(signatures),
                expected="Exactly one abstract method after override unification",
                suggestion="Provide default implementations for all but one method, "
                    "or use an interface with a single abstract method"
            )

        signature = next(iter(collected.values()))
        return LambdacFunctionalSignature(
            interface_name=interface.name,
            method_name=signature.name,
            param_types=signature.param_types,
            return_type=signature.return_type
        )

    def _bind(self, interface: LambdacInterfaceType, type_args: Tuple[LambdacType, ...]) -> Dict[str, LambdacType]:
        """Map type parameters to arguments, erasing parameters that have no argument."""
        bindings: Dict[str, LambdacType] = {}
        for index, param in enumerate(interface.type_params):
            bindings[param.name] = type_args[index] if index < len(type_args) else param.erase()

        return bindings

    def _collect(
        self,
        interface: LambdacInterfaceType,
        bindings: Dict[str, LambdacType],
        path: List[LambdacInterfaceType],
        masked: frozenset,
        collected: Dict[_SignatureKey, LambdacMethodSignature],
        conflicts: List[str]
    ) -> None:
        """
        Depth-first walk collecting abstract obligations.

        Args:
            interface: Interface being visited
            bindings: Type variable bindings for this interface
            path: Interfaces on the walk path from the root (for cycle detection)
            masked: Keys of default methods declared by interfaces below this one
            collected: Abstract methods found so far, keyed by erased signature
            conflicts: Descriptions of same-key methods with incompatible returns
        """
        with self._lock:
            poisoned = self._cyclic_families.get(interface)

        if poisoned is not None:
            raise poisoned

        if interface in path:
            self._raise_cycle(path[path.index(interface):] + [interface])

        path = path + [interface]

        for declared in interface.abstract_methods:
            signature = declared.substitute(bindings)
            key = signature.erased_key()
            if key in OBJECT_METHOD_KEYS or key in masked:
                continue

            self._merge(collected, key, signature, conflicts)

        own_defaults = frozenset(method.substitute(bindings).erased_key() for method in interface.default_methods)
        parent_masked = masked | own_defaults

        for parent in interface.parents:
            parent_args = tuple(arg.substitute(bindings) for arg in parent.type_args)
            self._collect(
                parent.interface,
                self._bind(parent.interface, parent_args),
                path,
                parent_masked,
                collected,
                conflicts
            )

    def _merge(
        self,
        collected: Dict[_SignatureKey, LambdacMethodSignature],
        key: _SignatureKey,
        signature: LambdacMethodSignature,
        conflicts: List[str]
    ) -> None:
        """Unify a signature with any existing entry that has the same key."""
        existing = collected.get(key)
        if existing is None:
            collected[key] = signature
            return

        if existing.return_type == signature.return_type:
            return

        if self._returns_compatible(signature.return_type, existing.return_type):
            collected[key] = signature
            return

        if self._returns_compatible(existing.return_type, signature.return_type):
            return

        conflicts.append(f"{signature.describe()} (return type incompatible with {existing.describe()})")

    def _returns_compatible(self, specific: LambdacType, general: LambdacType) -> bool:
        if self.type_table is None:
            return specific == general

        return self.type_table.is_assignable(specific, general)

    def _raise_cycle(self, cycle: List[LambdacInterfaceType]) -> None:
        """Record every interface on the cycle as poisoned, then raise."""
        names = [interface.name for interface in cycle]
        error = LambdacShapeError(
            LambdacShapeErrorType.CYCLIC_INHERITANCE,
            names[0],
            message=f"Interface '{names[0]}' inherits from itself",
            conflicting=names,
            received="Inheritance cycle: " + " -> ".join(names),
            suggestion="Remove one of the parent links so the interface graph is acyclic"
        )

        with self._lock:
            for interface in cycle:
                self._cyclic_families.setdefault(interface, error)

        self._logger.warning("Inheritance cycle detected: %s", " -> ".join(names))
        raise error
