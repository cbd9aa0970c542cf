"""Lexical scope chains for function literals.

A literal's enclosing scope is a chain of binding frames, innermost first:
local frames for each enclosing block, a parameter frame for the enclosing
method, and an instance frame for the enclosing class.  Lookups search the
innermost frame first, so an inner binding shadows any outer binding of the
same name.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Tuple

from lambdac.lambdac_ast import LambdacASTBlock, LambdacASTLocalVariable
from lambdac.lambdac_types import LambdacType


class LambdacFrameKind(Enum):
    """Where a binding lives."""
    INSTANCE = "instance"
    PARAMETER = "parameter"
    LOCAL = "local"


@dataclass(frozen=True)
class LambdacBinding:
    """
    A named binding in a frame.

    For local bindings, declaration is the declaring statement; it marks where
    the effective-immutability scan starts.
    """
    name: str
    binding_type: LambdacType
    declaration: LambdacASTLocalVariable | None = None
    is_static: bool = False

    def __repr__(self) -> str:
        return f"LambdacBinding({self.name}: {self.binding_type.describe()})"


@dataclass(frozen=True)
class LambdacBindingFrame:
    """
    A frame of bindings.

    Parameter and local frames carry the block that bounds the lifetime of
    their variables.  Instance frames carry the enclosing instance type.
    """
    kind: LambdacFrameKind
    bindings: Tuple[LambdacBinding, ...] = ()
    block: LambdacASTBlock | None = None
    instance_type: LambdacType | None = None

    def lookup_local(self, name: str) -> LambdacBinding | None:
        """
        Look up a binding only in this frame.

        Args:
            name: Binding name

        Returns:
            The binding if this frame declares it, None otherwise
        """
        for binding in self.bindings:
            if binding.name == name:
                return binding

        return None

    def __repr__(self) -> str:
        names = [binding.name for binding in self.bindings]
        return f"LambdacBindingFrame({self.kind.value}, {names})"


@dataclass(frozen=True)
class LambdacScopeEntry:
    """Result of resolving a name: the owning frame and the binding."""
    frame: LambdacBindingFrame
    binding: LambdacBinding


@dataclass(frozen=True)
class LambdacLexicalScope:
    """
    An immutable chain of binding frames.

    Example usage:
        scope = LambdacLexicalScope.of(
            LambdacBindingFrame(LambdacFrameKind.INSTANCE, instance_type=service_type),
            LambdacBindingFrame(LambdacFrameKind.PARAMETER, (LambdacBinding("server", server_type),), body),
        )
        entry = scope.lookup("server")  # parameter frame wins over the instance frame
    """
    frames: Tuple[LambdacBindingFrame, ...] = ()  # Outermost first

    @classmethod
    def of(cls, *frames: LambdacBindingFrame) -> 'LambdacLexicalScope':
        """Build a scope from frames listed outermost first."""
        return cls(tuple(frames))

    def push(self, frame: LambdacBindingFrame) -> 'LambdacLexicalScope':
        """Get a new scope with an additional innermost frame."""
        return LambdacLexicalScope(self.frames + (frame,))

    def innermost_first(self) -> Iterator[LambdacBindingFrame]:
        """Iterate over frames from innermost to outermost."""
        return reversed(self.frames)

    def lookup(self, name: str) -> LambdacScopeEntry | None:
        """
        Resolve a name, innermost frame first.

        Args:
            name: Name to resolve

        Returns:
            The owning frame and binding, or None if no frame declares the name
        """
        for frame in self.innermost_first():
            binding = frame.lookup_local(name)
            if binding is not None:
                return LambdacScopeEntry(frame, binding)

        return None

    def enclosing_instance(self) -> LambdacBindingFrame | None:
        """Get the innermost instance frame, if the literal is in an instance context."""
        for frame in self.innermost_first():
            if frame.kind == LambdacFrameKind.INSTANCE:
                return frame

        return None

    def __repr__(self) -> str:
        return f"LambdacLexicalScope(frames={len(self.frames)})"


EMPTY_SCOPE = LambdacLexicalScope()
