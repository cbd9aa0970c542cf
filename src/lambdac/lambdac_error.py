"""Exception classes for the lambdac compiler with detailed context."""

from enum import Enum
from typing import Any, List


class LambdacError(Exception):
    """Base exception for lambdac errors with detailed context information."""

    def __init__(
        self,
        message: str,
        context: str | None = None,
        expected: str | None = None,
        received: str | None = None,
        suggestion: str | None = None,
        example: str | None = None,
        line: int | None = None,
        column: int | None = None,
        source_file: str = ""
    ):
        """
        Initialize detailed error.

        Args:
            message: Core error description
            context: Additional context information
            expected: What was expected
            received: What was actually received
            suggestion: Suggestion for fixing the error
            example: Example of correct usage
            line: Line number (1-indexed)
            column: Column number (1-indexed)
            source_file: Source file the offending node came from
        """
        self.message = message
        self.context = context
        self.expected = expected
        self.received = received
        self.suggestion = suggestion
        self.example = example
        self.line = line
        self.column = column
        self.source_file = source_file

        super().__init__(self._format_detailed_message())

    def _format_location(self) -> str | None:
        """Format the source location, if one is known."""
        if self.line is None:
            return None

        location = f"Line {self.line}"
        if self.column is not None:
            location += f", Column {self.column}"

        if self.source_file:
            location = f"{self.source_file}: {location}"

        return location

    def _format_detailed_message(self) -> str:
        """Format the error message with all available details."""
        parts = [f"Error: {self.message}"]

        location = self._format_location()
        if location is not None:
            parts.append(f"Location: {location}")

        if self.received:
            parts.append(f"Received: {self.received}")

        if self.expected:
            parts.append(f"Expected: {self.expected}")

        if self.context:
            parts.append(f"Context: {self.context}")

        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")

        if self.example:
            parts.append(f"Example: {self.example}")

        return "\n".join(parts)


class LambdacShapeErrorType(Enum):
    """Reasons an interface cannot be used as a functional target."""
    NO_ABSTRACT_METHOD = "no_abstract_method"
    MULTIPLE_ABSTRACT_METHODS = "multiple_abstract_methods"
    CYCLIC_INHERITANCE = "cyclic_inheritance"


class LambdacShapeError(LambdacError):
    """Interface is not a single-abstract-method type."""

    def __init__(
        self,
        error_type: LambdacShapeErrorType,
        interface_name: str,
        message: str,
        conflicting: List[str] | None = None,
        **kwargs: Any
    ):
        """
        Initialize shape error.

        Args:
            error_type: Which shape rule failed
            interface_name: Name of the interface being validated
            message: Core error description
            conflicting: Conflicting signatures (or the cycle path for cycles)
            **kwargs: Additional error context
        """
        self.error_type = error_type
        self.interface_name = interface_name
        self.conflicting = list(conflicting or [])
        super().__init__(message, **kwargs)


class LambdacResolutionErrorType(Enum):
    """Reasons a literal or member reference cannot be bound to a target."""
    NOT_FUNCTIONAL = "not_functional"
    AMBIGUOUS_TARGET = "ambiguous_target"
    STATIC_INSTANCE_AMBIGUITY = "static_instance_ambiguity"
    ARITY_MISMATCH = "arity_mismatch"
    PARAMETER_TYPE_MISMATCH = "parameter_type_mismatch"
    RETURN_SHAPE_MISMATCH = "return_shape_mismatch"
    UNRESOLVED_MEMBER = "unresolved_member"
    TIMEOUT = "timeout"


class LambdacResolutionError(LambdacError):
    """Literal or member reference cannot be bound to a functional target."""

    def __init__(
        self,
        error_type: LambdacResolutionErrorType,
        message: str,
        candidates: List[str] | None = None,
        **kwargs: Any
    ):
        """
        Initialize resolution error.

        Args:
            error_type: Which resolution rule failed
            message: Core error description
            candidates: Candidate signatures that were considered
            **kwargs: Additional error context
        """
        self.error_type = error_type
        self.candidates = list(candidates or [])
        if self.candidates and 'context' not in kwargs:
            kwargs['context'] = "Candidates considered:\n    - " + "\n    - ".join(self.candidates)

        super().__init__(message, **kwargs)


class LambdacCaptureErrorType(Enum):
    """Reasons a captured variable is rejected."""
    MUTABLE_CAPTURE = "mutable_capture"


class LambdacCaptureError(LambdacError):
    """A captured local or parameter is reassigned."""

    def __init__(
        self,
        identifier: str,
        assignment_line: int | None = None,
        assignment_column: int | None = None,
        violations: List['LambdacCaptureError'] | None = None,
        **kwargs: Any
    ):
        """
        Initialize mutable capture error.

        Args:
            identifier: Name of the captured variable
            assignment_line: Line of the offending reassignment
            assignment_column: Column of the offending reassignment
            violations: Every mutable capture found in the literal (self included)
            **kwargs: Additional error context
        """
        self.error_type = LambdacCaptureErrorType.MUTABLE_CAPTURE
        self.identifier = identifier
        self.assignment_line = assignment_line
        self.assignment_column = assignment_column
        self.violations: List[LambdacCaptureError] = list(violations or [self])

        site = "unknown location"
        if assignment_line is not None:
            site = f"line {assignment_line}"
            if assignment_column is not None:
                site += f", column {assignment_column}"

        super().__init__(
            message=f"Variable '{identifier}' is captured by a function literal but reassigned",
            received=f"Reassignment of '{identifier}' at {site}",
            expected="Captured variables must be effectively immutable",
            suggestion=f"Remove the reassignment of '{identifier}', or copy it into a new variable "
                "that is never reassigned and capture that instead",
            **kwargs
        )


class LambdacDescriptorError(LambdacError):
    """Call-site descriptor cannot be encoded or decoded."""


class LambdacMetadataError(LambdacError):
    """Type or interface metadata is missing, inconsistent or not frozen."""
