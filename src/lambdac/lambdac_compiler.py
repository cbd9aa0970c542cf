"""lambdac Compiler - Orchestrates functional-type resolution for literals and member references.

For each function literal or member reference the compiler runs, in order:

1. target type resolution (which validates the SAM interface);
2. capture analysis (function literals only);
3. invocation strategy selection;
4. descriptor emission.

Errors never escape compile(): they are collected on the result.  Resolution
and capture errors are both reported for a literal, and an error in one
literal does not affect any other.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Tuple

from lambdac.lambdac_ast import LambdacASTFunctionLiteral
from lambdac.lambdac_capture_analyzer import LambdacCaptureAnalyzer, LambdacCaptureSet
from lambdac.lambdac_descriptor import LambdacDescriptorEmitter, LambdacEmittedCallSite
from lambdac.lambdac_error import (
    LambdacError, LambdacCaptureError, LambdacMetadataError, LambdacResolutionError, LambdacResolutionErrorType
)
from lambdac.lambdac_interface_shape_validator import LambdacInterfaceShapeValidator
from lambdac.lambdac_invocation_plan import LambdacInvocationPlan
from lambdac.lambdac_invocation_strategy_selector import LambdacInvocationStrategySelector
from lambdac.lambdac_target_type_resolver import (
    LambdacTargetTypeResolver, LambdacResolvedBinding, LambdacFunctionalNode, LambdacResolutionContext
)
from lambdac.lambdac_type_table import LambdacTypeTable


@dataclass
class LambdacCompileResult:
    """Outcome of compiling one literal or member reference."""
    node: LambdacFunctionalNode
    binding: LambdacResolvedBinding | None = None
    capture_set: LambdacCaptureSet | None = None
    plan: LambdacInvocationPlan | None = None
    call_site: LambdacEmittedCallSite | None = None
    errors: List[LambdacError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if compilation produced a call site without errors."""
        return not self.errors and self.call_site is not None


class _DeadlineExceeded(Exception):
    """Internal signal that a literal ran past its deadline."""


class LambdacCompiler:
    """
    Main pass manager for functional call sites.

    Example usage:
        compiler = LambdacCompiler(type_table)
        result = compiler.compile(literal, predicate.as_type(server_type))
        if result.ok:
            emit(result.call_site.descriptor)
    """

    def __init__(
        self,
        type_table: LambdacTypeTable,
        deadline: float | None = None,
        max_workers: int = 1,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize the compiler with all passes.

        Args:
            type_table: Frozen metadata for the compilation unit
            deadline: Optional time limit in seconds for each literal
            max_workers: Number of threads used by compile_unit
            clock: Time source for the deadline, in seconds

        Raises:
            LambdacMetadataError: If the type table has not been frozen
        """
        if not type_table.is_frozen:
            raise LambdacMetadataError(
                message="The type table must be frozen before compilation",
                suggestion="Call freeze() once all classes and interfaces are declared"
            )

        self.type_table = type_table
        self.deadline = deadline
        self.max_workers = max(1, max_workers)
        self.clock = clock

        self.shape_validator = LambdacInterfaceShapeValidator(type_table)
        self.resolver = LambdacTargetTypeResolver(type_table, self.shape_validator)
        self.capture_analyzer = LambdacCaptureAnalyzer()
        self.selector = LambdacInvocationStrategySelector(self.shape_validator)
        self.emitter = LambdacDescriptorEmitter(type_table)

        self._logger = logging.getLogger("LambdacCompiler")

    def compile(self, node: LambdacFunctionalNode, context: LambdacResolutionContext) -> LambdacCompileResult:
        """
        Compile one function literal or member reference.

        Args:
            node: Literal or member reference
            context: Expected type, or the overload candidates of the enclosing call

        Returns:
            The compile result; errors are collected on it, never raised
        """
        result = LambdacCompileResult(node)
        started = self.clock()

        try:
            self._run(result, context, started)

        except _DeadlineExceeded:
            if isinstance(node, LambdacASTFunctionLiteral):
                node.analysis.clear()

            result.binding = None
            result.capture_set = None
            result.plan = None
            result.call_site = None
            result.errors.append(LambdacResolutionError(
                LambdacResolutionErrorType.TIMEOUT,
                f"Analysis of '{node.describe()}' exceeded the {self.deadline}s deadline",
                line=node.line,
                column=node.column,
                source_file=node.source_file
            ))

        for error in result.errors:
            self._logger.warning("%s: %s", node.describe(), error.message)

        return result

    def _check_deadline(self, started: float) -> None:
        if self.deadline is not None and self.clock() - started > self.deadline:
            raise _DeadlineExceeded()

    def _run(self, result: LambdacCompileResult, context: LambdacResolutionContext, started: float) -> None:
        node = result.node
        try:
            result.binding = self.resolver.resolve(node, context)

        except LambdacError as e:
            result.errors.append(e)

        self._check_deadline(started)

        if isinstance(node, LambdacASTFunctionLiteral):
            try:
                result.capture_set = self.capture_analyzer.analyze(node)

            except LambdacCaptureError as e:
                result.errors.extend(e.violations)

            self._check_deadline(started)

        if result.errors or result.binding is None:
            return

        try:
            result.plan = self.selector.select(result.binding, result.capture_set)
            self._check_deadline(started)
            result.call_site = self.emitter.emit(result.plan)

        except LambdacError as e:
            result.plan = None
            result.errors.append(e)

        self._check_deadline(started)

    def compile_unit(
        self,
        items: Iterable[Tuple[LambdacFunctionalNode, LambdacResolutionContext]]
    ) -> List[LambdacCompileResult]:
        """
        Compile independent literals and member references.

        With max_workers > 1 the items are compiled concurrently.  Results are
        returned in input order either way.

        Args:
            items: (node, context) pairs

        Returns:
            One result per item
        """
        work = list(items)
        if self.max_workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(lambda item: self.compile(*item), work))

        else:
            results = [self.compile(node, context) for node, context in work]

        failed = sum(1 for result in results if result.errors)
        self._logger.info("Compiled %d call site(s), %d with errors", len(results), failed)
        return results
