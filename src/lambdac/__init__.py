"""lambdac - functional-type resolution and invocation-strategy compiler for function literals."""

# Main API
from lambdac.lambdac_compiler import LambdacCompiler, LambdacCompileResult

# Exceptions (with detailed context)
from lambdac.lambdac_error import (
    LambdacError, LambdacShapeError, LambdacShapeErrorType, LambdacResolutionError, LambdacResolutionErrorType,
    LambdacCaptureError, LambdacCaptureErrorType, LambdacDescriptorError, LambdacMetadataError
)

# Types and metadata
from lambdac.lambdac_types import (
    LambdacType, LambdacPrimitiveType, LambdacClassType, LambdacTypeVariable, LambdacMember,
    VOID, BOOLEAN, BYTE, SHORT, CHAR, INT, LONG, FLOAT, DOUBLE, OBJECT, STRING
)
from lambdac.lambdac_interface import (
    LambdacMethodSignature, LambdacFunctionalSignature, LambdacInterfaceType, LambdacParentInterface
)
from lambdac.lambdac_type_table import LambdacTypeTable, constructor, method
from lambdac.lambdac_scope import (
    LambdacFrameKind, LambdacBinding, LambdacBindingFrame, LambdacLexicalScope, EMPTY_SCOPE
)

# AST node types
from lambdac.lambdac_ast import (
    LambdacReferenceKind, LambdacASTNode, LambdacASTExpression, LambdacASTStatement, LambdacASTName,
    LambdacASTThis, LambdacASTLiteral, LambdacASTFieldAccess, LambdacASTMethodCall, LambdacASTNew,
    LambdacASTBinary, LambdacASTUnary, LambdacASTAssign, LambdacASTParameter, LambdacASTFunctionLiteral,
    LambdacASTMemberReference, LambdacASTExpressionStatement, LambdacASTLocalVariable, LambdacASTReturn,
    LambdacASTThrow, LambdacASTIf, LambdacASTWhile, LambdacASTBlock
)

# Analysis passes (for advanced usage)
from lambdac.lambdac_interface_shape_validator import LambdacInterfaceShapeValidator
from lambdac.lambdac_capture_analyzer import LambdacCaptureAnalyzer, LambdacCaptureSet, LambdacCapturedVariable
from lambdac.lambdac_target_type_resolver import (
    LambdacTargetTypeResolver, LambdacResolvedBinding, LambdacOverloadCandidate, LambdacCandidateOverloadSet
)
from lambdac.lambdac_invocation_plan import LambdacInvocationPlan, LambdacInvocationStrategy
from lambdac.lambdac_invocation_strategy_selector import LambdacInvocationStrategySelector
from lambdac.lambdac_descriptor import (
    LambdacDescriptorEmitter, LambdacEmittedCallSite, LambdacBootstrapLinkageRecord,
    LambdacConstructorArgumentRecord, LambdacMethodType
)

__all__ = [
    # Main API
    "LambdacCompiler", "LambdacCompileResult",

    # Exceptions
    "LambdacError", "LambdacShapeError", "LambdacShapeErrorType", "LambdacResolutionError",
    "LambdacResolutionErrorType", "LambdacCaptureError", "LambdacCaptureErrorType",
    "LambdacDescriptorError", "LambdacMetadataError",

    # Types and metadata
    "LambdacType", "LambdacPrimitiveType", "LambdacClassType", "LambdacTypeVariable", "LambdacMember",
    "VOID", "BOOLEAN", "BYTE", "SHORT", "CHAR", "INT", "LONG", "FLOAT", "DOUBLE", "OBJECT", "STRING",
    "LambdacMethodSignature", "LambdacFunctionalSignature", "LambdacInterfaceType", "LambdacParentInterface",
    "LambdacTypeTable", "constructor", "method",
    "LambdacFrameKind", "LambdacBinding", "LambdacBindingFrame", "LambdacLexicalScope", "EMPTY_SCOPE",

    # AST node types
    "LambdacReferenceKind", "LambdacASTNode", "LambdacASTExpression", "LambdacASTStatement", "LambdacASTName",
    "LambdacASTThis", "LambdacASTLiteral", "LambdacASTFieldAccess", "LambdacASTMethodCall", "LambdacASTNew",
    "LambdacASTBinary", "LambdacASTUnary", "LambdacASTAssign", "LambdacASTParameter",
    "LambdacASTFunctionLiteral", "LambdacASTMemberReference", "LambdacASTExpressionStatement",
    "LambdacASTLocalVariable", "LambdacASTReturn", "LambdacASTThrow", "LambdacASTIf", "LambdacASTWhile",
    "LambdacASTBlock",

    # Analysis passes
    "LambdacInterfaceShapeValidator", "LambdacCaptureAnalyzer", "LambdacCaptureSet", "LambdacCapturedVariable",
    "LambdacTargetTypeResolver", "LambdacResolvedBinding", "LambdacOverloadCandidate",
    "LambdacCandidateOverloadSet", "LambdacInvocationPlan", "LambdacInvocationStrategy",
    "LambdacInvocationStrategySelector", "LambdacDescriptorEmitter", "LambdacEmittedCallSite",
    "LambdacBootstrapLinkageRecord", "LambdacConstructorArgumentRecord", "LambdacMethodType",
]
