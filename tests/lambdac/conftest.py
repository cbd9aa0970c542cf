"""Shared fixtures and utilities for lambdac tests."""

from dataclasses import dataclass
from typing import Tuple

import pytest

from lambdac import (
    LambdacTypeTable, LambdacInterfaceType, LambdacMethodSignature, LambdacTypeVariable, LambdacClassType,
    LambdacLexicalScope, LambdacBindingFrame, LambdacBinding, LambdacFrameKind, LambdacASTBlock,
    LambdacASTFunctionLiteral, LambdacASTParameter, LambdacASTLocalVariable, LambdacASTStatement,
    LambdacCompiler, constructor, method, BOOLEAN, INT, STRING, VOID, OBJECT
)


T = LambdacTypeVariable("T")
U = LambdacTypeVariable("U")
R = LambdacTypeVariable("R")

SERVER = LambdacClassType("Server")
SERVICE = LambdacClassType("HealthService")
INTEGER = LambdacClassType("Integer")


@dataclass
class LambdacWorld:
    """A frozen type table and the interfaces declared in it."""
    table: LambdacTypeTable
    predicate: LambdacInterfaceType
    function: LambdacInterfaceType
    bi_function: LambdacInterfaceType
    supplier: LambdacInterfaceType
    consumer: LambdacInterfaceType
    runnable: LambdacInterfaceType
    comparator: LambdacInterfaceType
    lifecycle: LambdacInterfaceType
    marker: LambdacInterfaceType
    int_predicate: LambdacInterfaceType


def build_world() -> LambdacWorld:
    """Build the standard test metadata: a Server class and common functional interfaces."""
    table = LambdacTypeTable()

    predicate = LambdacInterfaceType(
        "Predicate",
        type_params=(T,),
        abstract_methods=[LambdacMethodSignature("test", (T,), BOOLEAN)],
        default_methods=[LambdacMethodSignature("negate", (), LambdacClassType("Predicate", (T,)))],
        static_methods=[LambdacMethodSignature("isEqual", (OBJECT,), LambdacClassType("Predicate", (T,)))]
    )
    function = LambdacInterfaceType(
        "Function",
        type_params=(T, R),
        abstract_methods=[LambdacMethodSignature("apply", (T,), R)]
    )
    bi_function = LambdacInterfaceType(
        "BiFunction",
        type_params=(T, U, R),
        abstract_methods=[LambdacMethodSignature("apply", (T, U), R)]
    )
    supplier = LambdacInterfaceType(
        "Supplier",
        type_params=(T,),
        abstract_methods=[LambdacMethodSignature("get", (), T)]
    )
    consumer = LambdacInterfaceType(
        "Consumer",
        type_params=(T,),
        abstract_methods=[LambdacMethodSignature("accept", (T,), VOID)]
    )
    runnable = LambdacInterfaceType("Runnable", abstract_methods=[LambdacMethodSignature("run", (), VOID)])
    comparator = LambdacInterfaceType(
        "Comparator",
        type_params=(T,),
        abstract_methods=[
            LambdacMethodSignature("compare", (T, T), INT),
            LambdacMethodSignature("equals", (OBJECT,), BOOLEAN),
        ]
    )
    lifecycle = LambdacInterfaceType(
        "Lifecycle",
        abstract_methods=[
            LambdacMethodSignature("start", (), VOID),
            LambdacMethodSignature("stop", (), VOID),
        ]
    )
    marker = LambdacInterfaceType("Marker")
    int_predicate = LambdacInterfaceType("IntegerPredicate").extend(predicate, INTEGER)

    for interface in (
        predicate, function, bi_function, supplier, consumer, runnable, comparator, lifecycle, marker, int_predicate
    ):
        table.declare_interface(interface)

    table.declare_class("Server", members=[
        constructor("Server"),
        constructor("Server", STRING),
        constructor("Server", STRING, INT),
        method("Server", "isHealthy", (), BOOLEAN),
        method("Server", "name", (), STRING),
        method("Server", "port", (), INT),
        method("Server", "restart", (), VOID),
        method("Server", "parse", (STRING,), SERVER, is_static=True),
        method("Server", "isLocal", (SERVER,), BOOLEAN, is_static=True),
    ])
    table.declare_class("HealthService", members=[
        method("HealthService", "check", (SERVER,), BOOLEAN),
        method("HealthService", "log", (STRING,), VOID),
    ])
    table.freeze()

    return LambdacWorld(
        table=table,
        predicate=predicate,
        function=function,
        bi_function=bi_function,
        supplier=supplier,
        consumer=consumer,
        runnable=runnable,
        comparator=comparator,
        lifecycle=lifecycle,
        marker=marker,
        int_predicate=int_predicate
    )


@pytest.fixture
def world():
    """Create fresh, frozen test metadata for each test."""
    return build_world()


@pytest.fixture
def type_table(world):
    """The frozen type table of the test metadata."""
    return world.table


@pytest.fixture
def compiler(world):
    """Create a compiler over the test metadata."""
    return LambdacCompiler(world.table)


class LambdacTestHelpers:
    """Helper utilities for building scopes and literals."""

    @staticmethod
    def method_scope(
        body: LambdacASTBlock,
        params: Tuple[LambdacBinding, ...] = (),
        instance_type: LambdacClassType | None = SERVICE,
        instance_members: Tuple[LambdacBinding, ...] = ()
    ) -> LambdacLexicalScope:
        """
        Build the scope of a literal that sits directly in a method body.

        Locals declared in the body are taken from its LambdacASTLocalVariable
        statements.
        """
        frames = []
        if instance_type is not None:
            frames.append(LambdacBindingFrame(
                LambdacFrameKind.INSTANCE, instance_members, instance_type=instance_type
            ))

        frames.append(LambdacBindingFrame(LambdacFrameKind.PARAMETER, params, body))

        local_bindings = tuple(
            LambdacBinding(statement.name, statement.declared_type or OBJECT, statement)
            for statement in body.statements
            if isinstance(statement, LambdacASTLocalVariable)
        )
        if local_bindings:
            frames.append(LambdacBindingFrame(LambdacFrameKind.LOCAL, local_bindings, body))

        return LambdacLexicalScope.of(*frames)

    @staticmethod
    def literal(
        params: Tuple[str, ...],
        body,
        scope: LambdacLexicalScope | None = None,
        line: int = 1,
        column: int = 1
    ) -> LambdacASTFunctionLiteral:
        """Build a function literal with inferred parameter types."""
        return LambdacASTFunctionLiteral(
            tuple(LambdacASTParameter(name) for name in params),
            body,
            scope,
            line=line,
            column=column
        )

    @staticmethod
    def block(*statements: LambdacASTStatement) -> LambdacASTBlock:
        """Build a block from statements."""
        return LambdacASTBlock(tuple(statements))


@pytest.fixture
def helpers():
    """Provide access to the test helper utilities."""
    return LambdacTestHelpers
