"""Call-site descriptors.

The descriptor emitter serialises an invocation plan into the binary form the
runtime uses to link a functional call site, together with a linkage record
for the code generator.

Descriptor layout (all integers big-endian):

    strategy          u8
    param_count       u8
    param_type_ids    u32 * param_count
    return_type_id    u32
    capture_count     u8
    capture_type_ids  u32 * capture_count
    reference_kind    u8

Type ids are the opaque ids interned by the type table, so descriptors can only
be decoded against the table that produced them.
"""

import logging
import struct
from dataclasses import dataclass
from typing import List, Tuple, Union

from lambdac.lambdac_ast import LambdacReferenceKind
from lambdac.lambdac_error import LambdacDescriptorError, LambdacMetadataError
from lambdac.lambdac_invocation_plan import LambdacInvocationPlan, LambdacInvocationStrategy
from lambdac.lambdac_type_table import LambdacTypeTable
from lambdac.lambdac_types import LambdacType


MAX_COUNT = 0xFF

_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")


@dataclass(frozen=True)
class LambdacMethodType:
    """A method type for linkage: parameter and return types without a name."""
    param_types: Tuple[LambdacType, ...]
    return_type: LambdacType

    def describe(self) -> str:
        """Describe the method type as (params)return."""
        params = ", ".join(p.describe() for p in self.param_types)
        return f"({params}){self.return_type.describe()}"


@dataclass(frozen=True)
class LambdacBootstrapLinkageRecord:
    """
    Linkage for a STATIC call site.

    The runtime links the interface method to the implementation once per
    call site.  Without binds_enclosing_instance the functional object itself
    is shared by every evaluation.  With it, the implementation takes the
    enclosing instance (of type enclosing_instance_type_id) as a leading
    argument: the linkage is still shared, but each evaluation binds the
    `this` current at that evaluation, so one functional object never serves
    two enclosing instances.
    """
    interface_name: str
    method_name: str
    erased_method_type: LambdacMethodType
    instantiated_method_type: LambdacMethodType
    implementation_name: str
    reference_kind: LambdacReferenceKind
    binds_enclosing_instance: bool = False
    enclosing_instance_type_id: int | None = None


@dataclass(frozen=True)
class LambdacConstructorArgumentRecord:
    """
    Linkage for a CAPTURING call site.

    The captured values are passed, in order, to the constructor of the
    functional object at every evaluation.  The enclosing instance, if used, is
    passed as a separate back-reference and is not one of the captures.
    """
    implementation_name: str
    interface_name: str
    method_name: str
    captures: Tuple[Tuple[str, int], ...]
    enclosing_instance_type_id: int | None = None


LambdacLinkageRecord = Union[LambdacBootstrapLinkageRecord, LambdacConstructorArgumentRecord]


@dataclass(frozen=True)
class LambdacEmittedCallSite:
    """A call-site descriptor and its linkage record."""
    descriptor: bytes
    linkage: LambdacLinkageRecord


class LambdacDescriptorEmitter:
    """
    Encodes invocation plans to call-site descriptors and decodes them again.

    Example usage:
        emitter = LambdacDescriptorEmitter(type_table)
        call_site = emitter.emit(plan)
        assert emitter.decode(call_site.descriptor) == plan
    """

    def __init__(self, type_table: LambdacTypeTable) -> None:
        """
        Initialize the emitter.

        Args:
            type_table: Type table used to intern and look up type ids
        """
        self.type_table = type_table
        self._logger = logging.getLogger("LambdacDescriptorEmitter")

    def emit(self, plan: LambdacInvocationPlan) -> LambdacEmittedCallSite:
        """
        Emit the descriptor and linkage record for a plan.

        Args:
            plan: Invocation plan to emit

        Returns:
            The emitted call site

        Raises:
            LambdacDescriptorError: If the plan cannot be encoded
        """
        descriptor = self.encode(plan)
        enclosing_id = None
        if plan.uses_enclosing_instance and plan.enclosing_instance_type is not None:
            enclosing_id = self.type_table.type_id(plan.enclosing_instance_type)

        linkage: LambdacLinkageRecord
        if plan.strategy == LambdacInvocationStrategy.STATIC:
            erased_params = plan.erased_param_types or tuple(p.erase() for p in plan.param_types)
            erased_return = plan.erased_return_type or plan.return_type.erase()
            linkage = LambdacBootstrapLinkageRecord(
                interface_name=plan.interface_name,
                method_name=plan.method_name,
                erased_method_type=LambdacMethodType(erased_params, erased_return),
                instantiated_method_type=LambdacMethodType(plan.param_types, plan.return_type),
                implementation_name=plan.implementation_name,
                reference_kind=plan.reference_kind,
                binds_enclosing_instance=plan.uses_enclosing_instance,
                enclosing_instance_type_id=enclosing_id
            )

        else:
            names = plan.captured_names or tuple(f"capture${i}" for i in range(plan.capture_count))
            linkage = LambdacConstructorArgumentRecord(
                implementation_name=plan.implementation_name,
                interface_name=plan.interface_name,
                method_name=plan.method_name,
                captures=tuple(
                    (name, self.type_table.type_id(captured_type))
                    for name, captured_type in zip(names, plan.captured_types)
                ),
                enclosing_instance_type_id=enclosing_id
            )

        self._logger.debug("Emitted %d byte descriptor for %s", len(descriptor), plan.implementation_name)
        return LambdacEmittedCallSite(descriptor, linkage)

    def encode(self, plan: LambdacInvocationPlan) -> bytes:
        """
        Encode a plan's descriptor bytes.

        Raises:
            LambdacDescriptorError: If a count does not fit in one byte, a STATIC
                plan has captures, or a CAPTURING plan has none
        """
        if plan.strategy == LambdacInvocationStrategy.STATIC and plan.captured_types:
            raise LambdacDescriptorError(
                message="A STATIC plan cannot carry captured values",
                received=f"{plan.capture_count} captured type(s)"
            )

        if plan.strategy == LambdacInvocationStrategy.CAPTURING and not plan.captured_types:
            raise LambdacDescriptorError(
                message="A CAPTURING plan must carry at least one captured value",
                received="0 captured types",
                suggestion="Plans without captures use the STATIC strategy"
            )

        self._check_count("parameter", len(plan.param_types))
        self._check_count("capture", plan.capture_count)

        parts: List[bytes] = [_U8.pack(int(plan.strategy)), _U8.pack(len(plan.param_types))]
        parts.extend(_U32.pack(self.type_table.type_id(p)) for p in plan.param_types)
        parts.append(_U32.pack(self.type_table.type_id(plan.return_type)))
        parts.append(_U8.pack(plan.capture_count))
        parts.extend(_U32.pack(self.type_table.type_id(c)) for c in plan.captured_types)
        parts.append(_U8.pack(int(plan.reference_kind)))
        return b"".join(parts)

    def _check_count(self, what: str, count: int) -> None:
        if count > MAX_COUNT:
            raise LambdacDescriptorError(
                message=f"Too many {what} types for a call-site descriptor",
                received=str(count),
                expected=f"At most {MAX_COUNT}"
            )

    def decode(self, data: bytes) -> LambdacInvocationPlan:
        """
        Decode descriptor bytes back to an invocation plan.

        Only the encoded fields are recovered; linkage metadata is left empty.

        Args:
            data: Descriptor bytes

        Returns:
            The decoded plan

        Raises:
            LambdacDescriptorError: If the bytes are malformed
        """
        fields = read_descriptor(data)
        return LambdacInvocationPlan(
            strategy=fields.strategy,
            param_types=tuple(self._lookup(type_id) for type_id in fields.param_type_ids),
            return_type=self._lookup(fields.return_type_id),
            captured_types=tuple(self._lookup(type_id) for type_id in fields.capture_type_ids),
            reference_kind=fields.reference_kind
        )

    def _lookup(self, type_id: int) -> LambdacType:
        try:
            return self.type_table.type_for_id(type_id)

        except LambdacMetadataError as e:
            raise LambdacDescriptorError(
                message=f"Descriptor refers to unknown type id {type_id}",
                suggestion="Descriptors can only be decoded with the type table that emitted them"
            ) from e

    def describe(self, data: bytes) -> str:
        """
        Render descriptor bytes for humans.

        Args:
            data: Descriptor bytes

        Returns:
            A multi-line description, one field per line

        Raises:
            LambdacDescriptorError: If the bytes are malformed
        """
        plan = self.decode(data)
        lines = [
            f"strategy:       {plan.strategy.name}",
            f"reference kind: {plan.reference_kind.name}",
            f"parameters:     {len(plan.param_types)}",
        ]
        for index, param_type in enumerate(plan.param_types):
            lines.append(f"  [{index}] {param_type.describe()} (#{self.type_table.type_id(param_type)})")

        lines.append(f"returns:        {plan.return_type.describe()} (#{self.type_table.type_id(plan.return_type)})")
        lines.append(f"captures:       {plan.capture_count}")
        for index, captured_type in enumerate(plan.captured_types):
            lines.append(f"  [{index}] {captured_type.describe()} (#{self.type_table.type_id(captured_type)})")

        lines.append(f"bytes:          {data.hex()}")
        return "\n".join(lines)


@dataclass(frozen=True)
class LambdacDescriptorFields:
    """The raw fields of a descriptor, with type ids not yet looked up."""
    strategy: LambdacInvocationStrategy
    param_type_ids: Tuple[int, ...]
    return_type_id: int
    capture_type_ids: Tuple[int, ...]
    reference_kind: LambdacReferenceKind


def read_descriptor(data: bytes) -> LambdacDescriptorFields:
    """
    Parse descriptor bytes without resolving type ids.

    Args:
        data: Descriptor bytes

    Returns:
        The raw descriptor fields

    Raises:
        LambdacDescriptorError: If the bytes are truncated, have trailing data,
            hold an unknown strategy or reference kind, or describe a STATIC
            call site with captures or a CAPTURING call site without any
    """
    reader = _DescriptorReader(data)
    strategy_value = reader.u8("strategy")
    try:
        strategy = LambdacInvocationStrategy(strategy_value)

    except ValueError as e:
        raise LambdacDescriptorError(
            message=f"Unknown invocation strategy {strategy_value}",
            expected=", ".join(f"{s.value} ({s.name})" for s in LambdacInvocationStrategy)
        ) from e

    param_type_ids = tuple(reader.u32("parameter type id") for _ in range(reader.u8("parameter count")))
    return_type_id = reader.u32("return type id")
    capture_type_ids = tuple(reader.u32("capture type id") for _ in range(reader.u8("capture count")))
    kind_value = reader.u8("reference kind")
    try:
        reference_kind = LambdacReferenceKind(kind_value)

    except ValueError as e:
        raise LambdacDescriptorError(
            message=f"Unknown reference kind {kind_value}",
            expected=", ".join(f"{k.value} ({k.name})" for k in LambdacReferenceKind)
        ) from e

    reader.finish()

    if strategy == LambdacInvocationStrategy.STATIC and capture_type_ids:
        raise LambdacDescriptorError(
            message="STATIC descriptor has captured values",
            received=f"{len(capture_type_ids)} captured type(s)"
        )

    if strategy == LambdacInvocationStrategy.CAPTURING and not capture_type_ids:
        raise LambdacDescriptorError(
            message="CAPTURING descriptor has no captured values",
            received="0 captured types"
        )

    return LambdacDescriptorFields(strategy, param_type_ids, return_type_id, capture_type_ids, reference_kind)


class _DescriptorReader:
    """Sequential reader over descriptor bytes with truncation checks."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def _read(self, layout: struct.Struct, field_name: str) -> int:
        if self.offset + layout.size > len(self.data):
            raise LambdacDescriptorError(
                message=f"Descriptor is truncated reading {field_name}",
                received=f"{len(self.data)} byte(s)",
                expected=f"At least {self.offset + layout.size} byte(s)"
            )

        (value,) = layout.unpack_from(self.data, self.offset)
        self.offset += layout.size
        return value

    def u8(self, field_name: str) -> int:
        """Read an unsigned byte."""
        return self._read(_U8, field_name)

    def u32(self, field_name: str) -> int:
        """Read a big-endian unsigned 32-bit integer."""
        return self._read(_U32, field_name)

    def finish(self) -> None:
        """Check that every byte was consumed."""
        if self.offset != len(self.data):
            raise LambdacDescriptorError(
                message="Descriptor has trailing bytes",
                received=f"{len(self.data) - self.offset} extra byte(s)"
            )
