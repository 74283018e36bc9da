"""
The Code Synthesizer: turns one (resolved declaration, binding) pair into a
structured, specialized routine.

The unit computation is bound once per binding, then wrapped in the
scaffolding its result policy calls for: a per-element loop, an accumulator
around that loop, growth and length bookkeeping around a copy loop, or the
nested membership scan used by set operations. The routine is a tree of
nodes; rendering it to source text is left to the VM build.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..capabilities.composition import ResolvedDefaults
from ..catalog.declarations import FIRST_UNIT
from ..catalog.operands import AddressMode, Mutability, OperandSlot, SizeExpression, parse_size_expression
from ..catalog.types import ElementType, signed_counterpart
from ..config.config import COMBINE_OPERANDS, FOUND_FLAG
from ..exceptions import ErrorCode, VopgenError
from ..expansion import Binding, bound_type, expand, routine_key, routine_name
from ..unit.parser import parse_expression, parse_unit
from .binder import UnitBinder
from .nodes import (
    AdvanceLength,
    Append,
    Assign,
    Binary,
    Const,
    Count,
    Cursor,
    Declare,
    ElementLoop,
    Expression,
    FirstUnit,
    GrowStorage,
    If,
    Length,
    Local,
    MembershipTest,
    OperandRef,
    SetCount,
    Statement,
)

ACCUMULATOR_LOCAL = "res_acc"
WRITTEN_LOCAL = "{name}_written"
CONTEXT_PARAMETERS = ["cxt", "local_storage"]
RANGE_PARAMETERS = ["range_start", "range_end"]


class Parameter(BaseModel):
    """One operand as it appears on the routine's calling surface."""

    model_config = ConfigDict(frozen=True)

    slot: int
    name: str
    mode: AddressMode
    type: ElementType
    mutability: Mutability
    size: Optional[SizeExpression] = None
    signals_error: bool = False
    surface: Tuple[str, ...]


class SpecializedRoutine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    operation: str
    key: Tuple
    element_type: ElementType
    modes: Tuple[AddressMode, ...]
    slot_types: Tuple[ElementType, ...]
    parallel: bool = False
    slow: bool = False
    result_policy: str
    membership: bool = False
    parameters: List[Parameter]
    context_parameters: List[str] = []
    range_parameters: List[str] = []
    body: List[Statement]
    combine: Optional[Expression] = None

    @property
    def signature(self) -> List[str]:
        """The flattened argument list, in the order the VM passes it."""
        names = list(self.context_parameters)
        for parameter in self.parameters:
            names.extend(parameter.surface)
        names.extend(self.range_parameters)
        return names

    def parameter(self, name: str) -> Optional[Parameter]:
        return next((p for p in self.parameters if p.name == name), None)


def _surface(slot: OperandSlot, mode: AddressMode) -> Tuple[str, ...]:
    if mode == AddressMode.ARR:
        return (f"{slot.name}_ptr", f"{slot.name}_count")
    if mode == AddressMode.DYN:
        return (f"{slot.name}_ptr", f"{slot.name}_count_ptr")
    return (slot.name,)


class CodeSynthesizer:
    """Synthesizes every specialized routine of one resolved declaration."""

    def __init__(self, resolved: ResolvedDefaults):
        self.resolved = resolved
        self._check_size_references()
        # Parse once; binding is repeated per binding.
        self.unit = parse_unit(resolved.unit, resolved.name)
        self.combine = parse_expression(resolved.combine, resolved.name) if resolved.combine else None

    def _check_size_references(self):
        for slot in self.resolved.slots:
            if slot.size is None:
                continue
            reference = parse_size_expression(slot.size, self.resolved.name, slot.index)
            if isinstance(reference, str) and self.resolved.slot_named(reference) is None:
                raise VopgenError(
                    ErrorCode.RESOLUTION_ERROR,
                    declaration=self.resolved.name,
                    slot=slot.index,
                    what="size expression slot",
                    name=reference,
                )

    # --- Entry Points ---

    def synthesize(self, binding: Binding, parallel: bool = False) -> SpecializedRoutine:
        resolved = self.resolved
        if parallel and not resolved.parallel:
            raise VopgenError(
                ErrorCode.ILLEGAL_COMBINATION,
                declaration=resolved.name,
                reason="a parallel entry point was requested for a declaration that is not parallel-safe.",
            )

        policy = resolved.result_policy
        if resolved.membership:
            body = self._membership(binding, parallel)
        elif policy == "reduction":
            body = self._reduction(binding, parallel)
        elif policy == "growable":
            body = self._growable(binding)
        else:
            body = self._elementwise(binding, parallel)

        combine = None
        if self.combine is not None:
            aliases = {name: Local(name=name) for name in COMBINE_OPERANDS}
            combine = UnitBinder(resolved, binding, aliases=aliases).bind_expression(self.combine)

        parameters = [
            Parameter(
                slot=slot.index,
                name=slot.name,
                mode=binding.mode_of(slot),
                type=bound_type(slot, binding.element_type),
                mutability=slot.mutability,
                size=slot.size,
                signals_error=slot.signals_error,
                surface=_surface(slot, binding.mode_of(slot)),
            )
            for slot in resolved.slots
        ]

        return SpecializedRoutine(
            name=routine_name(resolved, binding, parallel),
            operation=resolved.name,
            key=routine_key(resolved, binding, parallel),
            element_type=binding.element_type,
            modes=binding.modes,
            slot_types=tuple(p.type for p in parameters),
            parallel=parallel,
            slow=resolved.slow,
            result_policy=policy,
            membership=resolved.membership,
            parameters=parameters,
            context_parameters=list(CONTEXT_PARAMETERS) if policy == "growable" else [],
            range_parameters=list(RANGE_PARAMETERS) if parallel else [],
            body=body,
            combine=combine,
        )

    def synthesize_all(self, bindings: Optional[List[Binding]] = None) -> List[SpecializedRoutine]:
        """
        Every serial routine of the declaration, plus a ranged entry point for
        each binding that iterates when the declaration is parallel-safe.
        """
        routines = []
        for binding in bindings if bindings is not None else expand(self.resolved):
            serial = self.synthesize(binding)
            routines.append(serial)
            if self.resolved.parallel and _has_loop(serial.body):
                routines.append(self.synthesize(binding, parallel=True))
        return routines

    # --- Shared Helpers ---

    def _binder(self, binding: Binding, **kwargs) -> UnitBinder:
        return UnitBinder(self.resolved, binding, **kwargs)

    def _loop_slot(self, binding: Binding) -> Optional[OperandSlot]:
        """First ARR input, else an ARR output filled by broadcast."""
        for slot in self.resolved.inputs:
            if binding.mode_of(slot) == AddressMode.ARR:
                return slot
        for slot in self.resolved.outputs:
            if binding.mode_of(slot) == AddressMode.ARR:
                return slot
        return None

    def _unit_count(self, slot: OperandSlot, binding: Binding):
        count = Count(slot=slot.index, name=slot.name)
        components = bound_type(slot, binding.element_type).components
        if components > 1:
            return Binary(op="/", left=count, right=Const(value=components))
        return count

    def _cursors(self, binding: Binding, skip: Tuple[int, ...] = (), offsets: Optional[Dict[int, object]] = None) -> List[Cursor]:
        offsets = offsets or {}
        cursors = []
        for slot in self.resolved.slots:
            if slot.index in skip:
                continue
            mode = binding.mode_of(slot)
            components = bound_type(slot, binding.element_type).components
            cursors.append(
                Cursor(
                    slot=slot.index,
                    name=slot.name,
                    width=Const(value=components),
                    offset=offsets.get(slot.index),
                    broadcast=mode not in (AddressMode.ARR, AddressMode.DYN),
                )
            )
        return cursors

    # --- Result Policies ---

    def _elementwise(self, binding: Binding, parallel: bool) -> List:
        unit = self._binder(binding).bind_statements(self.unit)
        loop_slot = self._loop_slot(binding)
        if loop_slot is None:
            # All-scalar binding: the unit runs exactly once.
            return unit
        return [
            ElementLoop(
                count=self._unit_count(loop_slot, binding),
                cursors=self._cursors(binding),
                body=unit,
                ranged=parallel,
            )
        ]

    def _reduction(self, binding: Binding, parallel: bool) -> List:
        resolved = self.resolved
        result = resolved.result_slot
        accumulator_type = bound_type(result, binding.element_type)
        aliases = {result.name: Local(name=ACCUMULATOR_LOCAL)}
        unit = self._binder(binding, aliases=aliases, extra_locals={ACCUMULATOR_LOCAL: accumulator_type.value}).bind_statements(self.unit)

        primary = resolved.primary
        if resolved.accumulator == FIRST_UNIT:
            seed = FirstUnit(slot=primary.index, name=primary.name)
        else:
            seed = Const(value=resolved.accumulator)

        body = [Declare(name=ACCUMULATOR_LOCAL, type=accumulator_type.value, value=seed)]
        loop_slot = self._loop_slot(binding)
        if loop_slot is None:
            body.extend(unit)
        else:
            body.append(
                ElementLoop(
                    count=self._unit_count(loop_slot, binding),
                    cursors=self._cursors(binding, skip=(result.index,)),
                    body=unit,
                    ranged=parallel,
                )
            )
        body.append(Assign(target=OperandRef(slot=result.index, name=result.name), value=Local(name=ACCUMULATOR_LOCAL)))
        return body

    def _growable(self, binding: Binding) -> List:
        resolved = self.resolved
        result = resolved.result_slot
        source = resolved.primary
        length = Length(slot=result.index, name=result.name)

        if binding.mode_of(source) == AddressMode.ARR:
            incoming = Count(slot=source.index, name=source.name)
        else:
            incoming = Const(value=bound_type(source, binding.element_type).components)

        handle = next(
            (OperandRef(slot=s.index, name=s.name) for s in resolved.inputs if binding.mode_of(s) == AddressMode.CON),
            None,
        )

        unit = self._binder(binding).bind_statements(self.unit)
        body: List = [
            GrowStorage(slot=result.index, name=result.name, count=Binary(op="+", left=length, right=incoming), handle=handle),
        ]
        if binding.mode_of(source) == AddressMode.ARR:
            body.append(
                ElementLoop(
                    count=self._unit_count(source, binding),
                    cursors=self._cursors(binding, offsets={result.index: length}),
                    body=unit,
                )
            )
        else:
            # A single unit lands right after the current length.
            body.append(
                ElementLoop(
                    count=Const(value=1),
                    cursors=self._cursors(binding, offsets={result.index: length}),
                    body=unit,
                )
            )
        body.append(AdvanceLength(slot=result.index, name=result.name, amount=incoming))
        return body

    def _membership(self, binding: Binding, parallel: bool) -> List:
        resolved = self.resolved
        primary, secondary = resolved.inputs[0], resolved.inputs[1]
        result = resolved.result_slot
        stride_slot = resolved.inputs[2] if len(resolved.inputs) > 2 else None

        unit = self._bind_membership_unit(binding, primary, result)
        written = WRITTEN_LOCAL.format(name=result.name)

        def scan(stride, comparator: Optional[str]) -> ElementLoop:
            count = Count(slot=primary.index, name=primary.name)
            if not (isinstance(stride, Const) and stride.value == 1):
                count = Binary(op="/", left=count, right=stride)
            cursors = [
                Cursor(slot=primary.index, name=primary.name, width=stride),
                Cursor(slot=secondary.index, name=secondary.name, width=stride, broadcast=True),
            ]
            cursors.extend(
                Cursor(slot=s.index, name=s.name, width=Const(value=1), broadcast=True)
                for s in resolved.slots
                if s.index not in (primary.index, secondary.index)
            )
            lowered = [_lower_append(statement, primary, result, stride, written) for statement in unit]
            return ElementLoop(
                count=count,
                cursors=cursors,
                body=[
                    Declare(name=FOUND_FLAG, type=ElementType.S32.value, value=Const(value=0)),
                    MembershipTest(found=FOUND_FLAG, primary=primary.index, secondary=secondary.index, stride=stride, comparator=comparator),
                    *lowered,
                ],
                ranged=parallel,
            )

        if stride_slot is None:
            scans = [scan(Const(value=1), None)]
        else:
            stride = OperandRef(slot=stride_slot.index, name=stride_slot.name)
            comparator = signed_counterpart(binding.element_type).value
            scans = [
                If(
                    condition=Binary(op="==", left=stride, right=Const(value=1)),
                    then=[scan(Const(value=1), None)],
                    otherwise=[scan(stride, comparator)],
                )
            ]

        # The result count is reported even when nothing was appended.
        return [
            Declare(name=written, type=ElementType.U32.value, value=Const(value=0)),
            *scans,
            SetCount(slot=result.index, name=result.name, value=Local(name=written)),
        ]

    def _bind_membership_unit(self, binding: Binding, primary: OperandSlot, result: OperandSlot) -> List:
        aliases = {FOUND_FLAG: Local(name=FOUND_FLAG)}
        binder = self._binder(binding, aliases=aliases, extra_locals={FOUND_FLAG: ElementType.S32.value})
        statements = binder.bind_statements(self.unit)
        for statement in _walk(statements):
            if isinstance(statement, Assign) and isinstance(statement.target, OperandRef) and statement.target.slot == result.index:
                if not (isinstance(statement.value, OperandRef) and statement.value.slot == primary.index and statement.value.component is None):
                    raise VopgenError(
                        ErrorCode.UNSUPPORTED_CONSTRUCT,
                        declaration=self.resolved.name,
                        slot=result.index,
                        details=f"A membership result can only receive the current block of '{primary.name}'.",
                    )
        return statements


def _walk(statements):
    for statement in statements:
        yield statement
        if isinstance(statement, If):
            yield from _walk(statement.then)
            yield from _walk(statement.otherwise)
        elif isinstance(statement, ElementLoop):
            yield from _walk(statement.body)


def _lower_append(statement, primary: OperandSlot, result: OperandSlot, stride, written: str):
    """Rewrites `res = op1` into an Append of the current primary block."""
    if isinstance(statement, Assign) and isinstance(statement.target, OperandRef) and statement.target.slot == result.index:
        return Append(source=primary.index, target=result.index, length=stride, written=written)
    if isinstance(statement, If):
        return If(
            condition=statement.condition,
            then=[_lower_append(s, primary, result, stride, written) for s in statement.then],
            otherwise=[_lower_append(s, primary, result, stride, written) for s in statement.otherwise],
        )
    return statement


def _has_loop(body) -> bool:
    return any(isinstance(statement, ElementLoop) for statement in _walk(body))


def synthesize(resolved: ResolvedDefaults, binding: Binding, parallel: bool = False) -> SpecializedRoutine:
    return CodeSynthesizer(resolved).synthesize(binding, parallel)


def synthesize_all(resolved: ResolvedDefaults) -> List[SpecializedRoutine]:
    return CodeSynthesizer(resolved).synthesize_all()
