"""
Capability composition: merges a declaration's capabilities, in the order
they are listed, into one immutable resolved-defaults record.

Later capabilities override the defaults of earlier ones, explicit fields on
the declaration override every capability, and mutually exclusive
capabilities are rejected here, at construction time, before any expansion
or synthesis is attempted.
"""

from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from ..catalog.declarations import OperationDeclaration
from ..catalog.operands import AddressMode, Mutability, OperandSlot, parse_size_expression
from ..catalog.types import lookup_type
from ..config.config import (
    ADDRESS_POLICIES,
    DEFAULT_ADDRESS_POLICY,
    DEFAULT_RESULT_POLICY,
    GENERIC_TYPE,
    INPUT_SLOT_NAME,
    OUTPUT_SLOT_NAME,
    PREDICATE_SLOT_NAME,
    PREDICATE_SLOT_TYPE,
    RESULT_POLICIES,
    SIGNED_GENERIC_TYPE,
)
from ..exceptions import ErrorCode, VopgenError
from .registry import CAPABILITIES

_MERGED_FIELDS = (
    "input_count",
    "output_count",
    "address_policy",
    "result_policy",
    "float_only",
    "fixed_size_only",
    "parallel",
    "slow",
    "may_emit_error",
    "membership",
    "combine",
)

_DECLARATION = "declaration"
_OVERRIDE = "slot override"


class ResolvedDefaults(BaseModel):
    """The effective shape of one declaration once its capabilities are merged."""

    model_config = ConfigDict(frozen=True)

    name: str
    capabilities: Tuple[str, ...]
    input_count: int
    output_count: int
    address_policy: str
    result_policy: str
    float_only: bool = False
    fixed_size_only: bool = False
    parallel: bool = False
    slow: bool = False
    may_emit_error: bool = False
    membership: bool = False
    combine: Optional[str] = None
    slots: Tuple[OperandSlot, ...]
    types: Optional[Tuple[str, ...]] = None
    unit: str
    accumulator: Union[int, float, Literal["first"]] = 0

    @property
    def inputs(self) -> List[OperandSlot]:
        return [s for s in self.slots if s.mutability == Mutability.INPUT]

    @property
    def outputs(self) -> List[OperandSlot]:
        return [s for s in self.slots if s.is_output and not s.signals_error]

    @property
    def result_slot(self) -> OperandSlot:
        return self.outputs[0]

    @property
    def error_slot(self) -> Optional[OperandSlot]:
        return next((s for s in self.slots if s.signals_error), None)

    @property
    def primary(self) -> OperandSlot:
        return self.slots[0]

    def slot_named(self, name: str) -> Optional[OperandSlot]:
        return next((s for s in self.slots if s.name == name), None)


def compose(declaration: OperationDeclaration) -> ResolvedDefaults:
    """Resolves the effective arity, slots, policies and constraints of a declaration."""
    merged, contributors = _merge_capabilities(declaration)

    input_count = declaration.input_count if declaration.input_count is not None else merged.get("input_count")
    if input_count is None:
        raise VopgenError(ErrorCode.MISSING_ARITY, declaration=declaration.name)
    if declaration.input_count is not None:
        contributors["input_count"] = _DECLARATION

    output_count = merged.get("output_count") or 1
    address_policy = merged.get("address_policy", DEFAULT_ADDRESS_POLICY)
    result_policy = merged.get("result_policy", DEFAULT_RESULT_POLICY)

    slots = _default_slots(input_count, output_count, result_policy, bool(merged.get("may_emit_error")))
    slots = _apply_overrides(declaration, slots, result_policy, contributors)

    resolved = ResolvedDefaults(
        name=declaration.name,
        capabilities=tuple(declaration.capabilities),
        input_count=input_count,
        output_count=output_count,
        address_policy=address_policy,
        result_policy=result_policy,
        float_only=bool(merged.get("float_only")),
        fixed_size_only=bool(merged.get("fixed_size_only")),
        parallel=bool(merged.get("parallel")),
        slow=bool(merged.get("slow")),
        may_emit_error=bool(merged.get("may_emit_error")),
        membership=bool(merged.get("membership")),
        combine=merged.get("combine"),
        slots=tuple(slots),
        types=tuple(declaration.types) if declaration.types is not None else None,
        unit=declaration.unit,
        accumulator=declaration.accumulator,
    )

    _check_conflicts(resolved, contributors)
    _validate_slots(resolved)
    return resolved


def _merge_capabilities(declaration: OperationDeclaration) -> Tuple[Dict[str, object], Dict[str, str]]:
    """Folds the capability records left to right; later non-None fields win."""
    merged: Dict[str, object] = {}
    contributors: Dict[str, str] = {}
    for cap_name in declaration.capabilities:
        capability = CAPABILITIES.get(cap_name)
        if capability is None:
            raise VopgenError(ErrorCode.UNKNOWN_CAPABILITY, declaration=declaration.name, name=cap_name)
        for field in _MERGED_FIELDS:
            value = getattr(capability, field)
            if value is not None:
                merged[field] = value
                contributors[field] = cap_name

    if merged.get("address_policy", DEFAULT_ADDRESS_POLICY) not in ADDRESS_POLICIES:
        raise VopgenError(ErrorCode.UNKNOWN_CAPABILITY, declaration=declaration.name, name=merged["address_policy"])
    if merged.get("result_policy", DEFAULT_RESULT_POLICY) not in RESULT_POLICIES:
        raise VopgenError(ErrorCode.UNKNOWN_CAPABILITY, declaration=declaration.name, name=merged["result_policy"])
    return merged, contributors


def _default_slots(input_count: int, output_count: int, result_policy: str, may_emit_error: bool) -> List[OperandSlot]:
    slots = []
    for i in range(1, input_count + 1):
        name = INPUT_SLOT_NAME.format(index=i)
        slots.append(OperandSlot(index=i, name=name, type=GENERIC_TYPE, size=f"{name}_count"))

    fixed_mode = RESULT_POLICIES[result_policy]
    for k in range(output_count):
        index = input_count + k + 1
        name = OUTPUT_SLOT_NAME if k == 0 else f"{OUTPUT_SLOT_NAME}{k + 1}"
        mode = AddressMode(fixed_mode) if fixed_mode else None
        size = 1 if mode == AddressMode.SCA else (f"{name}_count" if mode == AddressMode.DYN else None)
        slots.append(OperandSlot(index=index, name=name, type=GENERIC_TYPE, mode=mode, size=size, mutability=Mutability.OUTPUT))

    if may_emit_error:
        slots.append(
            OperandSlot(
                index=len(slots) + 1,
                name=PREDICATE_SLOT_NAME,
                type=PREDICATE_SLOT_TYPE,
                mode=AddressMode.SCA,
                size=1,
                mutability=Mutability.IN_OUT,
                signals_error=True,
            )
        )
    return slots


def _apply_overrides(declaration: OperationDeclaration, slots: List[OperandSlot], result_policy: str, contributors: Dict[str, str]) -> List[OperandSlot]:
    """Explicit per-slot overrides on the declaration always win."""
    slots = list(slots)
    fixed_mode = RESULT_POLICIES[result_policy]
    result_index = next((s.index for s in slots if s.is_output and not s.signals_error), None)

    for override in declaration.slots:
        if not 1 <= override.index <= len(slots):
            raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=declaration.name, slot=override.index, what="slot override index", name=override.index)
        if fixed_mode and override.index == result_index and override.mode is not None and override.mode.value != fixed_mode:
            raise VopgenError(
                ErrorCode.CAPABILITY_CONFLICT,
                declaration=declaration.name,
                slot=override.index,
                first=contributors.get("result_policy", _DECLARATION),
                second=_OVERRIDE,
                reason=f"a {result_policy} result is always {fixed_mode}.",
            )
        updates = {k: v for k, v in override.model_dump(exclude={"index"}).items() if v is not None}
        slots[override.index - 1] = slots[override.index - 1].model_copy(update=updates)
    return slots


def _check_conflicts(resolved: ResolvedDefaults, contributors: Dict[str, str]):
    """Rejects mutually exclusive capability sets."""

    def conflict(first_field: str, second: str, reason: str, slot=None):
        raise VopgenError(
            ErrorCode.CAPABILITY_CONFLICT,
            declaration=resolved.name,
            slot=slot,
            first=contributors.get(first_field, _DECLARATION),
            second=second,
            reason=reason,
        )

    primary = resolved.primary
    if resolved.float_only and not primary.is_generic and lookup_type(primary.type, resolved.name, primary.index).is_integer:
        conflict("float_only", _OVERRIDE, f"the primary operand is fixed to integer type {primary.type}.", slot=primary.index)

    if resolved.fixed_size_only and resolved.membership:
        conflict("fixed_size_only", contributors["membership"], "membership tests compare single-component elements.")

    if resolved.parallel and resolved.result_policy == "growable":
        conflict("parallel", contributors["result_policy"], "growable results run single-threaded only.")

    if resolved.parallel and resolved.result_policy == "reduction" and not resolved.combine:
        conflict("parallel", contributors["result_policy"], "a shared accumulator needs an explicit combine step to be split.")

    if resolved.membership:
        if resolved.address_policy == "scalar":
            conflict("membership", contributors.get("address_policy", _DECLARATION), "membership tests walk arrays.")
        if resolved.result_policy != "elementwise":
            conflict("membership", contributors["result_policy"], "membership results are appended element by element.")
        if resolved.input_count < 2:
            conflict("membership", contributors.get("input_count", _DECLARATION), "membership needs a primary and a secondary array.")


def _validate_slots(resolved: ResolvedDefaults):
    seen = set()
    for slot in resolved.slots:
        if slot.name in seen:
            raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=resolved.name, slot=slot.index, what="duplicate slot name", name=slot.name)
        seen.add(slot.name)
        if slot.type not in (GENERIC_TYPE, SIGNED_GENERIC_TYPE):
            lookup_type(slot.type, resolved.name, slot.index)
        if slot.size is not None:
            reference = parse_size_expression(slot.size, resolved.name, slot.index)
            if isinstance(reference, str) and resolved.slot_named(reference) is None:
                raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=resolved.name, slot=slot.index, what="size expression slot", name=reference)

    for code in resolved.types or ():
        lookup_type(code, resolved.name)
