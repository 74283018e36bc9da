"""
The Expansion Engine: a pure function from a resolved declaration to the
finite, ordered sequence of (type, per-slot mode) bindings it must be
specialized for.
"""

import itertools
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict

from .capabilities.composition import ResolvedDefaults
from .catalog.operands import AddressMode, OperandSlot
from .catalog.types import ALL_TYPES, ElementType, lookup_type, signed_counterpart
from .config.config import ADDRESS_POLICIES, GENERIC_TYPE, SIGNED_GENERIC_TYPE
from .exceptions import ErrorCode, VopgenError


class Binding(BaseModel):
    """One concrete combination: the type bound to T and the mode of every slot, in slot order."""

    model_config = ConfigDict(frozen=True)

    element_type: ElementType
    modes: Tuple[AddressMode, ...]

    def mode_of(self, slot: OperandSlot) -> AddressMode:
        return self.modes[slot.index - 1]


def type_domain(resolved: ResolvedDefaults) -> List[ElementType]:
    """
    The ordered types the generic token T ranges over. Declarations without
    a generic slot yield their primary operand's fixed type as a singleton.
    """
    if not any(slot.is_generic for slot in resolved.slots):
        return [lookup_type(resolved.primary.type, resolved.name, resolved.primary.index)]

    if resolved.types is not None:
        candidates = [lookup_type(code, resolved.name) for code in resolved.types]
    else:
        candidates = list(ALL_TYPES)

    pruned = []
    domain = []
    for element_type in candidates:
        if resolved.fixed_size_only and not element_type.is_complex:
            pruned.append(f"{element_type.value} (not fixed-size)")
        elif not resolved.fixed_size_only and element_type.is_complex:
            pruned.append(f"{element_type.value} (multi-component)")
        elif resolved.float_only and element_type.is_integer:
            pruned.append(f"{element_type.value} (float-only)")
        elif element_type not in domain:
            domain.append(element_type)

    if not domain:
        raise VopgenError(
            ErrorCode.ILLEGAL_COMBINATION,
            declaration=resolved.name,
            reason=f"every candidate type was pruned by the declared constraints: {', '.join(pruned)}.",
        )
    return domain


def mode_domain(resolved: ResolvedDefaults, slot: OperandSlot) -> Tuple[AddressMode, ...]:
    """
    Explicitly moded slots (constants, fixed results, predicates) are
    singletons; every other slot follows the addressing policy.
    """
    if slot.mode is not None:
        return (slot.mode,)
    return tuple(AddressMode(mode) for mode in ADDRESS_POLICIES[resolved.address_policy])


def _binding_is_legal(resolved: ResolvedDefaults, modes: Tuple[AddressMode, ...]) -> bool:
    """Constraints that rule out individual cells of the cross product."""
    if resolved.membership:
        # The primary and secondary operands are always walked as arrays
        return modes[0] == AddressMode.ARR and modes[1] == AddressMode.ARR
    return True


def expand(resolved: ResolvedDefaults) -> List[Binding]:
    """Enumerates every legal binding, one per specialized routine."""
    types = type_domain(resolved)
    slot_modes = [mode_domain(resolved, slot) for slot in resolved.slots]

    bindings: List[Binding] = []
    for element_type, *modes in itertools.product(types, *slot_modes):
        if not _binding_is_legal(resolved, tuple(modes)):
            continue
        binding = Binding(element_type=element_type, modes=tuple(modes))
        if binding not in bindings:
            bindings.append(binding)

    if not bindings:
        raise VopgenError(ErrorCode.ILLEGAL_COMBINATION, declaration=resolved.name, reason="no addressing-mode combination satisfies the constraints.")
    return bindings


def bound_type(slot: OperandSlot, element_type: ElementType) -> ElementType:
    """The concrete type a slot holds under a binding."""
    if slot.type == GENERIC_TYPE:
        return element_type
    if slot.type == SIGNED_GENERIC_TYPE:
        return signed_counterpart(element_type)
    return lookup_type(slot.type)


def routine_key(resolved: ResolvedDefaults, binding: Binding, parallel: bool) -> Tuple:
    """Unique identity of a specialized routine."""
    slot_types = tuple(bound_type(slot, binding.element_type).value for slot in resolved.slots)
    modes = tuple(mode.value for mode in binding.modes)
    return (resolved.name, binding.element_type.value, slot_types, modes, parallel)


def routine_name(resolved: ResolvedDefaults, binding: Binding, parallel: bool) -> str:
    """Convention: <Operation>_<TYPE>_<MODE per slot>[_mt]"""
    modes = "_".join(mode.value for mode in binding.modes)
    suffix = "_mt" if parallel else ""
    return f"{resolved.name}_{binding.element_type.value}_{modes}{suffix}"
