import pytest

from vopgen.catalog.operands import AddressMode, SlotOverride
from vopgen.catalog.types import ElementType
from vopgen.exceptions import ErrorCode, VopgenError
from vopgen.expansion import expand, mode_domain, routine_key, routine_name, type_domain

from tests.utils import default_registry, resolve

# --- 1. Cross Product ---


def test_two_types_by_two_modes_per_slot():
    """Two types times (SCA|ARR) for an input and an output gives eight bindings."""
    resolved = resolve("Copy", ["MultipleAddressMode", "UnaryOperator"], types=["U32", "F32"])
    bindings = expand(resolved)

    assert len(bindings) == 8
    assert len(set(bindings)) == 8
    assert {b.element_type for b in bindings} == {ElementType.U32, ElementType.F32}
    assert {b.modes for b in bindings} == {
        (AddressMode.SCA, AddressMode.SCA),
        (AddressMode.SCA, AddressMode.ARR),
        (AddressMode.ARR, AddressMode.SCA),
        (AddressMode.ARR, AddressMode.ARR),
    }


def test_expansion_order_is_stable():
    resolved = resolve("Copy", ["MultipleAddressMode", "UnaryOperator"], types=["U32", "F32"])
    assert expand(resolved) == expand(resolved)
    assert expand(resolved)[0].element_type == ElementType.U32


def test_routine_keys_are_unique():
    resolved = default_registry().resolved("Min")
    keys = [routine_key(resolved, b, False) for b in expand(resolved)]
    assert len(keys) == len(set(keys))


def test_routine_name_convention():
    resolved = default_registry().resolved("Min")
    (binding,) = [b for b in expand(resolved) if b.element_type == ElementType.S32 and b.modes == (AddressMode.ARR, AddressMode.SCA, AddressMode.ARR)]
    assert routine_name(resolved, binding, False) == "Min_S32_ARR_SCA_ARR"
    assert routine_name(resolved, binding, True) == "Min_S32_ARR_SCA_ARR_mt"


# --- 2. Type Domain ---


def test_default_domain_excludes_complex_types():
    resolved = resolve("Copy", ["ArrayAddressMode", "UnaryOperator"])
    domain = type_domain(resolved)
    assert ElementType.CF32 not in domain
    assert len(domain) == 10


def test_float_only_prunes_integers():
    resolved = resolve("Root", ["ArrayAddressMode", "UnaryOperator", "FloatingPointOnly"])
    assert type_domain(resolved) == [ElementType.F32, ElementType.F64]


def test_fixed_operand_size_keeps_complex_types():
    resolved = resolve("Conj", ["ArrayAddressMode", "UnaryOperator", "FloatingPointOnly", "FixedOperandSize"])
    assert type_domain(resolved) == [ElementType.CF32, ElementType.CF64]


def test_fully_pruned_domain_is_an_error():
    resolved = resolve("Impossible", ["ArrayAddressMode", "UnaryOperator", "FloatingPointOnly"], types=["U32", "S08"])
    with pytest.raises(VopgenError) as excinfo:
        expand(resolved)
    assert excinfo.value.code == ErrorCode.ILLEGAL_COMBINATION
    assert "U32" in str(excinfo.value)


def test_fixed_primary_type_gives_singleton_domain():
    resolved = default_registry().resolved("ConcatString")
    assert type_domain(resolved) == [ElementType.U08]
    (binding,) = expand(resolved)
    assert binding.modes == (AddressMode.ARR, AddressMode.CON, AddressMode.DYN)


# --- 3. Mode Domain ---


def test_explicit_and_fixed_modes_are_singletons():
    resolved = resolve(
        "Strided",
        ["MultipleAddressMode", "BinaryOperator", "UnitResult"],
        unit="res = res + op1;",
        slots=[SlotOverride(index=2, type="U32", mode=AddressMode.CON, size=1)],
    )
    assert mode_domain(resolved, resolved.slots[0]) == (AddressMode.SCA, AddressMode.ARR)
    assert mode_domain(resolved, resolved.slots[1]) == (AddressMode.CON,)
    assert mode_domain(resolved, resolved.slots[2]) == (AddressMode.SCA,)


def test_membership_bindings_walk_both_arrays():
    resolved = default_registry().resolved("ArrayIntersect")
    bindings = expand(resolved)
    assert len(bindings) == 10
    assert all(b.modes == (AddressMode.ARR, AddressMode.ARR, AddressMode.SCA, AddressMode.ARR) for b in bindings)


def test_bounds_check_expands_to_one_binding():
    resolved = default_registry().resolved("CheckIndexPredicateAdd")
    (binding,) = expand(resolved)
    assert binding.element_type == ElementType.U32
    assert binding.modes == (AddressMode.SCA,) * 5
