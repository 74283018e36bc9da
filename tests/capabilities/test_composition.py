import pytest

from vopgen.capabilities import CAPABILITIES, compose
from vopgen.catalog.operands import AddressMode, Mutability, SlotOverride
from vopgen.exceptions import ErrorCode, VopgenError
from vopgen.registry import OperationRegistry

from tests.utils import declare, resolve


def assert_composition_error(expected_code: ErrorCode, *args, **kwargs) -> VopgenError:
    with pytest.raises(VopgenError) as excinfo:
        resolve(*args, **kwargs)
    assert excinfo.value.code == expected_code
    return excinfo.value


# --- 1. Defaults From Capabilities ---


def test_arity_capability_builds_default_slots():
    resolved = resolve("Pair", ["ArrayAddressMode", "BinaryOperator"])
    assert [s.name for s in resolved.slots] == ["op1", "op2", "res"]
    assert [s.mutability for s in resolved.slots] == [Mutability.INPUT, Mutability.INPUT, Mutability.OUTPUT]
    assert resolved.slots[0].type == "T"
    assert resolved.slots[0].size == "op1_count"
    assert resolved.address_policy == "array"
    assert resolved.result_policy == "elementwise"


def test_reduction_output_is_scalar():
    resolved = resolve("Total", ["MultipleAddressMode", "UnaryOperator", "UnitResult"], unit="res = res + op1;")
    assert resolved.result_slot.mode == AddressMode.SCA
    assert resolved.result_slot.size == 1


def test_growable_output_is_dyn():
    resolved = resolve("Grow", ["ArrayAddressMode", "UnaryOperator", "ResizeResult"])
    assert resolved.result_slot.mode == AddressMode.DYN
    assert resolved.result_slot.size == "res_count"


def test_may_emit_error_appends_trailing_predicate():
    resolved = resolve("Check", ["ScalarAddressMode", "BinaryOperator", "MayEmitError"])
    pred = resolved.slots[-1]
    assert pred.name == "pred"
    assert pred.type == "S32"
    assert pred.mode == AddressMode.SCA
    assert pred.mutability == Mutability.IN_OUT
    assert pred.signals_error
    assert resolved.error_slot == pred
    assert resolved.result_slot.name == "res"


def test_later_capabilities_override_earlier_ones():
    resolved = resolve("Flip", ["ScalarAddressMode", "UnaryOperator", "ArrayAddressMode", "BinaryOperator"])
    assert resolved.address_policy == "array"
    assert resolved.input_count == 2


def test_explicit_input_count_and_overrides_win():
    resolved = resolve(
        "Explicit",
        ["ArrayAddressMode", "BinaryOperator"],
        input_count=3,
        slots=[SlotOverride(index=3, type="U32", mode=AddressMode.SCA, size=1)],
    )
    assert resolved.input_count == 3
    assert resolved.slots[2].type == "U32"
    assert resolved.slots[2].mode == AddressMode.SCA
    assert resolved.slots[3].name == "res"


def test_composition_is_deterministic():
    """Composing the same declaration twice yields equal records."""
    declaration = declare("Twice", ["MultipleAddressMode", "BinaryOperator", "Multithreaded"], unit="res = op1 + op2;")
    assert compose(declaration) == compose(declaration)


def test_slow_is_carried_as_metadata():
    resolved = resolve("Heavy", ["ArrayAddressMode", "UnaryOperator", "Slow"])
    assert resolved.slow
    assert resolved.slots == resolve("Light", ["ArrayAddressMode", "UnaryOperator"]).slots


# --- 2. Rejected Declarations ---


def test_unknown_capability():
    error = assert_composition_error(ErrorCode.UNKNOWN_CAPABILITY, "Odd", ["ArrayAddressMode", "UnaryOperator", "Vectorised"])
    assert "Vectorised" in str(error)
    assert "Odd" in str(error)


def test_missing_arity():
    assert_composition_error(ErrorCode.MISSING_ARITY, "NoArity", ["ArrayAddressMode"])


@pytest.mark.parametrize(
    "capabilities",
    [
        ["ArrayAddressMode", "UnaryOperator", "ResizeResult", "Multithreaded"],
        ["ArrayAddressMode", "UnaryOperator", "UnitResult", "Multithreaded"],
        ["ArrayAddressMode", "BinaryOperator", "FixedOperandSize", "ArrayComparison"],
        ["ScalarAddressMode", "BinaryOperator", "ArrayComparison"],
        ["ArrayAddressMode", "BinaryOperator", "UnitResult", "ArrayComparison"],
        ["ArrayAddressMode", "UnaryOperator", "ArrayComparison"],
    ],
)
def test_mutually_exclusive_capabilities(capabilities):
    error = assert_composition_error(ErrorCode.CAPABILITY_CONFLICT, "Conflicted", capabilities)
    assert str(error).startswith("Error in declaration 'Conflicted'")


def test_parallel_reduction_with_combine_step_is_accepted():
    resolved = resolve("ParallelSum", ["ArrayAddressMode", "UnaryOperator", "UnitResult", "Multithreaded", "AdditiveCombine"], unit="res = res + op1;")
    assert resolved.parallel
    assert resolved.combine == "left + right"


def test_float_only_conflicts_with_integer_primary():
    error = assert_composition_error(
        ErrorCode.CAPABILITY_CONFLICT,
        "FloatIndex",
        ["ArrayAddressMode", "UnaryOperator", "FloatingPointOnly"],
        slots=[SlotOverride(index=1, type="U32")],
    )
    assert error.slot == 1


def test_override_cannot_change_fixed_result_mode():
    assert_composition_error(
        ErrorCode.CAPABILITY_CONFLICT,
        "ArraySumOfArrays",
        ["ArrayAddressMode", "UnaryOperator", "UnitResult"],
        slots=[SlotOverride(index=2, mode=AddressMode.ARR)],
    )


def test_override_outside_slot_list():
    error = assert_composition_error(ErrorCode.RESOLUTION_ERROR, "FarOverride", ["ArrayAddressMode", "UnaryOperator"], slots=[SlotOverride(index=5, type="U32")])
    assert error.slot == 5


def test_size_expression_referencing_missing_slot():
    error = assert_composition_error(
        ErrorCode.RESOLUTION_ERROR,
        "Dangling",
        ["ArrayAddressMode", "UnaryOperator"],
        slots=[SlotOverride(index=2, size="op7_count")],
    )
    assert "op7" in str(error)
    assert error.slot == 2


def test_unknown_type_in_restriction():
    assert_composition_error(ErrorCode.UNKNOWN_TYPE, "Restricted", ["ArrayAddressMode", "UnaryOperator"], types=["U32", "Q16"])


# --- 3. Registry ---


def test_every_shipped_declaration_composes():
    registry = OperationRegistry.default()
    for name in registry.names:
        assert registry.resolved(name).name == name
    assert "ArrayIntersect" in registry
    assert "CheckIndexPredicateAdd" in registry


def test_duplicate_declaration_is_rejected():
    registry = OperationRegistry([declare("Once", ["ArrayAddressMode", "UnaryOperator"])])
    with pytest.raises(VopgenError) as excinfo:
        registry.register(declare("Once", ["ArrayAddressMode", "UnaryOperator"]))
    assert excinfo.value.code == ErrorCode.DUPLICATE_DECLARATION


def test_unknown_operation_lookup():
    with pytest.raises(VopgenError) as excinfo:
        OperationRegistry.default().get("Frobnicate")
    assert excinfo.value.code == ErrorCode.UNKNOWN_OPERATION


def test_capability_registry_names():
    assert {"UnaryOperator", "BinaryOperator", "TernaryOperator", "QuaternaryOperator"} <= set(CAPABILITIES)
    assert CAPABILITIES["ArrayComparison"].membership
    assert CAPABILITIES["Slow"].slow
