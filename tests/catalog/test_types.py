import numpy as np
import pytest

from vopgen.catalog.operands import parse_size_expression
from vopgen.catalog.types import ALL_TYPES, COMPLEX_TYPES, SCALAR_TYPES, ElementType, lookup_type, signed_counterpart, wrap
from vopgen.exceptions import ErrorCode, VopgenError

# --- 1. Catalog Shape ---


def test_catalog_is_closed_and_complete():
    """The catalog holds exactly the twelve element types, in a stable order."""
    assert [t.value for t in ALL_TYPES] == ["S08", "S16", "S32", "S64", "U08", "U16", "U32", "U64", "F32", "F64", "CF32", "CF64"]
    assert COMPLEX_TYPES == [ElementType.CF32, ElementType.CF64]
    assert len(SCALAR_TYPES) == 10


def test_complex_types_are_pairs_of_float_components():
    assert ElementType.CF32.components == 2
    assert ElementType.CF32.component_type == ElementType.F32
    assert ElementType.CF64.component_type == ElementType.F64
    assert ElementType.CF64.dtype == np.dtype(np.float64)
    assert ElementType.CF64.is_complex and not ElementType.CF64.is_float


def test_type_properties():
    assert ElementType.U16.width == 16
    assert ElementType.U16.is_integer and not ElementType.U16.is_signed
    assert ElementType.S64.is_signed
    assert ElementType.F32.is_float and not ElementType.F32.is_integer
    assert ElementType.U32.c_type == "uint32_t"
    assert ElementType.F32.c_type == "float32_t"


def test_unknown_type_code_is_rejected():
    with pytest.raises(VopgenError) as excinfo:
        lookup_type("I32", "Broken", 2)
    assert excinfo.value.code == ErrorCode.UNKNOWN_TYPE
    assert "Broken" in str(excinfo.value)
    assert "(slot 2)" in str(excinfo.value)
    assert "'I32'" in str(excinfo.value)


# --- 2. Signed Counterparts ---


@pytest.mark.parametrize(
    "code, expected",
    [("U08", "S08"), ("U32", "S32"), ("U64", "S64"), ("S16", "S16"), ("F32", "F32"), ("CF64", "F64")],
)
def test_signed_counterpart(code, expected):
    assert signed_counterpart(ElementType(code)) == ElementType(expected)


# --- 3. Storage Semantics ---


def test_wrap_integers_like_fixed_width_storage():
    assert wrap(ElementType.U08, 256) == 0
    assert wrap(ElementType.U08, -1) == 255
    assert wrap(ElementType.S08, 128) == -128
    assert wrap(ElementType.U32, 2**32 + 5) == 5
    assert wrap(ElementType.S32, 7.9) == 7


def test_wrap_rounds_single_precision_floats():
    assert wrap(ElementType.F32, 0.1) == float(np.float32(0.1))
    assert wrap(ElementType.F64, 0.1) == 0.1


# --- 4. Size Expressions ---


def test_size_expressions():
    assert parse_size_expression(1) == 1
    assert parse_size_expression("op1_count") == "op1"
    assert parse_size_expression("res_count") == "res"
    with pytest.raises(VopgenError) as excinfo:
        parse_size_expression("op1_length", "Broken", 3)
    assert excinfo.value.code == ErrorCode.INVALID_SIZE_EXPRESSION
