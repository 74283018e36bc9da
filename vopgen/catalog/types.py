"""
The closed catalog of element types a specialized routine can be bound to.

Integers are fixed width and wrap on store, floats are IEEE single or double
precision, and complex values are pairs of float components laid out
contiguously.
"""

import math
from enum import Enum
from typing import Any, Dict, List, NamedTuple

import numpy as np

from ..exceptions import ErrorCode, VopgenError


class ElementType(str, Enum):
    S08 = "S08"
    S16 = "S16"
    S32 = "S32"
    S64 = "S64"
    U08 = "U08"
    U16 = "U16"
    U32 = "U32"
    U64 = "U64"
    F32 = "F32"
    F64 = "F64"
    CF32 = "CF32"
    CF64 = "CF64"

    @property
    def info(self) -> "TypeInfo":
        return TYPE_INFO[self]

    @property
    def kind(self) -> str:
        return self.info.kind

    @property
    def width(self) -> int:
        """Bits per component."""
        return self.info.width

    @property
    def components(self) -> int:
        return self.info.components

    @property
    def component_type(self) -> "ElementType":
        return ElementType(self.info.component)

    @property
    def c_type(self) -> str:
        return self.info.c_type

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.info.dtype)

    @property
    def is_integer(self) -> bool:
        return self.kind in ("signed", "unsigned")

    @property
    def is_signed(self) -> bool:
        return self.kind == "signed"

    @property
    def is_float(self) -> bool:
        return self.kind == "float"

    @property
    def is_complex(self) -> bool:
        return self.kind == "complex"


class TypeInfo(NamedTuple):
    kind: str
    width: int
    components: int
    component: str
    c_type: str
    dtype: Any


TYPE_INFO: Dict[ElementType, TypeInfo] = {
    ElementType.S08: TypeInfo("signed", 8, 1, "S08", "int8_t", np.int8),
    ElementType.S16: TypeInfo("signed", 16, 1, "S16", "int16_t", np.int16),
    ElementType.S32: TypeInfo("signed", 32, 1, "S32", "int32_t", np.int32),
    ElementType.S64: TypeInfo("signed", 64, 1, "S64", "int64_t", np.int64),
    ElementType.U08: TypeInfo("unsigned", 8, 1, "U08", "uint8_t", np.uint8),
    ElementType.U16: TypeInfo("unsigned", 16, 1, "U16", "uint16_t", np.uint16),
    ElementType.U32: TypeInfo("unsigned", 32, 1, "U32", "uint32_t", np.uint32),
    ElementType.U64: TypeInfo("unsigned", 64, 1, "U64", "uint64_t", np.uint64),
    ElementType.F32: TypeInfo("float", 32, 1, "F32", "float32_t", np.float32),
    ElementType.F64: TypeInfo("float", 64, 1, "F64", "float64_t", np.float64),
    ElementType.CF32: TypeInfo("complex", 32, 2, "F32", "float32_t", np.float32),
    ElementType.CF64: TypeInfo("complex", 64, 2, "F64", "float64_t", np.float64),
}

ALL_TYPES: List[ElementType] = list(ElementType)
SCALAR_TYPES: List[ElementType] = [t for t in ALL_TYPES if t.components == 1]
COMPLEX_TYPES: List[ElementType] = [t for t in ALL_TYPES if t.is_complex]


def lookup_type(code: Any, declaration: str = None, slot=None) -> ElementType:
    """Resolves a type code (or an ElementType) against the catalog."""
    if isinstance(code, ElementType):
        return code
    try:
        return ElementType(code)
    except ValueError:
        raise VopgenError(ErrorCode.UNKNOWN_TYPE, declaration=declaration, slot=slot, type_code=code)


def signed_counterpart(element_type: ElementType) -> ElementType:
    """
    Maps an unsigned integer type to the signed type of the same width.
    Signed, float and complex types map to themselves; complex types are
    compared component-wise so their counterpart is the component type.
    """
    if element_type.is_complex:
        return element_type.component_type
    if element_type.kind == "unsigned":
        return ElementType("S" + element_type.value[1:])
    return element_type


def wrap(element_type: ElementType, value: Any):
    """
    Converts a Python value to what a slot of `element_type` would hold:
    two's-complement wrap for integers, single-precision rounding for F32.
    """
    target = element_type.component_type
    if target.is_integer:
        if isinstance(value, float):
            if not math.isfinite(value):
                return 0
            value = int(value)
        bits = target.width
        value = int(value) & ((1 << bits) - 1)
        if target.is_signed and value >= 1 << (bits - 1):
            value -= 1 << bits
        return value
    if target == ElementType.F32:
        with np.errstate(over="ignore"):
            return float(np.float32(value))
    return float(value)
