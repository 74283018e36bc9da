"""
Storage primitives the generated routines call into: the capacity-growth
primitive for growable results and the block comparator family used by
strided membership tests.
"""

from typing import Any, Callable, Dict

import numpy as np

from ..catalog.types import ElementType, lookup_type
from ..config.config import GROWTH_ALIGNMENT
from .operands import Segment


def _aligned(byte_count: int) -> int:
    return ((byte_count + GROWTH_ALIGNMENT - 1) // GROWTH_ALIGNMENT) * GROWTH_ALIGNMENT


def resize_segment(local_storage: Any, handle: Any, segment: Segment, count: int) -> np.ndarray:
    """
    Returns a base buffer with room for at least `count` values of the
    segment's type. Existing content is preserved, new space is zero-filled,
    and the buffer may be relocated; callers must rebind to the return value.

    `local_storage` and `handle` identify the segment in the VM's storage
    table. The reference segment is passed directly, so they are accepted for
    signature compatibility only.
    """
    if count <= segment.capacity:
        return segment.memory

    dtype = segment.element_type.dtype
    byte_count = _aligned(count * dtype.itemsize)
    memory = np.zeros(byte_count // dtype.itemsize, dtype=dtype)
    memory[: segment.length] = segment.memory[: segment.length]
    return memory


def _compare(a: np.ndarray, b: np.ndarray) -> int:
    """Lexicographic three-way comparison of two equally long blocks."""
    for x, y in zip(a.tolist(), b.tolist()):
        if x < y:
            return -1
        if x > y:
            return 1
    return 0


def _comparator(element_type: ElementType) -> Callable[[np.ndarray, np.ndarray], int]:
    dtype = element_type.dtype

    def compare(a, b) -> int:
        # Unsigned blocks are ordered through their signed reinterpretation.
        left = np.asarray(a).astype(dtype, copy=False)
        right = np.asarray(b).astype(dtype, copy=False)
        return _compare(left, right)

    return compare


BLOCK_COMPARATORS: Dict[ElementType, Callable] = {
    element_type: _comparator(element_type)
    for element_type in ElementType
    if element_type.is_signed or element_type.is_float
}


def compare_block(type_code, a, b) -> int:
    """Compares two blocks with the comparator keyed by a signed numeric type; 0 means equal."""
    return BLOCK_COMPARATORS[lookup_type(type_code)](a, b)
