"""
Runtime operand holders for the reference executor.

Arrays are passed as plain numpy buffers of the component dtype (complex
values are interleaved real/imaginary pairs). Scalars that a routine writes
are passed in a Cell, and growable outputs in a Segment whose length is owned
by the caller.
"""

from typing import Any, Optional

import numpy as np

from ..catalog.types import ElementType, lookup_type


class Cell:
    """A single mutable value: a scalar output or an in-out predicate."""

    def __init__(self, value: Any = 0):
        self.value = value

    def __repr__(self):
        return f"Cell({self.value!r})"

    def __eq__(self, other):
        if isinstance(other, Cell):
            return self.value == other.value
        return self.value == other


class Segment:
    """
    Growable storage with an externally owned length cell. `memory` is the
    current base buffer and may be replaced (relocated) by the growth
    primitive; `length` counts the component values in use.
    """

    def __init__(self, element_type, data=None, capacity: Optional[int] = None):
        self.element_type: ElementType = lookup_type(element_type)
        dtype = self.element_type.dtype
        initial = np.asarray(data if data is not None else [], dtype=dtype).ravel()
        size = max(capacity or 0, len(initial))
        self.memory = np.zeros(size, dtype=dtype)
        self.memory[: len(initial)] = initial
        self.length = len(initial)
        self.relocations = 0

    @property
    def capacity(self) -> int:
        return len(self.memory)

    @property
    def data(self) -> np.ndarray:
        return self.memory[: self.length].copy()

    def __repr__(self):
        return f"Segment({self.element_type.value}, length={self.length}, capacity={self.capacity})"
