"""
Declarations for whole-array operations: reductions to a single scalar and
the set operations that keep or drop primary elements depending on whether
they occur in a second array.
"""

from ..catalog.declarations import OperationDeclaration
from ..catalog.operands import AddressMode, SlotOverride

# The third operand of a set operation is the block size, in elements, that
# the arrays are compared in. A stride of 1 compares single elements.
_SET_SLOTS = [
    SlotOverride(index=3, name="op3", type="U32", mode=AddressMode.SCA, size=1),
    SlotOverride(index=4, size="op1_count"),
]

DECLARATIONS = {
    # --- Reductions ---
    "ArraySum": OperationDeclaration(
        name="ArraySum",
        capabilities=["MultipleAddressMode", "UnaryOperator", "UnitResult"],
        unit="res = res + op1;",
        accumulator=0,
        category="array",
        doc="Sum of every element, accumulated left to right.",
    ),
    "ArrayProduct": OperationDeclaration(
        name="ArrayProduct",
        capabilities=["MultipleAddressMode", "UnaryOperator", "UnitResult"],
        unit="res = res * op1;",
        accumulator=1,
        category="array",
        doc="Product of every element.",
    ),
    "ArrayMin": OperationDeclaration(
        name="ArrayMin",
        capabilities=["MultipleAddressMode", "UnaryOperator", "UnitResult", "Multithreaded", "MinimumCombine"],
        unit="res = (op1 < res) ? op1 : res;",
        accumulator="first",
        category="array",
        doc="Smallest element. An empty array gives 0.",
    ),
    "ArrayMax": OperationDeclaration(
        name="ArrayMax",
        capabilities=["MultipleAddressMode", "UnaryOperator", "UnitResult", "Multithreaded", "MaximumCombine"],
        unit="res = (op1 > res) ? op1 : res;",
        accumulator="first",
        category="array",
        doc="Largest element. An empty array gives 0.",
    ),
    # --- Set Operations ---
    "ArrayIntersect": OperationDeclaration(
        name="ArrayIntersect",
        capabilities=["ArrayAddressMode", "BinaryOperator", "ArrayComparison", "Multithreaded"],
        input_count=3,
        slots=_SET_SLOTS,
        unit="if (found) { res = op1; }",
        category="array",
        doc="Blocks of the first array that also occur in the second, in first-array order.",
    ),
    "ArrayDifference": OperationDeclaration(
        name="ArrayDifference",
        capabilities=["ArrayAddressMode", "BinaryOperator", "ArrayComparison", "Multithreaded"],
        input_count=3,
        slots=_SET_SLOTS,
        unit="if (!found) { res = op1; }",
        category="array",
        doc="Blocks of the first array that do not occur in the second, in first-array order.",
    ),
}
