"""
Declarations for operations whose result grows in place: string
concatenation and appending to a growable array.
"""

from ..catalog.declarations import OperationDeclaration
from ..catalog.operands import AddressMode, SlotOverride

DECLARATIONS = {
    "ConcatString": OperationDeclaration(
        name="ConcatString",
        capabilities=["ArrayAddressMode", "BinaryOperator", "ResizeResult"],
        slots=[
            SlotOverride(index=1, type="U08"),
            # Storage segment handle, fixed when the instruction is compiled
            SlotOverride(index=2, type="U32", mode=AddressMode.CON, size=1),
            SlotOverride(index=3, type="U08"),
        ],
        unit="res = op1;",
        category="string",
        doc="Appends the bytes of the first operand to the growable string.",
    ),
    "AppendElement": OperationDeclaration(
        name="AppendElement",
        capabilities=["MultipleAddressMode", "UnaryOperator", "ResizeResult"],
        unit="res = op1;",
        category="string",
        doc="Appends a value, or every element of an array, to the growable array.",
    ),
}
