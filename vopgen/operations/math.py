"""
Declarations for elementwise arithmetic. Each operand may independently be
a scalar or an array; scalars are broadcast across the array operands.
"""

from ..catalog.declarations import OperationDeclaration


def _binary(name: str, unit: str, doc: str) -> OperationDeclaration:
    return OperationDeclaration(
        name=name,
        capabilities=["MultipleAddressMode", "BinaryOperator", "Multithreaded"],
        unit=unit,
        category="math",
        doc=doc,
    )


DECLARATIONS = {
    # --- Arithmetic ---
    "Add": _binary("Add", "res = op1 + op2;", "Adds two values."),
    "Subtract": _binary("Subtract", "res = op1 - op2;", "Subtracts the second value from the first."),
    "Multiply": _binary("Multiply", "res = op1 * op2;", "Multiplies two values."),
    "Divide": _binary("Divide", "res = op1 / op2;", "Divides the first value by the second. Integer division by zero yields 0."),
    # --- Selection ---
    "Min": _binary("Min", "res = (op1 < op2) ? op1 : op2;", "The smaller of two values."),
    "Max": _binary("Max", "res = (op1 > op2) ? op1 : op2;", "The larger of two values."),
    # --- Unary Functions ---
    "Abs": OperationDeclaration(
        name="Abs",
        capabilities=["MultipleAddressMode", "UnaryOperator", "Multithreaded"],
        unit="res = abs(op1);",
        category="math",
        doc="Absolute value. Identity on unsigned types.",
    ),
    "Sqrt": OperationDeclaration(
        name="Sqrt",
        capabilities=["MultipleAddressMode", "UnaryOperator", "FloatingPointOnly", "Multithreaded"],
        unit="res = sqrt(op1);",
        category="math",
        doc="Square root. Negative inputs give NaN.",
    ),
}
