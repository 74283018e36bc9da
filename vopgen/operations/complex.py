"""
Declarations for complex arithmetic. Elements are (real, imaginary) pairs
laid out contiguously, so every unit spans two components.
"""

from ..catalog.declarations import OperationDeclaration

DECLARATIONS = {
    "ComplexMultiply": OperationDeclaration(
        name="ComplexMultiply",
        capabilities=["ArrayAddressMode", "BinaryOperator", "FloatingPointOnly", "FixedOperandSize", "Multithreaded"],
        unit="""
            T r = op1[0] * op2[0] - op1[1] * op2[1];
            T i = op1[0] * op2[1] + op1[1] * op2[0];
            res[0] = r;
            res[1] = i;
        """,
        category="complex",
    ),
    "ComplexDivide": OperationDeclaration(
        name="ComplexDivide",
        capabilities=["ArrayAddressMode", "BinaryOperator", "FloatingPointOnly", "FixedOperandSize", "Slow", "Multithreaded"],
        unit="""
            T w = op2[0] * op2[0] + op2[1] * op2[1];
            T r = ((op1[0] * op2[0]) + (op1[1] * op2[1])) / w;
            T i = ((op1[1] * op2[0]) - (op1[0] * op2[1])) / w;
            res[0] = r;
            res[1] = i;
        """,
        category="complex",
        doc="Division by zero follows IEEE and gives NaN components.",
    ),
}
