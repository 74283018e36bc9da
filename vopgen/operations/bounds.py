"""
Fused bounds checks. The index arithmetic and the bounds predicate are
computed in the same instruction; an out-of-range index moves the predicate
to false and never back.
"""

from ..catalog.declarations import OperationDeclaration

_CAPABILITIES = ["ScalarAddressMode", "TernaryOperator", "MayEmitError"]

DECLARATIONS = {
    # op1: index, op2: dimension (the limit), op3: offset or element size
    "CheckIndexPredicateAdd": OperationDeclaration(
        name="CheckIndexPredicateAdd",
        capabilities=_CAPABILITIES,
        types=["U32"],
        unit="""
            res = op1 + op3;
            if (!(op1 < op2)) {
                pred = false;
            }
        """,
        category="bounds",
        doc="res = index + offset, with pred cleared when index >= dimension.",
    ),
    "CheckIndexPredicateMultiply": OperationDeclaration(
        name="CheckIndexPredicateMultiply",
        capabilities=_CAPABILITIES,
        types=["U32"],
        unit="""
            res = op1 * op3;
            if (!(op1 < op2)) {
                pred = false;
            }
        """,
        category="bounds",
        doc="res = index * element size, with pred cleared when index >= dimension.",
    ),
}
