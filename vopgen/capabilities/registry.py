"""
The registry of recognized capabilities. Each capability is a named bundle
of defaults an operation declaration composes; any field left as None
contributes nothing and leaves earlier capabilities untouched.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class Capability(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    input_count: Optional[int] = None
    output_count: Optional[int] = None
    address_policy: Optional[str] = None
    result_policy: Optional[str] = None
    float_only: Optional[bool] = None
    fixed_size_only: Optional[bool] = None
    parallel: Optional[bool] = None
    slow: Optional[bool] = None
    may_emit_error: Optional[bool] = None
    membership: Optional[bool] = None
    combine: Optional[str] = None
    doc: str = ""


def _capability(name: str, **fields) -> Capability:
    return Capability(name=name, **fields)


CAPABILITIES: Dict[str, Capability] = {
    # --- Arity ---
    "UnaryOperator": _capability("UnaryOperator", input_count=1, output_count=1, doc="One input operand, one result."),
    "BinaryOperator": _capability("BinaryOperator", input_count=2, output_count=1, doc="Two input operands, one result."),
    "TernaryOperator": _capability("TernaryOperator", input_count=3, output_count=1, doc="Three input operands, one result."),
    "QuaternaryOperator": _capability("QuaternaryOperator", input_count=4, output_count=1, doc="Four input operands, one result."),
    # --- Addressing ---
    "ArrayAddressMode": _capability("ArrayAddressMode", address_policy="array", doc="Every operand is an array."),
    "ScalarAddressMode": _capability("ScalarAddressMode", address_policy="scalar", doc="Every operand is a single value."),
    "MultipleAddressMode": _capability(
        "MultipleAddressMode",
        address_policy="multiple",
        doc="Each operand is independently a scalar or an array; scalars are broadcast.",
    ),
    # --- Result Handling ---
    "UnitResult": _capability("UnitResult", result_policy="reduction", doc="The inputs are reduced to a single scalar result."),
    "ResizeResult": _capability("ResizeResult", result_policy="growable", doc="The result is grown in place and its length advanced."),
    # --- Type Constraints ---
    "FloatingPointOnly": _capability("FloatingPointOnly", float_only=True, doc="Integer types are never generated."),
    "FixedOperandSize": _capability(
        "FixedOperandSize",
        fixed_size_only=True,
        doc="Each unit spans a fixed number of components; only multi-component types are generated.",
    ),
    # --- Execution Hints ---
    "Multithreaded": _capability("Multithreaded", parallel=True, doc="A range-splitting entry point is generated beside the serial routine."),
    "Slow": _capability("Slow", slow=True, doc="Advisory cost metadata for the scheduler. Never changes the routine."),
    # --- Error Policy ---
    "MayEmitError": _capability("MayEmitError", may_emit_error=True, doc="A trailing predicate operand is downgraded on failure."),
    # --- Set Semantics ---
    "ArrayComparison": _capability(
        "ArrayComparison",
        membership=True,
        doc="Each block of the primary array is tested for membership in the secondary array.",
    ),
    # --- Combine Steps for Partial Accumulators ---
    "AdditiveCombine": _capability("AdditiveCombine", combine="left + right", doc="Partial accumulators are summed."),
    "MinimumCombine": _capability("MinimumCombine", combine="(left < right) ? left : right", doc="The smallest partial accumulator wins."),
    "MaximumCombine": _capability("MaximumCombine", combine="(left > right) ? left : right", doc="The largest partial accumulator wins."),
    "MultiplicativeCombine": _capability("MultiplicativeCombine", combine="left * right", doc="Partial accumulators are multiplied."),
}
