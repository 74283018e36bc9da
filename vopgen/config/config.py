"""
Static configuration data for the vopgen specialization engine.
This includes addressing and result policies, default operand naming,
runtime growth rules and the pipeline stage map.
"""

# Each addressing policy names the modes every non-fixed slot may take.
# 'multiple' lets each slot range independently, which enables broadcast.
ADDRESS_POLICIES = {
    "array": ("ARR",),
    "scalar": ("SCA",),
    "multiple": ("SCA", "ARR"),
}

# Result policies fix the mode of the output slot regardless of the
# addressing policy. 'elementwise' leaves it to the addressing policy.
RESULT_POLICIES = {
    "elementwise": None,
    "reduction": "SCA",
    "growable": "DYN",
}

DEFAULT_RESULT_POLICY = "elementwise"
DEFAULT_ADDRESS_POLICY = "array"

# Names used when a slot is generated from an arity capability.
INPUT_SLOT_NAME = "op{index}"
OUTPUT_SLOT_NAME = "res"
PREDICATE_SLOT_NAME = "pred"
PREDICATE_SLOT_TYPE = "S32"

# The generic type token a slot declares before expansion binds it.
GENERIC_TYPE = "T"
SIGNED_GENERIC_TYPE = "ST"

# Identifiers the unit language exposes besides operand names.
FOUND_FLAG = "found"
COMBINE_OPERANDS = ("left", "right")

# Functions the unit language may call, with their arity.
UNIT_FUNCTIONS = {"sqrt": 1, "abs": 1, "floor": 1, "min": 2, "max": 2}

# Capacity requests against a growable segment are rounded up to this many bytes.
GROWTH_ALIGNMENT = 1024

DEFAULT_WORKER_COUNT = 4

# Single source of truth for pipeline stage names and their order.
STAGE_MAP = {
    "1": ("declarations", "Registered Operation Declarations"),
    "2": ("resolved", "Resolved Capability Defaults"),
    "3": ("bindings", "Expanded Type/Mode Bindings"),
    "4": ("routines", "Specialized Routine Set"),
}
