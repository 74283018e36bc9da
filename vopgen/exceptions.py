"""
Custom exception types for the vopgen specialization engine.

Every error raised here is a construction-time error: it is fatal to the
single declaration being built and always carries its identity. Generated
routines never raise for data conditions; they report failure through their
predicate operand instead.
"""

from enum import Enum
from typing import Optional, Union


class ErrorCode(Enum):

    # --- Capability Composition Errors ---
    UNKNOWN_CAPABILITY = "Unknown capability '{name}'."
    CAPABILITY_CONFLICT = "Capabilities {first} and {second} cannot be combined: {reason}"
    MISSING_ARITY = "No arity capability fixes the operand count (e.g. 'UnaryOperator', 'BinaryOperator')."

    # --- Declaration & Catalog Errors ---
    DUPLICATE_DECLARATION = "Operation '{name}' is declared more than once."
    UNKNOWN_OPERATION = "Unknown operation '{name}'."
    UNKNOWN_TYPE = "Unknown element type '{type_code}'."
    INVALID_SIZE_EXPRESSION = "Invalid size expression '{size}'. Expected an integer or '<slot>_count'."

    # --- Resolution Errors ---
    RESOLUTION_ERROR = "Cannot resolve {what} '{name}'."
    ILLEGAL_WRITE = "The unit computation writes to input operand '{name}'."
    ILLEGAL_PREDICATE_WRITE = "Error operand '{name}' can only be downgraded to false, but the unit assigns {value}."
    UNSUPPORTED_CONSTRUCT = "{details}"

    # --- Expansion Errors ---
    ILLEGAL_COMBINATION = "No legal combination remains: {reason}"

    # --- Unit Language Syntax Errors ---
    UNIT_SYNTAX_ERROR = "Syntax Error in unit computation: {details}"


class VopgenError(Exception):
    def __init__(
        self,
        code: ErrorCode,
        declaration: Optional[str] = None,
        slot: Optional[Union[int, str]] = None,
        **kwargs,
    ):
        self.code = code
        self.declaration = declaration
        self.slot = slot
        self.details = kwargs

        core_message = code.value.format(**kwargs)

        location_prefix = ""
        if declaration and slot is not None:
            location_prefix = f"Error in declaration '{declaration}' (slot {slot}): "
        elif declaration:
            location_prefix = f"Error in declaration '{declaration}': "

        self.message = location_prefix + core_message

        super().__init__(self.message)


class InternalCompilerError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
