"""
Defines the operand slot contracts shared by declarations, composition,
expansion and synthesis.
"""

import re
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from ..exceptions import ErrorCode, VopgenError


class AddressMode(str, Enum):
    """How an operand's data is laid out."""

    SCA = "SCA"  # single immediate value
    ARR = "ARR"  # fixed-length contiguous sequence plus a count
    CON = "CON"  # literal that does not depend on the data
    DYN = "DYN"  # growable output with an externally owned length cell


class Mutability(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    IN_OUT = "in_out"


SizeExpression = Union[int, str]

_SIZE_REFERENCE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)_count$")


def parse_size_expression(size: SizeExpression, declaration: Optional[str] = None, slot=None) -> Union[int, str]:
    """
    Returns either the literal element count or the name of the slot whose
    runtime count the expression refers to ('op1_count' -> 'op1').
    """
    if isinstance(size, bool):
        raise VopgenError(ErrorCode.INVALID_SIZE_EXPRESSION, declaration=declaration, slot=slot, size=size)
    if isinstance(size, int):
        if size < 0:
            raise VopgenError(ErrorCode.INVALID_SIZE_EXPRESSION, declaration=declaration, slot=slot, size=size)
        return size
    match = _SIZE_REFERENCE.match(str(size))
    if not match:
        raise VopgenError(ErrorCode.INVALID_SIZE_EXPRESSION, declaration=declaration, slot=slot, size=size)
    return match.group(1)


class OperandSlot(BaseModel):
    """One positional input or output of an operation, after composition."""

    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    type: str
    mode: Optional[AddressMode] = None
    size: Optional[SizeExpression] = None
    mutability: Mutability = Mutability.INPUT
    signals_error: bool = False

    @property
    def is_output(self) -> bool:
        return self.mutability != Mutability.INPUT

    @property
    def is_generic(self) -> bool:
        return self.type in ("T", "ST")


class SlotOverride(BaseModel):
    """
    A partial slot record authored on an operation declaration. Fields left
    as None keep whatever the capabilities contributed.
    """

    model_config = ConfigDict(frozen=True)

    index: int
    name: Optional[str] = None
    type: Optional[str] = None
    mode: Optional[AddressMode] = None
    size: Optional[SizeExpression] = None
    mutability: Optional[Mutability] = None
    signals_error: Optional[bool] = None
