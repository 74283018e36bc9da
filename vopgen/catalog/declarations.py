"""
Defines the Operation Declaration, the authored description of one virtual
instruction. A declaration is written once and never mutated; everything
else in the engine is derived from it.
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .operands import SlotOverride

# Accumulator seed that starts a reduction from the first unit it covers
# instead of from a literal identity value.
FIRST_UNIT = "first"


class OperationDeclaration(BaseModel):
    """
    One virtual instruction: an ordered capability list, optional explicit
    overrides, and the unit computation applied once per element.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    capabilities: List[str]
    unit: str
    input_count: Optional[int] = None
    slots: List[SlotOverride] = Field(default_factory=list)
    types: Optional[List[str]] = None
    accumulator: Union[int, float, Literal["first"]] = 0
    category: str = "general"
    doc: Optional[str] = None
