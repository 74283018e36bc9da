"""
Defines the formal data structures (contracts) of the routine tree.

The unit parser produces these nodes with names still unbound (Name,
Indexed); the binder replaces them with operand references, locals and
concrete types; the synthesizer wraps the bound unit in iteration, growth
and membership scaffolding. Nothing here is ever rendered to text by this
package.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Node(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Expressions ---


class Const(Node):
    kind: Literal["const"] = "const"
    value: Union[bool, int, float]


class Name(Node):
    """An identifier the binder has not resolved yet."""

    kind: Literal["name"] = "name"
    id: str


class Indexed(Node):
    """An unresolved component access such as op1[0]."""

    kind: Literal["indexed"] = "indexed"
    id: str
    component: int


class Local(Node):
    kind: Literal["local"] = "local"
    name: str


class OperandRef(Node):
    """The current unit of an operand: the walked element of an array, or the broadcast scalar."""

    kind: Literal["operand"] = "operand"
    slot: int
    name: str
    component: Optional[int] = None


class Count(Node):
    """Runtime element count of an operand (1 for a scalar)."""

    kind: Literal["count"] = "count"
    slot: int
    name: str


class Length(Node):
    """Current value of a growable operand's externally owned length cell."""

    kind: Literal["length"] = "length"
    slot: int
    name: str


class Unary(Node):
    kind: Literal["unary"] = "unary"
    op: str
    operand: "Expression"


class Binary(Node):
    kind: Literal["binary"] = "binary"
    op: str
    left: "Expression"
    right: "Expression"


class Ternary(Node):
    kind: Literal["ternary"] = "ternary"
    condition: "Expression"
    then: "Expression"
    otherwise: "Expression"


class Call(Node):
    kind: Literal["call"] = "call"
    function: str
    args: List["Expression"]
    type: Optional[str] = None


class Cast(Node):
    kind: Literal["cast"] = "cast"
    type: str
    operand: "Expression"


class FirstUnit(Node):
    """The operand's unit at the first index the invocation covers (0, or range_start for a worker)."""

    kind: Literal["first_unit"] = "first_unit"
    slot: int
    name: str


Expression = Annotated[
    Union[Const, Name, Indexed, Local, OperandRef, Count, Length, Unary, Binary, Ternary, Call, Cast, FirstUnit],
    Field(discriminator="kind"),
]


# --- Statements ---


class Declare(Node):
    kind: Literal["declare"] = "declare"
    name: str
    type: str
    value: Expression


class Assign(Node):
    kind: Literal["assign"] = "assign"
    target: Annotated[Union[Name, Indexed, Local, OperandRef], Field(discriminator="kind")]
    value: Expression


class If(Node):
    kind: Literal["if"] = "if"
    condition: Expression
    then: List["Statement"]
    otherwise: List["Statement"] = Field(default_factory=list)


class Downgrade(Node):
    """Moves an error-bearing operand to false. Nothing ever moves it back."""

    kind: Literal["downgrade"] = "downgrade"
    slot: int
    name: str


class Append(Node):
    """
    Copies the current block of `source` into `target` at the position held by
    the `written` local, then advances that local by `length`.
    """

    kind: Literal["append"] = "append"
    source: int
    target: int
    length: Expression
    written: str


class Cursor(Node):
    """
    How an operand is addressed inside an ElementLoop: a walked position that
    advances `width` components per unit (starting at `offset`), or a
    broadcast value reused by every unit.
    """

    slot: int
    name: str
    width: Expression
    offset: Optional[Expression] = None
    broadcast: bool = False


class ElementLoop(Node):
    """
    Iterates `count` units. A ranged loop is a worker entry point that only
    covers the [range_start, range_end) units it is given.
    """

    kind: Literal["loop"] = "loop"
    count: Expression
    cursors: List[Cursor]
    body: List["Statement"]
    ranged: bool = False


class MembershipTest(Node):
    """
    Walks the secondary array block by block and sets the `found` local when
    a block equals the current primary block. Without a comparator type the
    blocks are single elements compared for equality.
    """

    kind: Literal["membership"] = "membership"
    found: str
    primary: int
    secondary: int
    stride: Expression
    comparator: Optional[str] = None


class GrowStorage(Node):
    """Requests capacity for `count` elements from the growth primitive, rebinding the base."""

    kind: Literal["grow"] = "grow"
    slot: int
    name: str
    count: Expression
    handle: Optional[Expression] = None


class AdvanceLength(Node):
    kind: Literal["advance"] = "advance"
    slot: int
    name: str
    amount: Expression


class SetCount(Node):
    """Reports how many values an array result holds through its count argument."""

    kind: Literal["set_count"] = "set_count"
    slot: int
    name: str
    value: Expression


Statement = Annotated[
    Union[Declare, Assign, If, Downgrade, Append, ElementLoop, MembershipTest, GrowStorage, AdvanceLength, SetCount],
    Field(discriminator="kind"),
]


for _model in (Unary, Binary, Ternary, Call, Cast, Declare, Assign, If, Append, Cursor, ElementLoop, MembershipTest, GrowStorage, AdvanceLength, SetCount):
    _model.model_rebuild()
