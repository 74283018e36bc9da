from typing import Dict, Iterable, List, Optional

from ..capabilities.composition import ResolvedDefaults
from ..catalog.operands import Mutability, OperandSlot
from ..catalog.types import ElementType, lookup_type, signed_counterpart
from ..config.config import GENERIC_TYPE, SIGNED_GENERIC_TYPE, UNIT_FUNCTIONS
from ..exceptions import ErrorCode, InternalCompilerError, VopgenError
from ..expansion import Binding, bound_type
from .nodes import (
    Assign,
    Binary,
    Call,
    Cast,
    Const,
    Count,
    Declare,
    Downgrade,
    If,
    Indexed,
    Local,
    Name,
    OperandRef,
    Ternary,
    Unary,
)


class UnitBinder:
    """
    Binds an unbound unit computation to one concrete binding.

    Every type token is replaced by a concrete catalog type: 'T' becomes the
    routine's native element type (the component type for complex values)
    and 'ST' its signed counterpart. Every identifier becomes an operand
    reference, an operand count or a local; anything else is a resolution
    error naming the offending slot or identifier.

    Writes are checked while binding: inputs are read-only, and an
    error-bearing operand can only ever be downgraded to false.
    """

    def __init__(
        self,
        resolved: ResolvedDefaults,
        binding: Binding,
        aliases: Optional[Dict[str, object]] = None,
        extra_locals: Optional[Dict[str, str]] = None,
    ):
        self.resolved = resolved
        self.binding = binding
        self.aliases = aliases or {}
        # Local name -> bound type code
        self.locals: Dict[str, str] = dict(extra_locals or {})
        self.slots: Dict[str, OperandSlot] = {slot.name: slot for slot in resolved.slots}

    # --- Types ---

    def bind_type(self, token: str) -> ElementType:
        element_type = self.binding.element_type
        if token == GENERIC_TYPE:
            return element_type.component_type
        if token == SIGNED_GENERIC_TYPE:
            return signed_counterpart(element_type.component_type)
        return lookup_type(token, self.resolved.name)

    def slot_type(self, slot: OperandSlot) -> ElementType:
        return bound_type(slot, self.binding.element_type)

    # --- Statements ---

    def bind_statements(self, statements: Iterable) -> List:
        return [self.bind_statement(statement) for statement in statements]

    def bind_statement(self, statement):
        if isinstance(statement, Declare):
            if statement.name in self.slots:
                raise VopgenError(
                    ErrorCode.RESOLUTION_ERROR,
                    declaration=self.resolved.name,
                    slot=self.slots[statement.name].index,
                    what="local that shadows operand",
                    name=statement.name,
                )
            value = self.bind_expression(statement.value)
            bound = self.bind_type(statement.type)
            self.locals[statement.name] = bound.value
            return Declare(name=statement.name, type=bound.value, value=value)

        if isinstance(statement, Assign):
            return self._bind_assignment(statement)

        if isinstance(statement, If):
            return If(
                condition=self.bind_expression(statement.condition),
                then=self.bind_statements(statement.then),
                otherwise=self.bind_statements(statement.otherwise),
            )

        raise InternalCompilerError(f"UnitBinder received an unexpected statement: {statement!r}")

    def _bind_assignment(self, statement: Assign):
        target = statement.target
        identifier = target.id if isinstance(target, (Name, Indexed)) else None
        if identifier is None:
            raise InternalCompilerError(f"UnitBinder received an already bound target: {target!r}")

        if identifier in self.aliases:
            return Assign(target=self.aliases[identifier], value=self.bind_expression(statement.value))

        slot = self.slots.get(identifier)
        if slot is None:
            if identifier not in self.locals or isinstance(target, Indexed):
                raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=self.resolved.name, what="assignment target", name=identifier)
            return Assign(target=Local(name=identifier), value=self.bind_expression(statement.value))

        if slot.mutability == Mutability.INPUT:
            raise VopgenError(ErrorCode.ILLEGAL_WRITE, declaration=self.resolved.name, slot=slot.index, name=slot.name)

        if slot.signals_error:
            value = statement.value
            if not (isinstance(value, Const) and not value.value):
                raise VopgenError(
                    ErrorCode.ILLEGAL_PREDICATE_WRITE,
                    declaration=self.resolved.name,
                    slot=slot.index,
                    name=slot.name,
                    value=_describe(value),
                )
            return Downgrade(slot=slot.index, name=slot.name)

        return Assign(target=self._operand(slot, target), value=self.bind_expression(statement.value))

    # --- Expressions ---

    def bind_expression(self, expression):
        if isinstance(expression, Const):
            return expression

        if isinstance(expression, Name):
            return self._bind_name(expression.id)

        if isinstance(expression, Indexed):
            slot = self.slots.get(expression.id)
            if slot is None:
                raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=self.resolved.name, what="operand", name=expression.id)
            return self._operand(slot, expression)

        if isinstance(expression, Unary):
            return Unary(op=expression.op, operand=self.bind_expression(expression.operand))

        if isinstance(expression, Binary):
            return Binary(op=expression.op, left=self.bind_expression(expression.left), right=self.bind_expression(expression.right))

        if isinstance(expression, Ternary):
            return Ternary(
                condition=self.bind_expression(expression.condition),
                then=self.bind_expression(expression.then),
                otherwise=self.bind_expression(expression.otherwise),
            )

        if isinstance(expression, Call):
            arity = UNIT_FUNCTIONS.get(expression.function)
            if arity is None or arity != len(expression.args):
                raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=self.resolved.name, what="function", name=f"{expression.function}/{len(expression.args)}")
            return Call(
                function=expression.function,
                args=[self.bind_expression(arg) for arg in expression.args],
                type=self.binding.element_type.component_type.value,
            )

        if isinstance(expression, Cast):
            return Cast(type=self.bind_type(expression.type).value, operand=self.bind_expression(expression.operand))

        # Already bound nodes (scaffolding expressions) pass through untouched
        return expression

    def _bind_name(self, identifier: str):
        if identifier in self.aliases:
            return self.aliases[identifier]
        if identifier in self.slots:
            return self._operand(self.slots[identifier], None)
        if identifier in self.locals:
            return Local(name=identifier)
        if identifier.endswith("_count") and identifier[: -len("_count")] in self.slots:
            slot = self.slots[identifier[: -len("_count")]]
            return Count(slot=slot.index, name=slot.name)
        raise VopgenError(ErrorCode.RESOLUTION_ERROR, declaration=self.resolved.name, what="identifier", name=identifier)

    def _operand(self, slot: OperandSlot, node) -> OperandRef:
        component = node.component if isinstance(node, Indexed) else None
        if component is not None and component >= self.slot_type(slot).components:
            raise VopgenError(
                ErrorCode.RESOLUTION_ERROR,
                declaration=self.resolved.name,
                slot=slot.index,
                what="component",
                name=f"{slot.name}[{component}]",
            )
        return OperandRef(slot=slot.index, name=slot.name, component=component)


def _describe(expression) -> str:
    if isinstance(expression, Const):
        return repr(expression.value)
    return f"a computed {expression.kind} expression"
