from typing import List, Optional

from vopgen.capabilities.composition import compose
from vopgen.catalog.declarations import OperationDeclaration
from vopgen.catalog.operands import AddressMode
from vopgen.catalog.types import ElementType
from vopgen.expansion import Binding
from vopgen.registry import OperationRegistry
from vopgen.synthesis.synthesizer import SpecializedRoutine, synthesize

_REGISTRY = None


def default_registry() -> OperationRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = OperationRegistry.default()
    return _REGISTRY


def binding(type_code: str, *modes: str) -> Binding:
    return Binding(element_type=ElementType(type_code), modes=tuple(AddressMode(m) for m in modes))


def routine_for(name: str, type_code: str, *modes: str, parallel: bool = False) -> SpecializedRoutine:
    """Synthesizes one routine of a shipped operation, e.g. routine_for('Add', 'S32', 'ARR', 'ARR', 'ARR')."""
    resolved = default_registry().resolved(name)
    return synthesize(resolved, binding(type_code, *modes), parallel)


def declare(name: str, capabilities: List[str], unit: str = "res = op1;", **fields) -> OperationDeclaration:
    return OperationDeclaration(name=name, capabilities=capabilities, unit=unit, **fields)


def resolve(name: str, capabilities: List[str], unit: str = "res = op1;", **fields):
    return compose(declare(name, capabilities, unit, **fields))


def custom_routine(declaration: OperationDeclaration, type_code: str, *modes: str, parallel: bool = False) -> SpecializedRoutine:
    return synthesize(compose(declaration), binding(type_code, *modes), parallel)


def walk(statements, kind: Optional[type] = None):
    """Yields every statement of a routine body, nested ones included."""
    for statement in statements:
        if kind is None or isinstance(statement, kind):
            yield statement
        for attribute in ("then", "otherwise", "body"):
            yield from walk(getattr(statement, attribute, []) or [], kind)
