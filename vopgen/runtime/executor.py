"""
Reference executor for specialized routines.

Walks a routine's statement tree against real numpy buffers so the meaning
of every synthesized routine can be checked without rendering it to source.
Data conditions never raise: integer division by zero yields 0, float
division follows IEEE, and failures are reported through the predicate
operand only.
"""

import math
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..catalog.operands import AddressMode, Mutability, parse_size_expression
from ..catalog.types import ElementType, lookup_type, wrap
from ..exceptions import InternalCompilerError
from ..synthesis.nodes import (
    AdvanceLength,
    Append,
    Assign,
    Binary,
    Call,
    Cast,
    Const,
    Count,
    Declare,
    Downgrade,
    ElementLoop,
    FirstUnit,
    GrowStorage,
    If,
    Length,
    Local,
    MembershipTest,
    OperandRef,
    SetCount,
    Ternary,
    Unary,
)
from ..synthesis.synthesizer import Parameter, SpecializedRoutine
from .operands import Cell, Segment
from .storage import compare_block, resize_segment

GrowthPrimitive = Callable[[Any, Any, Segment, int], np.ndarray]


class BoundOperand:
    """One slot's runtime storage as the executor sees it."""

    def __init__(self, parameter: Parameter, holder: Any, buffer: Optional[np.ndarray] = None):
        self.parameter = parameter
        self.holder = holder
        self._buffer = buffer

    @property
    def element_type(self) -> ElementType:
        return self.parameter.type

    @property
    def buffer(self) -> np.ndarray:
        if isinstance(self.holder, Segment):
            return self.holder.memory
        return self._buffer

    @property
    def count(self) -> int:
        if isinstance(self.holder, Segment):
            return self.holder.length
        return len(self._buffer)


class ExecutionResult:
    """What one invocation produced, keyed by slot name."""

    def __init__(self, outputs: Dict[str, Any], counts: Dict[str, int], operands: List[Any]):
        self.outputs = outputs
        # Values reported through an array result's count argument
        self.counts = counts
        self.operands = operands

    def __getitem__(self, name: str):
        return self.outputs[name]

    def __contains__(self, name: str):
        return name in self.outputs


class _Frame:
    """Mutable evaluation state: locals, cursor positions and the covered unit range."""

    def __init__(self, unit_range: Optional[Tuple[int, int]]):
        self.locals: Dict[str, Tuple[ElementType, Any]] = {}
        self.positions: Dict[int, int] = {}
        self.unit_range = unit_range
        self.counts: Dict[int, int] = {}


class Executor:
    def __init__(self, routine: SpecializedRoutine, grow: GrowthPrimitive = resize_segment, local_storage: Any = None):
        self.routine = routine
        self.grow = grow
        self.local_storage = local_storage
        self.operands: List[BoundOperand] = []

    # --- Operand Preparation ---

    def prepare(self, operands: Sequence[Any]) -> List[BoundOperand]:
        """
        Converts caller values, given in slot order, into bound operands.
        Missing outputs are allocated from their size expression; a missing
        predicate starts out true.
        """
        parameters = self.routine.parameters
        values = list(operands) + [None] * (len(parameters) - len(operands))
        if len(values) > len(parameters):
            raise InternalCompilerError(f"Routine '{self.routine.name}' takes {len(parameters)} operands, got {len(values)}.")

        bound: List[Optional[BoundOperand]] = [None] * len(parameters)
        # Inputs first so output sizes can refer to their counts.
        ordered = sorted(range(len(parameters)), key=lambda i: parameters[i].mutability != Mutability.INPUT)
        for i in ordered:
            bound[i] = self._bind(parameters[i], values[i], bound)
        self.operands = bound
        return bound

    def _bind(self, parameter: Parameter, value: Any, bound: List[Optional[BoundOperand]]) -> BoundOperand:
        dtype = parameter.type.dtype
        components = parameter.type.components

        if parameter.mode == AddressMode.DYN:
            segment = value if isinstance(value, Segment) else Segment(parameter.type, value)
            return BoundOperand(parameter, segment)

        if parameter.mode == AddressMode.ARR:
            if value is None:
                size = self._allocation_size(parameter, bound)
                return BoundOperand(parameter, None, np.zeros(size, dtype=dtype))
            if isinstance(value, np.ndarray) and value.dtype == dtype and value.ndim == 1:
                return BoundOperand(parameter, value, value)
            array = np.asarray(value, dtype=dtype).ravel()
            return BoundOperand(parameter, value, array)

        # SCA and CON hold a single unit
        if value is None:
            value = Cell(1 if parameter.signals_error else 0)
        raw = value.value if isinstance(value, Cell) else value
        buffer = np.zeros(components, dtype=dtype)
        buffer[:] = np.asarray(raw, dtype=dtype).ravel()[:components] if components > 1 else [wrap(parameter.type, raw)]
        return BoundOperand(parameter, value, buffer)

    def _allocation_size(self, parameter: Parameter, bound: List[Optional[BoundOperand]]) -> int:
        size = parameter.size
        if size is None:
            # Elementwise results cover as many units as the first array input
            for operand in bound:
                if operand is not None and operand.parameter.mode == AddressMode.ARR and operand.parameter.mutability == Mutability.INPUT:
                    units = operand.count // operand.element_type.components
                    return units * parameter.type.components
            return parameter.type.components
        reference = parse_size_expression(size, self.routine.operation, parameter.slot)
        if isinstance(reference, int):
            return reference * parameter.type.components
        for operand in bound:
            if operand is not None and operand.parameter.name == reference:
                return operand.count
        raise InternalCompilerError(f"Size of '{parameter.name}' refers to '{reference}', which is not bound yet.")

    # --- Invocation ---

    def run(self, operands: Sequence[Any], unit_range: Optional[Tuple[int, int]] = None) -> ExecutionResult:
        if unit_range is not None and not self.routine.parallel:
            raise InternalCompilerError(f"Routine '{self.routine.name}' has no ranged entry point.")
        bound = self.prepare(operands)
        frame = _Frame(unit_range)
        self._execute(self.routine.body, frame)
        return self._collect(bound, frame)

    def count_units(self, operands: Optional[Sequence[Any]] = None) -> int:
        """Number of units the outermost loop covers, for new operands or the ones already prepared."""
        if operands is not None:
            self.prepare(operands)
        frame = _Frame(None)
        loop = self._outer_loop(self.routine.body, frame)
        if loop is None:
            return 1
        return int(self.evaluate(loop.count, frame))

    def _outer_loop(self, statements, frame: _Frame) -> Optional[ElementLoop]:
        for statement in statements:
            if isinstance(statement, ElementLoop):
                return statement
            if isinstance(statement, If):
                branch = statement.then if self.evaluate(statement.condition, frame) else statement.otherwise
                loop = self._outer_loop(branch, frame)
                if loop is not None:
                    return loop
        return None

    def _collect(self, bound: List[BoundOperand], frame: _Frame) -> ExecutionResult:
        outputs: Dict[str, Any] = {}
        counts: Dict[str, int] = {}
        for operand in bound:
            parameter = operand.parameter
            if parameter.mutability == Mutability.INPUT:
                continue
            if parameter.mode == AddressMode.DYN:
                outputs[parameter.name] = operand.holder.data
            elif parameter.mode == AddressMode.ARR:
                buffer = operand.buffer
                if isinstance(operand.holder, np.ndarray) and operand.holder is not buffer:
                    np.copyto(operand.holder, buffer.reshape(operand.holder.shape), casting="unsafe")
                if parameter.slot in frame.counts:
                    counts[parameter.name] = frame.counts[parameter.slot]
                    outputs[parameter.name] = buffer[: frame.counts[parameter.slot]].copy()
                else:
                    outputs[parameter.name] = buffer
            else:
                value = _unit_value(operand.buffer, 0, parameter.type.components)
                if isinstance(operand.holder, Cell):
                    operand.holder.value = value
                outputs[parameter.name] = value
        return ExecutionResult(outputs, counts, [operand.holder for operand in bound])

    # --- Statements ---

    def _execute(self, statements, frame: _Frame):
        for statement in statements:
            self._step(statement, frame)

    def _step(self, statement, frame: _Frame):
        if isinstance(statement, Declare):
            element_type = lookup_type(statement.type)
            frame.locals[statement.name] = (element_type, wrap(element_type, self.evaluate(statement.value, frame)))

        elif isinstance(statement, Assign):
            self._store(statement.target, self.evaluate(statement.value, frame), frame)

        elif isinstance(statement, If):
            branch = statement.then if self.evaluate(statement.condition, frame) else statement.otherwise
            self._execute(branch, frame)

        elif isinstance(statement, Downgrade):
            self.operands[statement.slot - 1].buffer[0] = 0

        elif isinstance(statement, ElementLoop):
            self._loop(statement, frame)

        elif isinstance(statement, MembershipTest):
            self._membership(statement, frame)

        elif isinstance(statement, Append):
            source = self.operands[statement.source - 1]
            target = self.operands[statement.target - 1]
            length = int(self.evaluate(statement.length, frame))
            start = frame.positions.get(statement.source, 0)
            counter_type, written = frame.locals[statement.written]
            target.buffer[written : written + length] = source.buffer[start : start + length]
            frame.locals[statement.written] = (counter_type, written + length)

        elif isinstance(statement, SetCount):
            frame.counts[statement.slot] = int(self.evaluate(statement.value, frame))

        elif isinstance(statement, GrowStorage):
            operand = self.operands[statement.slot - 1]
            segment = operand.holder
            count = int(self.evaluate(statement.count, frame))
            handle = self.evaluate(statement.handle, frame) if statement.handle is not None else None
            memory = self.grow(self.local_storage, handle, segment, count)
            if memory is not segment.memory:
                segment.relocations += 1
            segment.memory = memory

        elif isinstance(statement, AdvanceLength):
            segment = self.operands[statement.slot - 1].holder
            segment.length += int(self.evaluate(statement.amount, frame))

        else:
            raise InternalCompilerError(f"Executor received an unexpected statement: {statement!r}")

    def _loop(self, loop: ElementLoop, frame: _Frame):
        total = int(self.evaluate(loop.count, frame))
        start, end = 0, total
        if loop.ranged and frame.unit_range is not None:
            start = max(0, min(frame.unit_range[0], total))
            end = max(start, min(frame.unit_range[1], total))

        # Offsets are fixed when the loop is entered
        walked = []
        for cursor in loop.cursors:
            if cursor.broadcast:
                frame.positions[cursor.slot] = 0
                continue
            width = int(self.evaluate(cursor.width, frame))
            base = int(self.evaluate(cursor.offset, frame)) if cursor.offset is not None else None
            operand = self.operands[cursor.slot - 1]
            if base is None and operand.parameter.mutability != Mutability.INPUT and end > start and end * width > operand.count:
                raise InternalCompilerError(
                    f"Routine '{self.routine.name}' writes {end * width} values of '{cursor.name}', which only holds {operand.count}."
                )
            walked.append((cursor.slot, width, base))

        saved = dict(frame.positions)
        for unit in range(start, end):
            for slot, width, base in walked:
                if base is not None:
                    frame.positions[slot] = base + unit * width
                else:
                    # Shorter inputs are cycled so every unit reads a value
                    count = self.operands[slot - 1].count
                    frame.positions[slot] = (unit * width) % count if count else 0
            self._execute(loop.body, frame)
        frame.positions = saved

    def _membership(self, test: MembershipTest, frame: _Frame):
        primary = self.operands[test.primary - 1]
        secondary = self.operands[test.secondary - 1]
        stride = int(self.evaluate(test.stride, frame))
        start = frame.positions.get(test.primary, 0)
        block = primary.buffer[start : start + stride]
        found = 0
        others = secondary.buffer[: secondary.count]
        for offset in range(0, len(others) - stride + 1, max(stride, 1)):
            candidate = others[offset : offset + stride]
            if test.comparator is None:
                matched = candidate[0] == block[0]
            else:
                matched = compare_block(test.comparator, block, candidate) == 0
            if matched:
                found = 1
                break
        element_type, _ = frame.locals.get(test.found, (ElementType.S32, 0))
        frame.locals[test.found] = (element_type, found)

    def _store(self, target, value, frame: _Frame):
        if isinstance(target, Local):
            element_type, _ = frame.locals[target.name]
            frame.locals[target.name] = (element_type, wrap(element_type, value))
            return
        if not isinstance(target, OperandRef):
            raise InternalCompilerError(f"Executor cannot store to {target!r}")

        operand = self.operands[target.slot - 1]
        position = frame.positions.get(target.slot, 0)
        element_type = operand.element_type
        if target.component is not None:
            operand.buffer[position + target.component] = wrap(element_type, value)
        elif isinstance(value, tuple):
            for k, component in enumerate(value):
                operand.buffer[position + k] = wrap(element_type, component)
        else:
            operand.buffer[position] = wrap(element_type, value)

    # --- Expressions ---

    def evaluate(self, expression, frame: _Frame):
        if isinstance(expression, Const):
            return expression.value

        if isinstance(expression, Local):
            return frame.locals[expression.name][1]

        if isinstance(expression, OperandRef):
            operand = self.operands[expression.slot - 1]
            position = frame.positions.get(expression.slot, 0)
            if expression.component is not None:
                return operand.buffer[position + expression.component].item()
            return _unit_value(operand.buffer, position, operand.element_type.components)

        if isinstance(expression, Count):
            operand = self.operands[expression.slot - 1]
            if operand.parameter.mode in (AddressMode.SCA, AddressMode.CON):
                return operand.element_type.components
            return operand.count

        if isinstance(expression, Length):
            return self.operands[expression.slot - 1].holder.length

        if isinstance(expression, FirstUnit):
            operand = self.operands[expression.slot - 1]
            components = operand.element_type.components
            first = frame.unit_range[0] if frame.unit_range is not None and self.routine.parallel else 0
            position = first * components
            if operand.parameter.mode == AddressMode.ARR and position >= operand.count:
                return 0
            if operand.parameter.mode != AddressMode.ARR:
                position = 0
            return _unit_value(operand.buffer, position, components)

        if isinstance(expression, Unary):
            operand = self.evaluate(expression.operand, frame)
            if expression.op == "-":
                return -operand
            if expression.op == "!":
                return int(not operand)
            raise InternalCompilerError(f"Unknown unary operator '{expression.op}'")

        if isinstance(expression, Binary):
            return self._binary(expression, frame)

        if isinstance(expression, Ternary):
            if self.evaluate(expression.condition, frame):
                return self.evaluate(expression.then, frame)
            return self.evaluate(expression.otherwise, frame)

        if isinstance(expression, Call):
            args = [self.evaluate(arg, frame) for arg in expression.args]
            return _call(expression.function, args)

        if isinstance(expression, Cast):
            return wrap(lookup_type(expression.type), self.evaluate(expression.operand, frame))

        raise InternalCompilerError(f"Executor received an unexpected expression: {expression!r}")

    def combine(self, left, right):
        """Merges two partial accumulators with the routine's combine step."""
        if self.routine.combine is None:
            raise InternalCompilerError(f"Routine '{self.routine.name}' has no combine step.")
        frame = _Frame(None)
        element_type = self.routine.element_type
        frame.locals["left"] = (element_type, left)
        frame.locals["right"] = (element_type, right)
        return wrap(element_type, self.evaluate(self.routine.combine, frame))

    def _binary(self, expression: Binary, frame: _Frame):
        op = expression.op
        left = self.evaluate(expression.left, frame)
        if op == "&&":
            return int(bool(left) and bool(self.evaluate(expression.right, frame)))
        if op == "||":
            return int(bool(left) or bool(self.evaluate(expression.right, frame)))
        right = self.evaluate(expression.right, frame)

        if op == "==":
            return int(left == right)
        if op == "!=":
            return int(left != right)
        if op == "<":
            return int(left < right)
        if op == ">":
            return int(left > right)
        if op == "<=":
            return int(left <= right)
        if op == ">=":
            return int(left >= right)

        floating = isinstance(left, float) or isinstance(right, float)
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if floating:
                with np.errstate(divide="ignore", invalid="ignore"):
                    return float(np.float64(left) / np.float64(right))
            if right == 0:
                return 0
            quotient = abs(left) // abs(right)
            return quotient if (left >= 0) == (right >= 0) else -quotient
        if op == "%":
            if floating:
                return math.fmod(left, right) if right != 0 else math.nan
            if right == 0:
                return 0
            remainder = abs(left) % abs(right)
            return remainder if left >= 0 else -remainder
        raise InternalCompilerError(f"Unknown binary operator '{op}'")


def _unit_value(buffer: np.ndarray, position: int, components: int):
    if components == 1:
        return buffer[position].item()
    return tuple(buffer[position + k].item() for k in range(components))


def _call(function: str, args: List[Any]):
    if function == "sqrt":
        with np.errstate(invalid="ignore"):
            return float(np.sqrt(np.float64(args[0])))
    if function == "abs":
        return abs(args[0])
    if function == "floor":
        return float(math.floor(args[0])) if isinstance(args[0], float) and math.isfinite(args[0]) else args[0]
    if function == "min":
        return args[0] if args[0] < args[1] else args[1]
    if function == "max":
        return args[0] if args[0] > args[1] else args[1]
    raise InternalCompilerError(f"Unknown unit function '{function}'")

