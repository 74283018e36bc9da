"""
Range-splitting driver for parallel entry points.

The primary input's unit range is cut into disjoint contiguous slices, one
per worker. Elementwise slices write straight into the shared result since
their ranges never overlap; membership slices fill private buffers that are
stitched together in slice order; reduction partials are merged left to
right with the routine's combine step.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from ..catalog.operands import AddressMode, Mutability
from ..config.config import DEFAULT_WORKER_COUNT
from ..exceptions import InternalCompilerError
from ..synthesis.synthesizer import SpecializedRoutine
from .executor import ExecutionResult, Executor, GrowthPrimitive
from .operands import Cell
from .storage import resize_segment


def split_range(total: int, workers: int) -> List[Tuple[int, int]]:
    """Cuts [0, total) into at most `workers` contiguous, disjoint, non-empty slices."""
    if total <= 0:
        return [(0, 0)]
    workers = max(1, min(workers, total))
    base, extra = divmod(total, workers)
    slices = []
    start = 0
    for i in range(workers):
        end = start + base + (1 if i < extra else 0)
        slices.append((start, end))
        start = end
    return slices


def run_partitioned(
    routine: SpecializedRoutine,
    operands: Sequence[Any],
    workers: int = DEFAULT_WORKER_COUNT,
    grow: GrowthPrimitive = resize_segment,
    local_storage: Any = None,
) -> ExecutionResult:
    if not routine.parallel:
        raise InternalCompilerError(f"Routine '{routine.name}' is not a ranged entry point.")

    planner = Executor(routine, grow, local_storage)
    planner.prepare(operands)
    slices = split_range(planner.count_units(), workers)
    shared = planner.operands

    def slice_operands() -> List[Any]:
        values = []
        for operand in shared:
            parameter = operand.parameter
            if parameter.mode == AddressMode.ARR:
                private = routine.membership and parameter.mutability != Mutability.INPUT
                values.append(None if private else operand.buffer)
            elif parameter.mutability == Mutability.INPUT:
                values.append(operand.holder.value if isinstance(operand.holder, Cell) else operand.holder)
            else:
                # Scalar outputs and the predicate are private per slice
                values.append(Cell(operand.buffer[0].item() if parameter.type.components == 1 else tuple(operand.buffer.tolist())))
        return values

    def work(unit_range: Tuple[int, int]) -> ExecutionResult:
        return Executor(routine, grow, local_storage).run(slice_operands(), unit_range=unit_range)

    with ThreadPoolExecutor(max_workers=len(slices)) as pool:
        futures = [pool.submit(work, unit_range) for unit_range in slices]
        # Collected in submission order, which is slice order
        partials = [future.result() for future in futures]

    return _merge(routine, planner, shared, partials)


def _merge(routine: SpecializedRoutine, planner: Executor, shared, partials: List[ExecutionResult]) -> ExecutionResult:
    outputs = {}
    counts = {}
    for operand in shared:
        parameter = operand.parameter
        if parameter.mutability == Mutability.INPUT:
            continue
        name = parameter.name

        if parameter.signals_error:
            initial = operand.buffer[0].item()
            value = 0 if any(not partial[name] for partial in partials) else initial
        elif parameter.mode == AddressMode.ARR and routine.membership:
            pieces = [partial[name] for partial in partials]
            joined = np.concatenate(pieces) if pieces else np.zeros(0, dtype=parameter.type.dtype)
            operand.buffer[: len(joined)] = joined
            counts[name] = len(joined)
            outputs[name] = joined
            continue
        elif parameter.mode == AddressMode.ARR:
            outputs[name] = operand.buffer
            if isinstance(operand.holder, np.ndarray) and operand.holder is not operand.buffer:
                np.copyto(operand.holder, operand.buffer.reshape(operand.holder.shape), casting="unsafe")
            continue
        elif routine.result_policy == "reduction":
            value = partials[0][name]
            for partial in partials[1:]:
                value = planner.combine(value, partial[name])
        else:
            value = partials[-1][name]

        if isinstance(operand.holder, Cell):
            operand.holder.value = value
        outputs[name] = value

    return ExecutionResult(outputs, counts, [operand.holder for operand in shared])


def run_serial(routine: SpecializedRoutine, operands: Sequence[Any], grow: GrowthPrimitive = resize_segment, local_storage: Optional[Any] = None) -> ExecutionResult:
    return Executor(routine, grow, local_storage).run(operands)
