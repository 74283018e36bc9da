from .executor import ExecutionResult, Executor
from .operands import Cell, Segment
from .parallel import run_partitioned, run_serial, split_range
from .storage import compare_block, resize_segment
