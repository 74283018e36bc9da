import numpy as np
import pytest

from vopgen.exceptions import InternalCompilerError
from vopgen.runtime import Cell, run_partitioned, run_serial, split_range

from tests.utils import custom_routine, declare, routine_for

# --- 1. Range Splitting ---


@pytest.mark.parametrize(
    "total, workers, expected",
    [
        (10, 4, [(0, 3), (3, 6), (6, 8), (8, 10)]),
        (2, 4, [(0, 1), (1, 2)]),
        (5, 1, [(0, 5)]),
        (0, 4, [(0, 0)]),
    ],
)
def test_split_range(total, workers, expected):
    assert split_range(total, workers) == expected


def test_slices_cover_range_exactly_once():
    slices = split_range(1001, 7)
    covered = [unit for start, end in slices for unit in range(start, end)]
    assert covered == list(range(1001))


# --- 2. Elementwise Equivalence ---


@pytest.mark.parametrize("workers", [1, 3, 8])
def test_partitioned_elementwise_matches_serial(workers):
    values = np.arange(100, dtype=np.int32)
    serial = run_serial(routine_for("Add", "S32", "ARR", "SCA", "ARR"), [values, 5])
    parallel = run_partitioned(routine_for("Add", "S32", "ARR", "SCA", "ARR", parallel=True), [values, 5], workers=workers)
    assert parallel["res"].tolist() == serial["res"].tolist()


def test_partitioned_complex_units_stay_whole():
    left = np.random.default_rng(7).normal(size=40)
    right = np.random.default_rng(11).normal(size=40)
    serial = run_serial(routine_for("ComplexMultiply", "CF64", "ARR", "ARR", "ARR"), [left, right])
    parallel = run_partitioned(routine_for("ComplexMultiply", "CF64", "ARR", "ARR", "ARR", parallel=True), [left, right], workers=3)
    np.testing.assert_allclose(parallel["res"], serial["res"])


# --- 3. Membership Ordering ---


def test_partitioned_intersection_preserves_primary_order():
    primary = [5, 1, 4, 1, 3, 9, 2]
    routine = routine_for("ArrayIntersect", "S32", "ARR", "ARR", "SCA", "ARR", parallel=True)
    result = run_partitioned(routine, [primary, [1, 2, 3], 1], workers=3)
    assert result["res"].tolist() == [1, 1, 3, 2]
    assert result.counts["res"] == 4


def test_partitioned_strided_difference():
    primary = [1, 2, 3, 4, 5, 6, 7, 8]
    routine = routine_for("ArrayDifference", "S32", "ARR", "ARR", "SCA", "ARR", parallel=True)
    result = run_partitioned(routine, [primary, [3, 4, 7, 8], 2], workers=4)
    assert result["res"].tolist() == [1, 2, 5, 6]


def test_partitioned_membership_on_empty_primary():
    routine = routine_for("ArrayIntersect", "S32", "ARR", "ARR", "SCA", "ARR", parallel=True)
    result = run_partitioned(routine, [[], [1, 2], 1])
    assert result["res"].tolist() == []


def test_partitioned_membership_with_unmatched_slices():
    routine = routine_for("ArrayIntersect", "S32", "ARR", "ARR", "SCA", "ARR", parallel=True)
    result = run_partitioned(routine, [[1, 2, 3, 4], [4], 1], workers=2)
    assert result["res"].tolist() == [4]
    assert result.counts["res"] == 1


# --- 4. Reduction Combine ---


def test_partitioned_minimum_combines_partials():
    values = [7, 3, 9, -2, 5, 11, 0]
    routine = routine_for("ArrayMin", "S32", "ARR", "SCA", parallel=True)
    out = Cell()
    result = run_partitioned(routine, [values, out], workers=3)
    assert result["res"] == -2
    assert out == -2


def test_partitioned_maximum_with_more_workers_than_units():
    routine = routine_for("ArrayMax", "F32", "ARR", "SCA", parallel=True)
    assert run_partitioned(routine, [[1.5, -4.0]], workers=8)["res"] == 1.5


def test_partitioned_sum_with_additive_combine():
    declaration = declare(
        "ParallelSum",
        ["MultipleAddressMode", "UnaryOperator", "UnitResult", "Multithreaded", "AdditiveCombine"],
        unit="res = res + op1;",
    )
    values = np.linspace(0.0, 1.0, 1000)
    serial = run_serial(custom_routine(declaration, "F64", "ARR", "SCA"), [values])
    parallel = run_partitioned(custom_routine(declaration, "F64", "ARR", "SCA", parallel=True), [values], workers=4)
    assert parallel["res"] == pytest.approx(serial["res"])
    assert parallel["res"] == pytest.approx(500.0)


def test_partitioned_product_with_multiplicative_combine():
    declaration = declare(
        "ParallelProduct",
        ["MultipleAddressMode", "UnaryOperator", "UnitResult", "Multithreaded", "MultiplicativeCombine"],
        unit="res = res * op1;",
        accumulator=1,
    )
    routine = custom_routine(declaration, "S64", "ARR", "SCA", parallel=True)
    assert run_partitioned(routine, [[1, 2, 3, 4, 5, 6]], workers=4)["res"] == 720


# --- 5. Misuse ---


def test_serial_routine_cannot_be_partitioned():
    with pytest.raises(InternalCompilerError):
        run_partitioned(routine_for("Add", "S32", "ARR", "ARR", "ARR"), [[1], [2]])
