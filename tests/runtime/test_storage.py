import numpy as np
import pytest

from vopgen.runtime import Segment, compare_block, resize_segment

# --- 1. Growth Primitive ---


def test_request_within_capacity_keeps_buffer():
    segment = Segment("S32", [1, 2, 3], capacity=16)
    assert resize_segment(None, 0, segment, 10) is segment.memory


def test_growth_rounds_up_to_alignment():
    segment = Segment("F64", [1.0, 2.0])
    memory = resize_segment(None, 0, segment, 10)
    assert memory is not segment.memory
    assert len(memory) == 128
    assert memory[:2].tolist() == [1.0, 2.0]
    assert not memory[2:].any()


def test_growth_beyond_one_alignment_block():
    segment = Segment("U08")
    memory = resize_segment(None, 0, segment, 1025)
    assert len(memory) == 2048
    assert memory.dtype == np.uint8


def test_segment_reports_only_used_values():
    segment = Segment("U16", [4, 5], capacity=8)
    assert segment.capacity == 8
    assert segment.length == 2
    assert segment.data.tolist() == [4, 5]


# --- 2. Block Comparators ---


@pytest.mark.parametrize(
    "type_code, a, b, expected",
    [
        ("S32", [1, 2], [1, 2], 0),
        ("S32", [1, 2], [1, 3], -1),
        ("S32", [2, 0], [1, 9], 1),
        ("F64", [0.5, 1.0], [0.5, 0.25], 1),
    ],
)
def test_compare_block(type_code, a, b, expected):
    assert compare_block(type_code, np.array(a), np.array(b)) == expected


def test_unsigned_blocks_compare_through_signed_view():
    high = np.array([255], dtype=np.uint8)
    low = np.array([1], dtype=np.uint8)
    assert compare_block("S08", high, low) == -1


def test_unsigned_comparator_is_not_registered():
    with pytest.raises(KeyError):
        compare_block("U32", np.array([1]), np.array([1]))
