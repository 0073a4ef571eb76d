from pytest import mark, raises
from ranges import Range

from http_readseeker.range_utils import (
    check_disjoint,
    range_len,
    range_termini,
    validate_range,
)


@mark.parametrize(
    "rng,expected", [(Range(0, 1), (0, 0)), (Range(0, 11), (0, 10)), (Range(3, 7), (3, 6))]
)
def test_range_termini(rng, expected):
    assert range_termini(rng) == expected


def test_empty_range_termini():
    with raises(ValueError, match="Empty range has no termini"):
        range_termini(Range(0, 0))


@mark.parametrize(
    "rng,expected", [(Range(0, 0), 0), (Range(0, 1), 1), (Range(0, 11), 11), (Range(3, 7), 4)]
)
def test_range_len(rng, expected):
    assert range_len(rng) == expected


@mark.parametrize(
    "byte_range,expected", [((0, 3), Range(0, 3)), (Range(5, 9), Range(5, 9))]
)
def test_validate_range(byte_range, expected):
    assert validate_range(byte_range) == expected


@mark.parametrize("byte_range", [(0, 1, 2), (0.5, 3), "0-3", Range(0.5, 3)])
def test_validate_range_types(byte_range):
    with raises(TypeError):
        validate_range(byte_range)


def test_validate_range_values():
    with raises(ValueError, match="negative"):
        validate_range((-1, 3))
    with raises(ValueError, match="Range is empty"):
        validate_range((3, 3), allow_empty=False)


def test_check_disjoint():
    check_disjoint([Range(5, 9), Range(0, 3), Range(3, 5), Range(2, 2)])


@mark.parametrize(
    "ranges", [[Range(0, 3), Range(2, 5)], [Range(4, 9), Range(0, 10)], [Range(1, 2)] * 2]
)
def test_check_disjoint_overlap(ranges):
    with raises(ValueError, match="ranges must be disjoint"):
        check_disjoint(ranges)
