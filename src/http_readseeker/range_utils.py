from __future__ import annotations

__all__ = [
    "range_termini",
    "range_len",
    "validate_range",
    "check_disjoint",
]

from ranges import Range


def range_termini(rng: Range) -> tuple[int, int]:
    """Get the inclusive start and end positions ``[start,end]``
    from a :class:`ranges.Range`. These are referred to as the
    'termini'. Ranges are always ascending.

    Args:
      rng : A :class:`~ranges.Range` (which by default will be
            half-closed, i.e. not inclusive of the end position).
    """
    if rng.isempty():
        raise ValueError("Empty range has no termini")
    # If range is not empty then can compare regardless of if interval is closed/open
    start = rng.start if rng.include_start else rng.start + 1
    end = rng.end if rng.include_end else rng.end - 1
    return start, end


def range_len(rng: Range) -> int:
    """Get the number of bytes covered by a :class:`~ranges.Range`
    (``0`` for the empty range).

    Args:
      rng : A :class:`~ranges.Range` (which by default will be
            half-closed, i.e. not inclusive of the end position).
    """
    if rng.isempty():
        return 0
    rmin, rmax = range_termini(rng)
    return rmax - rmin + 1


def validate_range(
    byte_range: Range | tuple[int, int], allow_empty: bool = True
) -> Range:
    """Validate ``byte_range`` and convert to a half-closed (i.e.
    not inclusive of the end position) ``[start,end)`` :class:`~ranges.Range`
    if given as integer tuple. Byte positions cannot be negative.

    Args:
      byte_range  : Either a :class:`tuple` of two :class:`int` positions with
                    which to create a :class:`~ranges.Range` (which by
                    default will be half-closed, i.e. not inclusive of
                    the end position); or simply a :class:`~ranges.Range`.
      allow_empty : Whether to accept the empty range.
    """
    complain_about_types = (
        f"{byte_range=} must be a Range from the python-ranges"
        " package or an integer 2-tuple"
    )
    if isinstance(byte_range, tuple):
        if len(byte_range) != 2:
            raise TypeError(complain_about_types)
        if not all(map(lambda x: isinstance(x, int), byte_range)):
            raise TypeError(complain_about_types)
        byte_range = Range(*byte_range)
    elif not isinstance(byte_range, Range):
        raise TypeError(complain_about_types)
    elif not all(map(lambda o: isinstance(o, int), [byte_range.start, byte_range.end])):
        raise TypeError("Ranges must be discrete: use integers for start and end")
    if byte_range.start < 0:
        raise ValueError(f"{byte_range} starts at a negative position")
    if not allow_empty and byte_range.isempty():
        raise ValueError("Range is empty")
    return byte_range


def check_disjoint(ranges: list[Range]) -> None:
    """Raise :exc:`ValueError` if any two of the ranges overlap (ranges that
    merely touch, like ``[0, 3)`` and ``[3, 5)``, do not overlap).

    Args:
      ranges : The (validated) ranges, in any order.
    """
    nonempty = sorted((r for r in ranges if not r.isempty()), key=range_termini)
    for prev, rng in zip(nonempty, nonempty[1:]):
        if range_termini(rng)[0] <= range_termini(prev)[1]:
            raise ValueError(f"{prev} overlaps {rng}: ranges must be disjoint")
