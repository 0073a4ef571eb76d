r""":mod:`http_readseeker.fetch` reads several byte ranges of one resource in
parallel, by giving each range its own
:meth:`~http_readseeker.stream.HttpReadSeeker.clone` of a stream and reading it on a
worker thread. The clones share the stream's ``httpx.Client`` (whose connection pool
is safe to use from several threads) but nothing else.

    >>> from http_readseeker import HttpReadSeeker, _EXAMPLE_URL
    >>> from http_readseeker.fetch import fetch_ranges
    >>> s = HttpReadSeeker.open(_EXAMPLE_URL) # doctest: +SKIP
    >>> first, second = fetch_ranges(s, [(0, 3), (7, 9)]) # doctest: +SKIP
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

import tqdm
from ranges import Range

from .log_utils import log
from .range_utils import check_disjoint, range_len, range_termini, validate_range

if TYPE_CHECKING:  # pragma: no cover
    from .types import _T as HttpReadSeekerOrSubclass

__all__ = ["fetch_ranges", "fetch_range"]


def fetch_range(reader: HttpReadSeekerOrSubclass, byte_range: Range) -> bytes:
    """
    Read the bytes of ``byte_range`` from a fresh clone of ``reader`` (which is
    itself neither read nor seeked), closing the clone afterwards. Fewer bytes are
    given if the resource ends within the range.

    Args:
      reader     : The stream to clone
      byte_range : The (validated) :class:`~ranges.Range` to read
    """
    if byte_range.isempty():
        return b""
    start, _ = range_termini(byte_range)
    clone = reader.clone()
    try:
        return clone.read_at(size=range_len(byte_range), offset=start)
    finally:
        log.debug(f"Fetched {byte_range} in {clone.request_count} request(s)")
        clone.close()


def fetch_ranges(
    reader: HttpReadSeekerOrSubclass,
    byte_ranges: list[Range | tuple[int, int]],
    max_workers: int = 4,
    show_progress_bar: bool = False,
) -> list[bytes]:
    """
    Read each of ``byte_ranges`` from its own clone of ``reader``, on up to
    ``max_workers`` threads, giving the bytes in the same order as the ranges.
    The first error raised by any range is raised (after the other ranges finish).

    Args:
      reader            : The stream to clone (must be seekable)
      byte_ranges       : Ranges given as :class:`~ranges.Range` or as half-open
                          ``(start, stop)`` integer tuples. They must not overlap.
      max_workers       : The size of the thread pool
      show_progress_bar : Whether to show a ``tqdm`` progress bar of ranges fetched
    """
    if not reader.seekable():
        raise ValueError(f"Cannot fetch ranges: {reader} does not accept range requests")
    ranges = [validate_range(rng) for rng in byte_ranges]
    check_disjoint(ranges)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(fetch_range, reader, rng) for rng in ranges]
        with tqdm.tqdm(total=len(futures), disable=not show_progress_bar) as pbar:
            for _ in as_completed(futures):
                pbar.update()
            results = [future.result() for future in futures]
    return results
