r"""Every range request sent by a :class:`~http_readseeker.stream.HttpReadSeeker`
asks for the remainder of the resource from the logical position onward, via a
`Range <https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Range>`_
header given as a :class:`dict`, for example:

.. code-block:: python

    {"range": "bytes=1024-"}

would request every byte from position ``1024`` (inclusive) to the end.

To avoid resuming against a different version of the resource, the request
also carries an `If-Range
<https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/If-Range>`_
validator taken from the first response (its ``Last-Modified`` date if it had
one, otherwise its ``ETag``). A server whose copy no longer matches answers
with the full entity (HTTP 200) instead of partial content (HTTP 206).

The error classes raised by the package are also defined here.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

__all__ = [
    "range_header",
    "if_range_header",
    "clone_headers",
    "detect_header_value",
    "total_length_from_headers",
    "content_range_start",
    "ReadSeekerError",
    "RangeRequestsNotSupportedError",
    "ContentLengthUnknownError",
    "InvalidRangeError",
    "ContentChangedError",
]


def range_header(position: int) -> dict[str, str]:
    """
    Prepare a :class:`dict` to be merged into the headers of a ``httpx.Request``
    with a single key ``range`` requesting everything from ``position`` onward.

    For example:

      >>> from http_readseeker.http_utils import range_header
      >>> range_header(0)
      {'range': 'bytes=0-'}

      >>> range_header(1024)
      {'range': 'bytes=1024-'}

    Args:
      position : 0-based position of the first byte to be requested
    """
    if position < 0:
        raise ValueError(f"Cannot request a negative position ({position=})")
    return {"range": f"bytes={position}-"}


def if_range_header(headers) -> dict[str, str]:
    """
    Prepare the ``if-range`` conditional header from the validators on the
    headers of the initial response, preferring ``Last-Modified`` to ``ETag``.
    Gives the empty :class:`dict` when neither validator is present.

      >>> if_range_header({"ETag": '"abc"'})
      {'if-range': '"abc"'}

    Args:
      headers : the headers of the initial response (``httpx.Headers`` or a
                :class:`dict`)
    """
    last_modified = detect_header_value(headers, key="Last-Modified", default="")
    etag = detect_header_value(headers, key="ETag", default="")
    validator = last_modified or etag
    return {"if-range": validator} if validator else {}


def clone_headers(headers: httpx.Headers) -> httpx.Headers:
    """
    Copy the headers of a request so that setting a header on the copy never
    changes the original (``httpx.Request`` shares its headers object when it
    is constructed from another one). Repeated keys are kept in order.
    """
    return httpx.Headers(list(headers.multi_items()), encoding=headers.encoding)


def detect_header_value(
    headers, key: str, source: str = "Response", default: str | None = None
):
    """
    Detect a title case, lower case, or capitalised version of the given string.
    Plain :class:`dict` headers are case sensitive (``httpx.Headers`` are not).

    Raises :exc:`KeyError` if the header is absent and no ``default`` is given.
    """
    variants = key, key.title(), key.lower(), key.capitalize(), key.upper()
    try:
        return next(headers.get(k) for k in variants if k in headers)
    except StopIteration:
        if default is not None:
            return default
        raise KeyError(f"{source} was missing '{key}' header")


def total_length_from_headers(headers) -> int | None:
    """
    The declared total length of the resource, or ``None`` if it is unknown.

    A partial content response declares it after the slash of its
    ``content-range`` header (``bytes 0-10/11``, or ``bytes 0-10/*`` if the
    server does not know it either), otherwise it is the ``content-length``.
    As with a missing header, a length of zero or less is treated as unknown.
    """
    content_range = detect_header_value(headers, key="content-range", default="")
    if content_range:
        total = content_range.rpartition("/")[-1].strip()
    else:
        total = detect_header_value(headers, key="content-length", default="")
    try:
        length = int(total)
    except ValueError:
        return None
    return length if length > 0 else None


def content_range_start(headers) -> int:
    """
    The position of the first byte of a partial content response body, read from
    its ``content-range`` header (``bytes 100-199/200`` starts at ``100``). A
    response without one is taken to start at ``0``.
    """
    content_range = detect_header_value(headers, key="content-range", default="")
    unit, _, byte_range = content_range.strip().partition(" ")
    if unit != "bytes" or not byte_range[:1].isdigit():
        return 0
    return int(byte_range.split("-", 1)[0])


class ReadSeekerError(Exception):
    """
    Base class for the errors raised by :class:`~http_readseeker.stream.HttpReadSeeker`
    (transport errors from the ``httpx`` client are raised unchanged instead).
    """


class RangeRequestsNotSupportedError(ReadSeekerError):
    """
    The remote server does not allow range requests: either the initial response
    did not declare ``Accept-Ranges: bytes`` (raised by every
    :meth:`~http_readseeker.stream.HttpReadSeeker.seek`), or a later range request
    was answered with an unexpected status code (raised by
    :meth:`~http_readseeker.stream.HttpReadSeeker.read`).
    """

    def __init__(self, msg: str = "", *, request=None, response=None):
        if not msg:
            msg = "Range requests are not supported by the remote server"
            if response is not None:
                msg += f" (got HTTP {response.status_code})"
        super().__init__(msg)
        self.request = request
        self.response = response


class ContentLengthUnknownError(ReadSeekerError):
    """
    A seek relative to the end of the stream was requested, but the initial response
    did not give a total length. The stream position is left unchanged.
    """

    def __init__(self, msg: str = "Content-Length was not set"):
        super().__init__(msg)


class InvalidRangeError(ReadSeekerError):
    """
    The server answered a range request with HTTP 416 (Range Not Satisfiable),
    typically because the position is at or past the end of the resource.
    """

    def __init__(self, *, request, response):
        super().__init__(
            f"Invalid range {request.headers.get('range')!r}: "
            f"got HTTP {response.status_code} (Range Not Satisfiable)"
        )
        self.request = request
        self.response = response


class ContentChangedError(ReadSeekerError):
    """
    The server answered a range request with the full entity (HTTP 200) when
    resuming past the start, or with a different ``ETag``: the resource is no longer
    the one first fetched, and reading on would give corrupted data.
    """

    def __init__(self, *, request, response):
        super().__init__(
            f"Content has changed since first request (got HTTP {response.status_code}"
            f" for {request.headers.get('range')!r})"
        )
        self.request = request
        self.response = response
