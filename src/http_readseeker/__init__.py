r"""
:mod:`http_readseeker` provides a file-like object over the body of a HTTP
response, through an API familiar to users of the standard library
:mod:`io` module, which adds what a plain response body lacks: the ability
to :meth:`~http_readseeker.stream.HttpReadSeeker.seek`.

Servers with support for `HTTP range requests
<https://developer.mozilla.org/en-US/docs/Web/HTTP/Range_requests>`_
can provide partial content requests, so after a seek the stream carries on
reading from a new request for the bytes from the new position onward, rather
than downloading and discarding everything up to it.

A :class:`~http_readseeker.stream.HttpReadSeeker` is initialised by providing:

- a response (:class:`httpx.Response`), ideally sent with ``stream=True`` so its
  body has not been read yet: this is read first
- (optionally) a client (:class:`httpx.Client`) to send the range requests with,
  or else a fresh one is created

Seeking does not send a request: the request is sent by the next read, so several
seeks in a row cost nothing. The number of range requests sent is kept on
:attr:`~http_readseeker.stream.HttpReadSeeker.request_count`.

    >>> import httpx
    >>> from http_readseeker import HttpReadSeeker, _EXAMPLE_URL
    >>> client = httpx.Client() # doctest: +SKIP
    >>> req = client.build_request("GET", _EXAMPLE_URL) # doctest: +SKIP
    >>> s = HttpReadSeeker(client.send(req, stream=True), client=client) # doctest: +SKIP
    >>> first = s.read(3)  # from the first response's body # doctest: +SKIP
    >>> s.seek(7)  # moves the position, but does no range request # doctest: +SKIP
    7
    >>> later = s.read(2)  # does a range request, reads its body # doctest: +SKIP
    >>> s.request_count # doctest: +SKIP
    1
    >>> s.close() # doctest: +SKIP

:meth:`~http_readseeker.stream.HttpReadSeeker.open` does the first two steps for
you. If the server did not declare ``Accept-Ranges: bytes`` on the first response,
the stream can only be read forward, and any seek raises
:class:`~http_readseeker.http_utils.RangeRequestsNotSupportedError`.

Each range request carries an ``If-Range`` header with the first response's
``Last-Modified`` date (or its ``ETag``), so if the resource has changed since
the first request the read raises
:class:`~http_readseeker.http_utils.ContentChangedError` rather than mixing bytes
from two versions of it.

To read several parts of the resource in parallel, each thread needs its own
:meth:`~http_readseeker.stream.HttpReadSeeker.clone` (a stream is not thread-safe);
:func:`~http_readseeker.fetch.fetch_ranges` does this for a list of ranges.
"""

# Get classes into package namespace but exclude from __all__ so Sphinx can access types

from . import fetch, http_utils, range_utils, types
from .http_utils import (
    ContentChangedError,
    ContentLengthUnknownError,
    InvalidRangeError,
    RangeRequestsNotSupportedError,
    ReadSeekerError,
)
from .log_utils import set_up_logging
from .request import RangeRequest
from .response import RangeResponse
from .stream import SHORT_SEEK_BYTES, HttpReadSeeker

__all__ = [
    "stream",
    "request",
    "response",
    "http_utils",
    "range_utils",
    "fetch",
    "types",
]

__version__ = "0.1.0"
__author__ = "http-readseeker contributors"
__license__ = "MIT"
__description__ = "Seekable HTTP response bodies via range requests."

_EXAMPLE_DATA_URL = "https://github.com/lmmx/range-streams/raw/master/data/"
_EXAMPLE_URL = f"{_EXAMPLE_DATA_URL}example_text_file.txt"
