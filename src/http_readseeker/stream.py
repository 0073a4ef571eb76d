r""":mod:`http_readseeker.stream` exposes a class
:class:`~http_readseeker.stream.HttpReadSeeker`, a file-like object over the body of
an HTTP response which can :meth:`~http_readseeker.stream.HttpReadSeeker.seek` by
sending range requests.

Seeking only moves the logical position: the range request for the new position is
sent by the next :meth:`~http_readseeker.stream.HttpReadSeeker.read`, so any number
of seeks can be made without network overhead. The exception is a short seek forward
(by at most :data:`~http_readseeker.stream.SHORT_SEEK_BYTES`) while a body is open,
which reads and discards the bytes in between rather than paying for a new request,
and so may block on the network like a read does.
"""

from __future__ import annotations

from io import SEEK_CUR, SEEK_END, SEEK_SET, RawIOBase
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

from .http_utils import (
    ContentLengthUnknownError,
    RangeRequestsNotSupportedError,
    content_range_start,
    detect_header_value,
    total_length_from_headers,
)
from .log_utils import log
from .request import RangeRequest, derive_request
from .response import RangeResponse

__all__ = ["HttpReadSeeker", "SHORT_SEEK_BYTES"]

SHORT_SEEK_BYTES = 1024
"""
The furthest a forward seek may go by reading from the open body instead of sending
a new range request.
"""


class HttpReadSeeker(RawIOBase):
    """
    A class representing the body of a HTTP response as a seekable binary stream
    (implementing both :class:`~http_readseeker.types.ReadCloser` and
    :class:`~http_readseeker.types.Seeker`). The body of the response it is created
    from is read first; once the stream has been seeked elsewhere, reading continues
    from a range request for everything from the new position onward.

    It is not safe to use one instance from several threads. To read different parts
    of the resource in parallel, give each thread its own
    :meth:`~http_readseeker.stream.HttpReadSeeker.clone`.

    The client is not closed with the stream (clones share it, and it may have been
    passed in): you must handle this yourself.
    """

    _body: RangeResponse | None = None
    """
    The body currently being read, or ``None`` if a range request must be sent
    before the next read. When set, its next byte is at the logical position.
    """

    request_count: int = 0
    """
    The number of range requests sent so far (not counting the initial request).
    """

    last_request = None
    """
    The most recently sent range request (a ``httpx.Request``) or ``None``.
    """

    def __init__(
        self,
        response,
        client=None,  # don't hint httpx.Client (Sphinx gives error)
        short_seek_bytes: int = SHORT_SEEK_BYTES,
        open_body: bool = True,
    ):
        """
        Set up a stream on the body of ``response``, which should have been
        received without reading its content (e.g. ``client.send(req, stream=True)``).
        If its content was already read, the loaded content is used for the first
        reads instead, unless it was decoded from a content encoding (positions count
        the raw bytes on the wire), in which case the first read sends a range request.

        The request that produced ``response`` is kept (never modified) as the
        template for range requests, along with its extensions (which carry any
        timeout set on the request).

        By default (if ``client`` is left as ``None``) a fresh
        :class:`httpx.Client` will be created for the stream's range requests.

        Args:
          response         : (``httpx.Response``) The received response, which must
                             have a ``request``
          client           : (:class:`httpx.Client` | ``None``) The HTTPX client
                             to use for range requests
          short_seek_bytes : (:class:`int`) The furthest a forward seek will go by
                             discarding bytes from the open body
          open_body        : (:class:`bool`) Whether to read from the body of
                             ``response`` at all, rather than sending a range request
                             on the first read (used by
                             :meth:`~http_readseeker.stream.HttpReadSeeker.clone`).
        """
        super().__init__()
        self.set_client(client=client)
        self.initial_response = response
        self.base_request = response.request
        accept_ranges = detect_header_value(
            response.headers, key="Accept-Ranges", default=""
        )
        self.can_seek = accept_ranges.strip().lower() == "bytes"
        self.total_bytes = total_length_from_headers(response.headers)
        self.short_seek_bytes = short_seek_bytes
        self._pos = 0
        if open_body and self.has_raw_body(response):
            if response.status_code == 206:
                # The initial request may itself have been a range request
                self._pos = content_range_start(response.headers)
            self._body = RangeResponse(response=response, start=self._pos)

    @staticmethod
    def has_raw_body(response) -> bool:
        """
        Whether the body of ``response`` can still be had as the raw bytes which
        positions and ranges count: always if it is unread, but once read only the
        decoded ``content`` is left, which is only raw without a content encoding.
        """
        if not response.is_stream_consumed:
            return True
        encoding = detect_header_value(
            response.headers, key="Content-Encoding", default="identity"
        )
        return encoding.strip().lower() in ("", "identity")

    @classmethod
    def open(cls, url, client=None, **kwargs) -> HttpReadSeeker:
        """
        Send a streaming GET request for ``url`` and set up a stream on the response.
        Raises ``httpx.HTTPStatusError`` (closing the response) for an error status.

        Args:
          url    : The URL of the resource to be streamed
          client : (:class:`httpx.Client` | ``None``) The HTTPX client to use for
                   this and all further requests (a fresh one if ``None``)
          kwargs : Passed to the :class:`~http_readseeker.stream.HttpReadSeeker`
                   constructor
        """
        if client is None:
            client = httpx.Client()
        request = client.build_request(method="GET", url=url)
        response = client.send(request=request, stream=True)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError:
            response.close()
            raise
        return cls(response, client=client, **kwargs)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__} ⠶ {self._pos} @ '{self.name}' from "
            f"{self.domain}"
        )

    def set_client(self, client) -> None:
        """
        Check client type explicitly to handle an optional HTTPX client.

        Args:
          client : (:class:`httpx.Client` | ``None``) The client to be used for all
                   range requests made on the stream (and any clones). If ``None``,
                   a fresh one will be created.
        """
        if client is None:
            client = httpx.Client()
        elif not isinstance(client, httpx.Client):
            raise TypeError(f"{client=} is not a HTTPX client")
        self.client = client

    @property
    def url(self) -> httpx.URL:
        return self.base_request.url

    @property
    def name(self) -> str:
        return PurePosixPath(self.url.path).name

    @property
    def domain(self) -> str:
        return self.url.host

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        """
        Whether the server declared ``Accept-Ranges: bytes`` on the initial response.
        If not, every :meth:`~http_readseeker.stream.HttpReadSeeker.seek` raises
        :class:`~http_readseeker.http_utils.RangeRequestsNotSupportedError`.
        """
        return self.can_seek

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed stream")

    def readinto(self, b) -> int:
        """
        Read at most ``len(b)`` bytes into ``b`` from the logical position, first
        sending a range request if no body is open. Returns the number of bytes read,
        ``0`` at the end of the stream. No request is sent to read nothing, or to
        read from exactly the end of a stream of known length.

        May raise :class:`~http_readseeker.http_utils.RangeRequestsNotSupportedError`,
        :class:`~http_readseeker.http_utils.InvalidRangeError`,
        :class:`~http_readseeker.http_utils.ContentChangedError` or any ``httpx``
        transport error (also if the body fails partway through), in which case no
        body is left open and reading again retries the range request from the
        logical position.
        """
        self._check_open()
        if self._body is None:
            if memoryview(b).nbytes == 0 or self._pos == self.total_bytes:
                return 0  # Nothing to request
            self._body = self.range_request()
        try:
            n = self._body.readinto(b)
        except Exception:
            # Bytes taken off a failed body are not counted: resume at _pos
            self.close_body()
            raise
        self._pos += n
        return n

    def readinto_at(self, b, offset: int) -> int:
        """
        Seek to ``offset`` then read until ``b`` is full or the stream ends, returning
        the number of bytes read. Not atomic: do not share the stream across threads.
        """
        self.seek(offset, SEEK_SET)
        view = memoryview(b).cast("B")
        n = 0
        while n < len(view):
            nn = self.readinto(view[n:])
            if nn == 0:
                break
            n += nn
        return n

    def read_at(self, size: int, offset: int) -> bytes:
        """
        Read ``size`` bytes from ``offset`` (fewer if the stream ends first).
        """
        buf = bytearray(size)
        n = self.readinto_at(buf, offset)
        return bytes(buf[:n])

    def tell(self) -> int:
        self._check_open()
        return self._pos

    def _resolve_position(self, offset: int, whence: int) -> int:
        if whence == SEEK_SET:
            position = offset
        elif whence == SEEK_CUR:
            position = self._pos + offset
        elif whence == SEEK_END:
            if self.total_bytes is None:
                raise ContentLengthUnknownError()
            position = self.total_bytes + offset
        else:
            raise ValueError(f"Invalid {whence=} (should be 0, 1 or 2)")
        if position < 0:
            raise ValueError(f"Negative seek position {position}")
        return position

    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        """
        File-like seeking, returning the new absolute position. No request is sent:
        if the position changes, the open body is closed and the next read sends a
        range request from the new position. A forward seek of at most
        :attr:`~http_readseeker.stream.HttpReadSeeker.short_seek_bytes` instead
        reads on through the open body (this may block like a read does).

        May raise :class:`~http_readseeker.http_utils.RangeRequestsNotSupportedError`
        (for every call, if the server does not accept range requests),
        :class:`~http_readseeker.http_utils.ContentLengthUnknownError` (seeking from
        the end of a stream of unknown length) or :exc:`ValueError` (for a negative
        position or invalid ``whence``), leaving the position unchanged.
        """
        self._check_open()
        if not self.can_seek:
            raise RangeRequestsNotSupportedError()
        position = self._resolve_position(offset, whence)
        if self._body is not None and position != self._pos:
            skip = position - self._pos
            if 0 < skip <= self.short_seek_bytes:
                # Reading is cheaper than doing a request
                log.debug(f"Discarding {skip} bytes to seek to {position}")
                try:
                    self._pos += self._body.discard(skip)
                except Exception:
                    self.close_body()
                    raise
            if self._pos != position:
                self.close_body()
        self._pos = position
        return self._pos

    def range_request(self) -> RangeResponse:
        """
        Send a range request for everything from the logical position onward,
        returning the body to read from (see
        :meth:`~http_readseeker.request.RangeRequest.raise_for_unusable_status`).
        """
        range_req = RangeRequest(
            position=self._pos,
            base_request=self.base_request,
            initial_response=self.initial_response,
            client=self.client,
        )
        self.request_count += 1
        self.last_request = range_req.request
        log.debug(f"Sending range request #{self.request_count} at {self._pos}")
        return range_req.send()

    def close_body(self) -> None:
        """
        Close the open body (if any): the next read will send a range request.
        """
        body, self._body = self._body, None
        if body is not None:
            body.close()

    def close(self) -> None:
        """
        Close the open body (if any) and mark the stream closed. Calling it again
        does nothing. The client is left open.
        """
        try:
            self.close_body()
        finally:
            super().close()

    def clone(self) -> HttpReadSeeker:
        """
        Create an independent stream on the same resource, for reading other ranges
        of it in parallel: it shares the initial response and the client, but has
        its own copy of the request (so setting headers on either never affects the
        other), no open body, and starts at position 0 with a request count of 0.
        """
        twin = self.__class__(
            self.initial_response,
            client=self.client,
            short_seek_bytes=self.short_seek_bytes,
            open_body=False,
        )
        twin.base_request = derive_request(self.base_request)
        return twin
