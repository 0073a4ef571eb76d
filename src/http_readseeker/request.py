from __future__ import annotations

from typing import TYPE_CHECKING

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

from .http_utils import (
    ContentChangedError,
    InvalidRangeError,
    RangeRequestsNotSupportedError,
    clone_headers,
    detect_header_value,
    if_range_header,
    range_header,
)
from .log_utils import log
from .response import RangeResponse

__all__ = ["RangeRequest", "derive_request"]


def derive_request(base_request) -> httpx.Request:
    """
    Build a fresh ``httpx.Request`` from ``base_request`` with the same method, URL
    and extensions (which carry any per-request timeout), and its own copy of the
    headers: setting a header on the result never touches ``base_request``.

    An empty body is dropped rather than resent, and a streaming body (which has no
    ``content`` to copy) is passed on as the same stream.

    Args:
      base_request : The ``httpx.Request`` to derive from
    """
    headers = clone_headers(base_request.headers)
    extensions = dict(base_request.extensions)
    try:
        content = base_request.content
    except httpx.RequestNotRead:
        return httpx.Request(
            method=base_request.method,
            url=base_request.url,
            headers=headers,
            stream=base_request.stream,
            extensions=extensions,
        )
    if not content:
        headers.pop("content-length", None)
    return httpx.Request(
        method=base_request.method,
        url=base_request.url,
        headers=headers,
        content=content or None,
        extensions=extensions,
    )


class RangeRequest:
    """
    Derive a range request from the request that produced the initial response,
    send it with the given client, and check the status of the reply, keeping the
    response stream open (as a :class:`~http_readseeker.response.RangeResponse` on
    :attr:`~http_readseeker.request.RangeRequest.body`) for the caller to read and
    close.

    The request asks for every byte from ``position`` onward, conditional on the
    validator of the initial response (see
    :func:`~http_readseeker.http_utils.if_range_header`).
    """

    def __init__(self, position: int, base_request, initial_response, client):
        """
        Args:
          position         : The position of the first byte to request.
          base_request     : The ``httpx.Request`` to derive the range request from
                             (not modified).
          initial_response : The first ``httpx.Response`` received for the resource,
                             whose validators guard the resumed request.
          client           : The ``httpx.Client`` to send the request with.
        """
        self.position = position
        self.client = client
        self.initial_response = initial_response
        self.request = derive_request(base_request)
        self.request.headers.update(range_header(position))
        self.request.headers.update(if_range_header(initial_response.headers))

    @property
    def etag(self) -> str:
        """
        The ``ETag`` of the initial response (the empty string if it had none).
        """
        return detect_header_value(self.initial_response.headers, key="ETag", default="")

    def send(self) -> RangeResponse:
        """
        ``client.stream("GET", url)`` but leave the stream to be manually closed
        rather than using a context manager. Transport errors are raised unchanged.
        """
        log.debug(f"Range request {self.request.headers['range']!r} to {self.request.url}")
        self.response = self.client.send(request=self.request, stream=True)
        try:
            self.raise_for_unusable_status()
        except Exception:
            self.response.close()
            raise
        return RangeResponse(response=self.response, start=self.position)

    def raise_for_unusable_status(self) -> None:
        """
        Raise unless the response body starts at the requested position of the
        resource as first fetched:

        - 206 (Partial Content) is always usable
        - 200 (OK) is the full entity, which some servers send for ``bytes=0-``. It
          is only usable from position 0 and when the ``ETag`` (if any) is unchanged,
          otherwise :class:`~http_readseeker.http_utils.ContentChangedError`
        - 416 (Range Not Satisfiable) gives
          :class:`~http_readseeker.http_utils.InvalidRangeError`
        - anything else gives
          :class:`~http_readseeker.http_utils.RangeRequestsNotSupportedError`
        """
        status = self.response.status_code
        if status == 206:
            return
        log.debug(f"Got HTTP {status} for {self.request.headers['range']!r}")
        if status == 416:
            raise InvalidRangeError(request=self.request, response=self.response)
        if status == 200:
            etag = self.etag
            etag_changed = etag != "" and etag != self.response.headers.get("etag")
            if self.position > 0 or etag_changed:
                raise ContentChangedError(request=self.request, response=self.response)
            return
        raise RangeRequestsNotSupportedError(
            request=self.request, response=self.response
        )
