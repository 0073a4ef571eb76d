from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

MYPY = False  # when using mypy will be overrided as True
if MYPY or not TYPE_CHECKING:  # pragma: no cover
    import httpx  # avoid importing to Sphinx type checker

from .log_utils import log

__all__ = ["RangeResponse"]


class RangeResponse:
    """
    Adapted from `obskyr's ResponseStream demo code
    <https://gist.github.com/obskyr/b9d4b4223e7eaf4eedcd9defabb34f13>`_,
    this class handles a streamed response body as a forward-only file-like object:
    the raw chunks from the ``httpx.Response`` are handed out in whatever sizes the
    reader asks for, holding back the unread tail of the last chunk.

    Only ever constructed by :class:`~http_readseeker.stream.HttpReadSeeker`, for which
    it is the currently open body. The first byte of the body sits at
    :attr:`~http_readseeker.response.RangeResponse.start` in the resource.
    """

    def __init__(self, response, start: int = 0):
        """
        Args:
          response : The received ``httpx.Response``. If its content has not
                     been read (a ``stream=True`` request) it is consumed chunk
                     by chunk, otherwise the loaded ``content`` is used.
          start    : The position in the resource of the body's first byte.
        """
        self.response = response
        self.start = start
        self.told = 0
        self._pending = memoryview(b"")
        self._iterator = self.iter_raw()

    def __repr__(self):
        return (
            f"{self.__class__.__name__} ⠶ HTTP {self.response.status_code} from "
            f"{self.start} (read {self.told}) @ '{self.response.url}'"
        )

    def iter_raw(self) -> Iterator[bytes]:
        """
        The undecoded body chunks. A response whose content was already loaded
        cannot be streamed again, so its ``content`` is given as a single chunk.
        """
        if self.response.is_stream_consumed:
            return iter([self.response.content])
        return self.response.iter_raw()

    def _next_chunk(self) -> bool:
        """
        Move the next non-empty chunk into the pending buffer, returning ``False``
        if the body is exhausted.
        """
        for chunk in self._iterator:
            if chunk:
                self._pending = memoryview(chunk)
                return True
        return False

    def readinto(self, b) -> int:
        """
        Read up to ``len(b)`` bytes into the writable buffer ``b``, returning the
        number of bytes read: fewer only if the body is exhausted first (so ``0``
        means there is nothing left to read).
        """
        view = memoryview(b).cast("B")
        n = 0
        while n < len(view):
            if not self._pending and not self._next_chunk():
                break
            nn = min(len(view) - n, len(self._pending))
            view[n : n + nn] = self._pending[:nn]
            self._pending = self._pending[nn:]
            n += nn
        self.told += n
        return n

    def read(self, size: int) -> bytes:
        buf = bytearray(size)
        n = self.readinto(buf)
        return bytes(buf[:n])

    def discard(self, size: int) -> int:
        """
        Consume and throw away up to ``size`` bytes, returning how many were
        discarded (fewer than ``size`` only if the body ran out).
        """
        discarded = 0
        while discarded < size:
            if not self._pending and not self._next_chunk():
                break
            n = min(size - discarded, len(self._pending))
            self._pending = self._pending[n:]
            discarded += n
        self.told += discarded
        return discarded

    def tell(self) -> int:
        """
        Absolute position in the resource of the next byte this body will give.
        """
        return self.start + self.told

    @property
    def is_closed(self) -> bool:
        """
        True if the associated ``httpx.Response`` object is closed.
        """
        return self.response.is_closed

    def close(self) -> None:
        """
        Close the associated ``httpx.Response`` object (releasing its connection).
        """
        if not self.response.is_closed:
            log.debug(f"Closing body at {self.tell()} of {self.response.url}")
            self.response.close()
