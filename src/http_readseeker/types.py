from __future__ import annotations

from typing import Protocol, TypeVar, runtime_checkable

import http_readseeker

__all__ = ["ReadCloser", "Seeker", "_T"]


@runtime_checkable
class ReadCloser(Protocol):
    """
    Sequential reading: all a consumer of the byte stream needs when it never seeks.
    """

    def readinto(self, b) -> int:
        ...

    def read(self, size: int = -1) -> bytes:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Seeker(Protocol):
    """
    Repositioning, for consumers which need random access.
    """

    def seek(self, offset: int, whence: int = 0) -> int:
        ...

    def tell(self) -> int:
        ...


_T = TypeVar(
    "_T", bound="http_readseeker.stream.HttpReadSeeker"
)  # HttpReadSeeker or a subclass
