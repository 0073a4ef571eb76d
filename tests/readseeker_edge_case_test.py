import gzip
from concurrent.futures import ThreadPoolExecutor
from io import SEEK_CUR, SEEK_END, SEEK_SET

import httpx
from pytest import fixture, mark, raises

from http_readseeker import (
    ContentChangedError,
    ContentLengthUnknownError,
    HttpReadSeeker,
    InvalidRangeError,
    RangeRequestsNotSupportedError,
    ReadSeekerError,
)

from .data import EXAMPLE_BODY, EXAMPLE_FILE_LENGTH, EXAMPLE_URL
from .share import RangeServer, make_reader


@fixture
def server():
    return RangeServer()


@fixture
def reader(server):
    s = make_reader(server)
    yield s
    s.close()


@mark.parametrize(
    "seek,whence", [(0, SEEK_SET), (100, SEEK_SET), (5, SEEK_CUR), (-10, SEEK_END)]
)
def test_unsupported_range_requests(seek, whence):
    server = RangeServer(accept_ranges=False)
    s = make_reader(server)
    s.read(10)
    assert not s.seekable()
    with raises(RangeRequestsNotSupportedError):
        s.seek(seek, whence)
    assert s.tell() == 10
    # Still readable as a forward-only stream
    assert s.read() == EXAMPLE_BODY[10:]
    assert s.request_count == 0


@mark.parametrize("error_msg", ["Content-Length was not set"])
def test_seek_end_unknown_length(error_msg):
    server = RangeServer(send_length=False)
    s = make_reader(server)
    assert s.total_bytes is None
    s.read(10)
    with raises(ContentLengthUnknownError, match=error_msg):
        s.seek(-10, SEEK_END)
    assert s.tell() == 10
    assert s.read(5) == EXAMPLE_BODY[10:15]
    assert s.request_count == 0


def test_seek_end_unknown_length_does_not_stop_other_seeks():
    server = RangeServer(send_length=False)
    s = make_reader(server)
    s.seek(3000)
    assert s.read(5) == EXAMPLE_BODY[3000:3005]


@mark.parametrize("seek,whence", [(-1, SEEK_SET), (-11, SEEK_CUR), (-5121, SEEK_END)])
def test_negative_seek_fails(reader, seek, whence):
    reader.read(10)
    with raises(ValueError, match="Negative seek position"):
        reader.seek(seek, whence)
    assert reader.tell() == 10
    assert reader.read(5) == EXAMPLE_BODY[10:15]
    assert reader.request_count == 0


@mark.parametrize("whence", [3, -1])
def test_invalid_whence(reader, whence):
    with raises(ValueError, match="Invalid whence"):
        reader.seek(0, whence)
    assert reader.tell() == 0


def test_full_entity_resumed_past_start():
    """
    A server ignoring the ``Range`` header sends the whole resource again, which
    cannot be resumed from position 100.
    """
    server = RangeServer(ignore_range=True)
    s = make_reader(server)
    s.seek(3000)
    s.seek(100)
    with raises(ContentChangedError) as exc_info:
        s.read(10)
    assert exc_info.value.response.status_code == 200
    assert exc_info.value.response.is_closed
    assert s._body is None
    assert s.tell() == 100


def test_full_entity_from_start():
    server = RangeServer(ignore_range=True)
    s = make_reader(server)
    s.seek(3000)
    s.seek(0)
    assert s.read(10) == EXAMPLE_BODY[:10]
    assert s.request_count == 1


def test_full_entity_from_start_without_etag():
    server = RangeServer(ignore_range=True, etag=None)
    s = make_reader(server)
    s.seek(3000)
    s.seek(0)
    assert s.read(10) == EXAMPLE_BODY[:10]


def test_full_entity_from_start_etag_changed():
    server = RangeServer(ignore_range=True)
    s = make_reader(server)
    s.seek(3000)
    s.seek(0)
    server.etag = '"5120-v2"'
    with raises(ContentChangedError):
        s.read(10)


def test_resource_changed(reader, server):
    """
    The ``If-Range`` validator no longer matches so the server sends the new version
    of the resource in full rather than partial content of it.
    """
    server.etag = '"5120-v2"'
    reader.seek(2000)
    with raises(ContentChangedError):
        reader.read(10)
    assert server.range_requests[-1].headers["if-range"] == '"5120-v1"'


def test_invalid_range_past_end(reader):
    reader.seek(EXAMPLE_FILE_LENGTH + 100)
    with raises(InvalidRangeError) as exc_info:
        reader.read(1)
    assert exc_info.value.response.status_code == 416
    assert reader.tell() == EXAMPLE_FILE_LENGTH + 100
    assert reader._body is None
    # Recover by seeking elsewhere
    reader.seek(100)
    assert reader.read(5) == EXAMPLE_BODY[100:105]


def test_read_at_end_sends_nothing(reader):
    reader.seek(0, SEEK_END)
    assert reader.read(10) == b""
    assert reader.request_count == 0


def test_short_seek_past_end_of_body(reader):
    """
    A short seek forward which runs out of body closes it, leaving the position as
    requested (past the end) for the next read to fail on.
    """
    reader.seek(EXAMPLE_FILE_LENGTH - 100)
    reader.read(1)
    body = reader._body
    assert reader.seek(500, SEEK_CUR) == EXAMPLE_FILE_LENGTH + 401
    assert reader._body is None
    assert body.is_closed
    with raises(InvalidRangeError):
        reader.read(1)


@mark.parametrize("status", [403, 404, 500, 302])
def test_unexpected_status(reader, server, status):
    server.status_override = status
    reader.seek(3000)
    with raises(RangeRequestsNotSupportedError, match=f"got HTTP {status}"):
        reader.read(1)
    assert reader._body is None


def test_errors_share_a_base():
    for exc in [
        RangeRequestsNotSupportedError,
        ContentLengthUnknownError,
        InvalidRangeError,
        ContentChangedError,
    ]:
        assert issubclass(exc, ReadSeekerError)


def test_transport_error_propagates(reader, server):
    reader.seek(3000)
    server.raise_next = httpx.ConnectError("Connection refused")
    with raises(httpx.ConnectError, match="Connection refused"):
        reader.read(1)
    assert reader.request_count == 1
    assert reader._body is None
    # A retry starts the range request over
    assert reader.read(3) == EXAMPLE_BODY[3000:3003]
    assert reader.request_count == 2


def test_body_dropped_partway(reader, server):
    """
    A connection dropped partway through a body leaves no body open, and reading
    again resumes from the position reached with a new range request.
    """
    reader.seek(3000)
    server.fail_after = 64
    with raises(httpx.ReadError):
        reader.read(100)
    assert reader._body is None
    assert reader.tell() == 3000
    assert reader.read(10) == EXAMPLE_BODY[3000:3010]
    assert reader.request_count == 2
    assert server.range_requests[-1].headers["range"] == "bytes=3000-"


def test_body_dropped_during_short_seek(reader, server):
    reader.seek(3000)
    server.fail_after = 64
    assert reader.read(10) == EXAMPLE_BODY[3000:3010]
    with raises(httpx.ReadError):
        reader.seek(500, SEEK_CUR)
    assert reader._body is None
    assert reader.tell() == 3010
    assert reader.read(5) == EXAMPLE_BODY[3010:3015]
    assert server.range_requests[-1].headers["range"] == "bytes=3010-"


def test_already_read_encoded_response():
    """
    The decoded content of a gzip-encoded response already read does not match the
    raw offsets used by ranges, so reading starts afresh with a range request.
    """
    raw = gzip.compress(EXAMPLE_BODY)

    def handler(request):
        headers = {"accept-ranges": "bytes", "content-encoding": "gzip"}
        if "range" not in request.headers:
            return httpx.Response(200, headers=headers, content=raw)
        start = int(request.headers["range"].split("=", 1)[1].rstrip("-"))
        headers["content-range"] = f"bytes {start}-{len(raw) - 1}/{len(raw)}"
        return httpx.Response(206, headers=headers, content=raw[start:])

    client = httpx.Client(transport=httpx.MockTransport(handler))
    response = client.get(EXAMPLE_URL)
    assert response.content == EXAMPLE_BODY
    s = HttpReadSeeker(response, client=client)
    assert s._body is None
    assert s.total_bytes == len(raw)
    assert s.read(10) == raw[:10]
    assert s.request_count == 1
    assert s.seek(-10, SEEK_END) == len(raw) - 10
    assert s.read() == raw[-10:]
    assert s.tell() == len(raw)



def test_clone_independent_headers(reader):
    twin = reader.clone()
    twin.base_request.headers["x-twin"] = "yes"
    assert "x-twin" not in reader.base_request.headers
    reader.base_request.headers["x-original"] = "yes"
    assert "x-original" not in twin.base_request.headers


def test_clone_state(reader):
    reader.read(10)
    twin = reader.clone()
    assert twin.tell() == 0
    assert twin._body is None
    assert twin.request_count == 0
    assert twin.client is reader.client
    assert twin.initial_response is reader.initial_response
    assert twin.total_bytes == reader.total_bytes
    assert twin.seekable()


def test_clone_reads_independently(reader, server):
    reader.read(10)
    twin = reader.clone()
    assert twin.read_at(size=10, offset=2000) == EXAMPLE_BODY[2000:2010]
    assert reader.read(10) == EXAMPLE_BODY[10:20]
    assert reader.tell() == 20
    assert twin.tell() == 2010
    assert reader.request_count == 0
    assert twin.request_count == 1
    twin.close()
    assert not reader.closed


def test_clone_from_start(reader, server):
    twin = reader.clone()
    assert twin.read(5) == EXAMPLE_BODY[:5]
    assert server.range_requests[-1].headers["range"] == "bytes=0-"


def test_clones_in_parallel(reader):
    offsets = [0, 1000, 2000, 3000, 4000, 5000]

    def read_clone(offset):
        twin = reader.clone()
        try:
            data = twin.read_at(size=100, offset=offset)
            return data, twin.tell()
        finally:
            twin.close()

    with ThreadPoolExecutor(max_workers=3) as pool:
        results = list(pool.map(read_clone, offsets))
    for offset, (data, told) in zip(offsets, results):
        assert data == EXAMPLE_BODY[offset : offset + 100]
        assert told == min(offset + 100, EXAMPLE_FILE_LENGTH)
    assert reader.tell() == 0
    assert reader.request_count == 0


def test_close_twice_after_range_request(reader):
    reader.seek(3000)
    reader.read(1)
    body = reader._body
    reader.close()
    reader.close()
    assert body.is_closed
