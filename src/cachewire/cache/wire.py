"""HTTP/1.1 wire codec for cached responses.

:func:`dump_response` turns a response into the bytes an HTTP/1.1 server
would have sent for it, and :func:`load_response` parses those bytes back
with :mod:`h11`. Parsing happens in the context of the original request so
that method-dependent framing (a ``HEAD`` response carries headers but no
body) comes out right.

Records are made self-framing on the way out: the body is stored decoded,
``Content-Encoding`` and ``Transfer-Encoding`` are dropped and
``Content-Length`` is rewritten to the stored length. Responses that can
never carry a body keep their headers exactly as received.
"""

from __future__ import annotations

import h11
import httpx

from cachewire.exceptions import CacheDecodeError

_REFRAMED_HEADERS = frozenset({b"content-encoding", b"content-length", b"transfer-encoding"})


def _is_bodyless(request: httpx.Request, status_code: int) -> bool:
    return (
        request.method.upper() == "HEAD"
        or status_code < 200
        or status_code in (204, 304)
    )


def dump_response(response: httpx.Response, request: httpx.Request) -> bytes:
    """Serialise *response* (status line, headers, blank line, body).

    The response body is read into memory if it has not been already; the
    response stays usable afterwards through ``.content`` and
    ``.iter_bytes()``.
    """
    body = response.read()
    reason = response.reason_phrase
    status_line = f"HTTP/1.1 {response.status_code}"
    if reason:
        status_line += f" {reason}"
    lines = [status_line.encode("ascii")]

    if _is_bodyless(request, response.status_code):
        headers = list(response.headers.raw)
        body = b""
    else:
        headers = [
            (name, value)
            for name, value in response.headers.raw
            if name.lower() not in _REFRAMED_HEADERS
        ]
        headers.append((b"Content-Length", str(len(body)).encode("ascii")))

    lines.extend(name + b": " + value for name, value in headers)
    return b"\r\n".join(lines) + b"\r\n\r\n" + body


def load_response(data: bytes, request: httpx.Request) -> httpx.Response:
    """Parse a response produced by :func:`dump_response`.

    Raises:
        CacheDecodeError: If *data* is truncated or is not a valid HTTP/1.1
            response.
    """
    conn = h11.Connection(our_role=h11.CLIENT)
    try:
        conn.send(
            h11.Request(
                method=request.method,
                target=request.url.raw_path,
                headers=[("Host", request.url.netloc or b"localhost")],
            )
        )
        conn.send(h11.EndOfMessage())
    except h11.LocalProtocolError as exc:
        raise CacheDecodeError(f"Cannot replay {request.method} {request.url}: {exc}") from exc

    conn.receive_data(data)
    conn.receive_data(b"")

    head: h11.Response | None = None
    chunks: list[bytes] = []
    try:
        while True:
            event = conn.next_event()
            if isinstance(event, h11.InformationalResponse):
                continue
            if isinstance(event, h11.Response):
                head = event
            elif isinstance(event, h11.Data):
                chunks.append(bytes(event.data))
            elif isinstance(event, h11.EndOfMessage):
                break
            else:
                raise CacheDecodeError(f"Incomplete cached response for {request.url}")
    except h11.RemoteProtocolError as exc:
        raise CacheDecodeError(f"Malformed cached response for {request.url}: {exc}") from exc

    assert head is not None  # h11 emits Response before EndOfMessage
    return httpx.Response(
        status_code=head.status_code,
        headers=head.headers.raw_items(),
        stream=httpx.ByteStream(b"".join(chunks)),
        request=request,
        extensions={
            "http_version": b"HTTP/" + head.http_version,
            "reason_phrase": head.reason,
        },
    )
