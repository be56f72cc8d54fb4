"""
Requests and responses as seen by the transports.

The transports exchange these client-agnostic structures instead of
``aiohttp``'s own classes: the routing layers must be able to inspect,
rewrite, and fake them without a real HTTP session around.

Requests are immutable: every modification produces a new request.
Responses are mutable only in their reading/closing state, since the bodies
can be streamed (e.g. for watch-streams) and must be released when done.
"""
import dataclasses
import json
import urllib.parse
from typing import Any, AsyncIterator, Callable, Mapping, Optional

import aiohttp
import multidict


@dataclasses.dataclass(frozen=True)
class Request:
    method: str
    url: str  # absolute: scheme://authority/path?query
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    payload: Optional[object] = None  # to be sent as JSON
    data: Optional[bytes] = None  # to be sent as is
    timeout: Optional[aiohttp.ClientTimeout] = None
    cluster: Optional[str] = None  # the routing tag; cleared once routed

    @property
    def path(self) -> str:
        return urllib.parse.urlsplit(self.url).path

    def with_headers(self, headers: Mapping[str, str]) -> "Request":
        """ Add or replace the headers. The names are case-insensitive, as in HTTP. """
        merged = multidict.CIMultiDict(self.headers)
        merged.update(headers)
        return dataclasses.replace(self, headers=multidict.CIMultiDictProxy(merged))

    def with_cluster(self, cluster: Optional[str]) -> "Request":
        return dataclasses.replace(self, cluster=cluster)


class Response:
    """
    An HTTP response with either a pre-read body or a streamed body.

    The streamed body is consumed only once, either chunk by chunk
    via :meth:`iter_chunks`, or fully via :meth:`read` (and then cached).
    The optional ``release`` callback frees the underlying connection.
    """

    def __init__(
            self,
            *,
            status: int,
            request: Request,
            headers: Optional[Mapping[str, str]] = None,
            body: Optional[bytes] = None,
            stream: Optional[AsyncIterator[bytes]] = None,
            release: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__()
        if body is not None and stream is not None:
            raise TypeError("Either a body or a stream can be given, not both.")
        self.status = status
        self.request = request
        self.headers: Mapping[str, str] = headers if headers is not None else {}
        self._body = body
        self._stream = stream
        self._release = release
        self._closed = False

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}: {self.status} {self.request.method} {self.request.url}>'

    async def __aenter__(self) -> "Response":
        return self

    async def __aexit__(self, *_: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            if self._release is not None:
                self._release()

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        if self._body is not None:
            if self._body:
                yield self._body
        elif self._stream is not None:
            stream, self._stream = self._stream, None
            async for chunk in stream:
                yield chunk
        elif self._closed:
            raise aiohttp.ClientConnectionError("Connection closed.")

    async def read(self) -> bytes:
        if self._body is None:
            self._body = b''.join([chunk async for chunk in self.iter_chunks()])
        return self._body

    async def text(self, encoding: str = 'utf-8') -> str:
        return (await self.read()).decode(encoding)

    async def json(self) -> Any:
        return json.loads(await self.text())
