"""
Transports: the objects that send a request and return a response.

Every transport implements one capability: :meth:`Transport.send`.
The transports are composed by wrapping one into another, so that each layer
does its own little job and delegates the rest to the wrapped transport::

    transport = ClusterGatewayTransport(AiohttpTransport(session))

The innermost transport is always :class:`AiohttpTransport`, which does
the actual network I/O. It is the one owning the TLS context, the credentials,
and the connection pool --- which are therefore preserved by all the wrappers.

The transports must be safe for any number of concurrent requests:
no per-request state can be stored on the transport instances.
"""
import abc
from typing import Any, Callable, Dict, List

import aiohttp

from kubegate._cogs.structs import messages

# The default chunk for streamed response bodies; see `api.iter_jsonlines()` for the reasons.
DEFAULT_CHUNK_SIZE = 1024 * 1024


class Transport(abc.ABC):

    @abc.abstractmethod
    async def send(self, request: messages.Request) -> messages.Response:
        raise NotImplementedError

    async def close(self) -> None:
        pass


# Anything that takes a transport and returns a new one (usually, wrapping it).
TransportWrapper = Callable[[Transport], Transport]


class WrappingTransport(Transport):
    """
    A base for the transports decorating other transports.

    Closing the wrapper closes the wrapped transport too, since the wrappers
    are usually the sole owners of the wrapped transports.
    """

    def __init__(self, delegate: Transport) -> None:
        super().__init__()
        if not isinstance(delegate, Transport):
            raise TypeError(f"Only transports can be wrapped, got {delegate!r}.")
        self.delegate = delegate

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.delegate!r})'

    async def close(self) -> None:
        await self.delegate.close()


class AiohttpTransport(Transport):
    """
    The network transport: sends the requests via an ``aiohttp`` session.

    The responses' bodies are not pre-read, but streamed on demand,
    so that the watch-streams can be consumed while they are coming.

    The open responses are tracked, so that they could be closed
    when the session is closed (e.g. the endless watch-streams).
    """

    session: aiohttp.ClientSession
    responses: List[aiohttp.ClientResponse]

    def __init__(
            self,
            session: aiohttp.ClientSession,
            *,
            chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        self.session = session
        self.chunk_size = chunk_size
        self.responses = []

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'

    async def send(self, request: messages.Request) -> messages.Response:
        kwargs: Dict[str, Any] = {}
        if request.timeout is not None:
            kwargs['timeout'] = request.timeout
        if request.payload is not None:
            kwargs['json'] = request.payload
        if request.data is not None:
            kwargs['data'] = request.data

        response = await self.session.request(
            method=request.method,
            url=request.url,
            headers=request.headers,
            **kwargs,
        )
        self.add_response(response)
        return messages.Response(
            status=response.status,
            request=request,
            headers=response.headers,
            stream=response.content.iter_chunked(self.chunk_size),
            release=response.close,
        )

    def add_response(self, response: aiohttp.ClientResponse) -> None:
        # There's no point keeping references to already closed responses.
        self.responses[:] = [_response for _response in self.responses if not _response.closed]
        if not response.closed:
            self.responses.append(response)

    async def close(self) -> None:
        # Close all responses that are still open and are using this session.
        for response in self.responses:
            if not response.closed:
                response.close()
        self.responses.clear()
        await self.session.close()
