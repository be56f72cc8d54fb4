"""
The low-level client: raw requests to the K8s API by URL.

This is the outermost entry point of every request. It is the only place
where the routing context is read: the cluster name of the current call chain
is attached to the request, and the transports route by the request alone.

Retries are done here, not in the transports: the connection errors,
timeouts, and server-side errors (HTTP 5xx) are retried with backoffs.
Routing errors and the client-side errors (HTTP 4xx) are escalated at once.
"""
import asyncio
import collections.abc
import itertools
import json
from typing import Any, AsyncIterator, Mapping, Optional

import aiohttp

from kubegate._cogs.aiokits import aiotasks
from kubegate._cogs.clients import auth, errors
from kubegate._cogs.configs import configuration
from kubegate._cogs.helpers import typedefs
from kubegate._cogs.structs import messages, routing

# Only these failures are retried; the routing errors and HTTP 4xx are final.
RETRYABLE_ERRORS = (aiohttp.ClientConnectionError, errors.APIServerError, asyncio.TimeoutError)


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> messages.Response:
    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')

    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    rq = messages.Request(
        method=method.upper(),
        url=url,
        headers=dict(headers or {}),
        payload=payload,
        timeout=timeout,
        cluster=routing.current_cluster(),
    )

    where = f" in {rq.cluster!r}" if rq.cluster else ""
    what = f"{rq.method} {url}{where}"
    backoffs = settings.networking.error_backoffs
    backoffs = () if backoffs is None else backoffs
    backoffs = backoffs if isinstance(backoffs, collections.abc.Iterable) else [backoffs]
    total = f"/{len(backoffs) + 1}" if isinstance(backoffs, collections.abc.Sized) else ""

    # The last attempt has no backoff after it: its failure is the final one.
    backoff: Optional[float]
    for attempt, backoff in enumerate(itertools.chain(backoffs, [None]), start=1):
        idx = f"#{attempt}{total}"
        if attempt > 1:
            logger.debug(f"Request attempt {idx}: {what}")
        try:
            response = await context.transport.send(rq)
            await errors.check_response(response)  # the successful bodies are not read here
        except RETRYABLE_ERRORS as e:
            if backoff is None:
                logger.error(f"Request attempt {idx} failed; escalating: {what} -> {e!r}")
                raise
            logger.error(f"Request attempt {idx} failed; will retry: {what} -> {e!r}")
            await asyncio.sleep(backoff)
        else:
            if attempt > 1:
                logger.debug(f"Request attempt {idx} succeeded: {what}")
            return response

    raise RuntimeError("The retries have ended with neither a response nor an error.")


async def get(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='get',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await response.json()


async def post(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='post',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await response.json()


async def patch(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='patch',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await response.json()


async def delete(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method='delete',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await response.json()


async def stream(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        stopper: Optional[aiotasks.Future] = None,
        logger: typedefs.Logger,
) -> AsyncIterator[Any]:
    response = await request(
        method='get',
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    response_close_callback = lambda _: response.close()  # to remove the positional arg.
    if stopper is not None:
        stopper.add_done_callback(response_close_callback)
    try:
        async with response:
            async for line in iter_jsonlines(response.iter_chunks()):
                yield json.loads(line.decode('utf-8'))
    except aiohttp.ClientConnectionError:
        if stopper is not None and stopper.done():
            pass
        else:
            raise
    finally:
        if stopper is not None:
            stopper.remove_done_callback(response_close_callback)


async def iter_jsonlines(
        chunks: AsyncIterator[bytes],
) -> AsyncIterator[bytes]:
    """
    Split the streamed chunks into the non-empty lines, as JSON-lines need.

    The chunks are of arbitrary sizes: a line can span many chunks, and a chunk
    can contain many lines. The lines are not limited in length (unlike in
    aiohttp's own ``readline()``): the watched objects can be megabytes long.
    """
    buffer = b''
    async for chunk in chunks:
        buffer += chunk
        *lines, buffer = buffer.split(b'\n')
        for line in lines:
            if line:
                yield line
    if buffer:
        yield buffer
