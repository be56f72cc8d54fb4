"""
Listing & watching the objects of one resource kind.

A watch is a sequence of requests: a regular listing of the objects, then one
or more long-running streaming requests from the listing's resource version.
All of them go through the context's transports and are routed as any other
request: to the cluster of the current call chain, or to the bound cluster.

The consumers see one endless stream, which survives the disconnects::

    {'type': None, 'object': {...}}      # for every listed object
    Bookmark.LISTED                      # the listing is over
    {'type': 'ADDED', 'object': {...}}   # the changes as they happen
    ...
    {'type': None, 'object': {...}}      # a re-listing once the version expires
    Bookmark.LISTED
    ...
"""
import asyncio
import contextlib
import enum
import logging
from typing import AsyncIterator, Dict, Optional, Union, cast

import aiohttp

from kubegate._cogs.aiokits import aiotasks
from kubegate._cogs.clients import api, auth, errors, fetching
from kubegate._cogs.configs import configuration
from kubegate._cogs.helpers import typedefs
from kubegate._cogs.structs import bodies, references

logger = logging.getLogger(__name__)

HTTP_GONE = 410
HTTP_TOO_MANY_REQUESTS = 429
DEFAULT_THROTTLING_DELAY = 1.0

# The stream breaks after which the stream is re-established without errors.
STREAM_BREAKS = (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError)


class WatchingError(Exception):
    """ An error event in the watch-stream, other than the expired resource version. """


class Bookmark(enum.Enum):
    """ Special marks sent in the stream among raw events. """
    LISTED = enum.auto()  # the listing is over, now streaming.


WatchEvent = Union[Bookmark, bodies.RawEvent]


async def infinite_watch(
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        resource: references.Resource,
        namespace: references.Namespace,
        stopper: Optional[aiotasks.Future] = None,
        logger: typedefs.Logger = logger,
) -> AsyncIterator[WatchEvent]:
    """
    Stream the events of a resource until stopped, re-listing when needed.

    Only the unrecoverable errors escape, such as HTTP 403 or 404, the error
    events in the stream, or the routing errors. The throttling (HTTP 429)
    is waited out for as long as the server suggests.
    """
    where = describe(resource, namespace)
    logger.debug(f"Starting the watch-stream for {where}.")
    try:
        while stopper is None or not stopper.done():
            async with stopping_block(stopper) as cycle_stopper:
                try:
                    async for event in continuous_watch(
                        context=context,
                        settings=settings,
                        resource=resource,
                        namespace=namespace,
                        stopper=cycle_stopper,
                        logger=logger,
                    ):
                        yield event
                except errors.APIClientError as e:
                    if e.code != HTTP_TOO_MANY_REQUESTS:
                        raise
                    delay = get_throttling_delay(e)
                    logger.warning(f"The watch-stream for {where} is throttled; "
                                   f"retrying in {delay}s: {e}")
                    await asyncio.sleep(delay)
            await asyncio.sleep(settings.watching.reconnect_backoff)
    finally:
        logger.debug(f"Stopping the watch-stream for {where}.")


@contextlib.asynccontextmanager
async def stopping_block(
        stopper: Optional[aiotasks.Future],
) -> AsyncIterator[aiotasks.Future]:
    """
    A stopper of one watch cycle, done when the overall stopper is done.

    The streaming requests close their responses when the cycle's stopper
    is done (or cancelled on exit), so the closing callbacks do not pile up
    on the overall stopper across the cycles.
    """
    cycle_stopper: aiotasks.Future = asyncio.get_running_loop().create_future()

    def propagate(_: aiotasks.Future) -> None:
        if not cycle_stopper.done():
            cycle_stopper.set_result(None)

    if stopper is not None:
        stopper.add_done_callback(propagate)
    try:
        yield cycle_stopper
    finally:
        if stopper is not None:
            stopper.remove_done_callback(propagate)
        cycle_stopper.cancel()


async def continuous_watch(
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        resource: references.Resource,
        namespace: references.Namespace,
        stopper: aiotasks.Future,
        logger: typedefs.Logger = logger,
) -> AsyncIterator[WatchEvent]:
    """
    List the objects once, then watch them from the listed resource version.

    The watching requests are repeated while the server ends them normally
    (e.g. by ``timeoutSeconds``). The cycle is over when the listing breaks,
    or when the resource version has expired: the caller then re-lists.
    """
    try:
        items, resource_version = await fetching.list_objs(
            context=context,
            settings=settings,
            resource=resource,
            namespace=namespace,
            logger=logger,
        )
    except STREAM_BREAKS:
        return

    for item in items:
        yield {'type': None, 'object': item}
    yield Bookmark.LISTED

    while not stopper.done():
        async for raw_input in watch_objs(
            context=context,
            settings=settings,
            resource=resource,
            namespace=namespace,
            since=resource_version,
            stopper=stopper,
            logger=logger,
        ):
            if raw_input['type'] == 'ERROR':
                status = cast(bodies.RawError, raw_input['object'])
                if status.get('code') == HTTP_GONE:
                    logger.debug(f"The resource version {resource_version!r} has expired "
                                 f"for {describe(resource, namespace)}; re-listing.")
                    return
                raise WatchingError(f"Error in the watch-stream: {status}")

            if raw_input['type'] not in ('ADDED', 'MODIFIED', 'DELETED'):
                logger.warning(f"Ignoring an unsupported event type: {raw_input!r}")
                continue

            # Continue from the latest seen version after the disconnects.
            body = cast(bodies.RawBody, raw_input['object'])
            resource_version = bodies.get_resource_version(body) or resource_version
            yield cast(bodies.RawEvent, raw_input)


async def watch_objs(
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        resource: references.Resource,
        namespace: references.Namespace,
        since: Optional[str] = None,
        stopper: aiotasks.Future,
        logger: typedefs.Logger = logger,
) -> AsyncIterator[bodies.RawInput]:
    """
    Watch the objects since a resource version, in one streaming request.

    The stream ends when the server closes it (usually, by its timeout),
    when the connection breaks, or when the stopper closes it client-side.
    """
    params: Dict[str, str] = {'watch': 'true'}
    if since is not None:
        params['resourceVersion'] = since
    if settings.watching.server_timeout is not None:
        params['timeoutSeconds'] = str(int(settings.watching.server_timeout))

    timeout = aiohttp.ClientTimeout(
        total=settings.watching.client_timeout,
        sock_connect=get_connect_timeout(settings),
    )
    with contextlib.suppress(*STREAM_BREAKS):
        async for raw_input in api.stream(
            url=resource.get_url(namespace=namespace, params=params),
            context=context,
            settings=settings,
            stopper=stopper,
            timeout=timeout,
            logger=logger,
        ):
            yield raw_input


def get_connect_timeout(settings: configuration.GatewaySettings) -> Optional[float]:
    if settings.watching.connect_timeout is not None:
        return settings.watching.connect_timeout
    if settings.networking.connect_timeout is not None:
        return settings.networking.connect_timeout
    return settings.networking.request_timeout


def get_throttling_delay(e: errors.APIError) -> float:
    retry_after = e.details.get('retryAfterSeconds') if e.details else None
    return float(retry_after) if retry_after else DEFAULT_THROTTLING_DELAY


def describe(resource: references.Resource, namespace: references.Namespace) -> str:
    return f'{resource} in {namespace!r}' if namespace is not None else f'{resource} cluster-wide'
