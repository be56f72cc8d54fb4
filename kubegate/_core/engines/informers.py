"""
Informers: watch-based local caches of the remote objects.

An informer lists the objects of one resource kind, then watches for changes,
keeps the latest state of every object in memory, and notifies the registered
event handlers about the additions, updates, and deletions::

    informer = Informer(context=context, resource=kubegate.PODS)
    informer.add_event_handler(on_add=print)
    async with informer:
        await informer.wait_for_sync(timeout=60)
        ...

The informer knows nothing about the clusters: it uses the context's
transports as they are. With the enhanced transport bound to a cluster,
all the listing & watching requests go to that cluster. With the basic one,
the cluster is taken from the routing context where the informer is started,
or from the explicitly passed ``cluster=`` (which is then set for its task).

Unlike a busy-polling of :meth:`Informer.has_synced`, the waiting for the sync
in :meth:`Informer.wait_for_sync` is notification-based and has a timeout.
"""
import asyncio
import contextvars
import dataclasses
import enum
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from kubegate._cogs.aiokits import aiotasks, aiotoggles
from kubegate._cogs.clients import auth, watching
from kubegate._cogs.configs import configuration
from kubegate._cogs.structs import bodies, references, routing
from kubegate._core.actions import loggers

AddCallback = Callable[[bodies.RawBody], Union[None, Awaitable[None]]]
UpdateCallback = Callable[[bodies.RawBody, bodies.RawBody], Union[None, Awaitable[None]]]
DeleteCallback = Callable[[bodies.RawBody], Union[None, Awaitable[None]]]


class SyncState(enum.Enum):
    UNSYNCED = 'unsynced'  # not started yet
    SYNCING = 'syncing'  # started, the initial listing is not over yet
    SYNCED = 'synced'  # the initial listing is over, now watching


@dataclasses.dataclass(frozen=True)
class EventHandler:
    """
    A set of callbacks for the object changes, any of which can be omitted.

    The callbacks can be sync or async. Their errors are logged and ignored:
    one failing handler does not affect other handlers or the informer.
    """
    on_add: Optional[AddCallback] = None
    on_update: Optional[UpdateCallback] = None  # (old, new)
    on_delete: Optional[DeleteCallback] = None


class Informer:

    def __init__(
            self,
            *,
            context: auth.APIContext,
            resource: references.Resource,
            namespace: Optional[str] = None,
            cluster: Optional[str] = None,
            settings: Optional[configuration.GatewaySettings] = None,
    ) -> None:
        super().__init__()
        self.context = context
        self.resource = resource
        self.namespace = references.NamespaceName(namespace) if namespace is not None else None
        self.cluster = cluster
        self.settings = settings if settings is not None else configuration.GatewaySettings()
        self.handlers: List[EventHandler] = []
        self.store: Dict[bodies.ObjectKey, bodies.RawBody] = {}
        self.logger = loggers.ClusterLogger(cluster=cluster)

        self._synced = aiotoggles.Toggle(False, name=f'{resource!r} synced')
        self._listed: Set[bodies.ObjectKey] = set()
        self._task: Optional[aiotasks.Task] = None
        self._stopper: Optional[aiotasks.Future] = None

    def __repr__(self) -> str:
        where = f' in {self.namespace!r}' if self.namespace is not None else ''
        return f'<{self.__class__.__name__}: {self.resource!r}{where} ({self.state.value})>'

    async def __aenter__(self) -> "Informer":
        await self.start()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.stop()

    @property
    def state(self) -> SyncState:
        return (SyncState.SYNCED if self._synced.is_on() else
                SyncState.SYNCING if self._task is not None and not self._task.done() else
                SyncState.UNSYNCED)

    def has_synced(self) -> bool:
        """ Check if the initial listing is over (it remains true afterwards). """
        return self._synced.is_on()

    async def wait_for_sync(self, timeout: Optional[float] = None) -> None:
        """
        Wait until the initial listing is over, or fail on a timeout.

        If the informer's task fails before it is synced, its error is raised,
        so that the waiters are not stuck forever on a dead informer.
        """
        timeout = timeout if timeout is not None else self.settings.caching.sync_timeout
        if self._task is None:
            raise RuntimeError(f"{self!r} is not started, so it cannot sync.")

        waiter = asyncio.create_task(self._synced.wait_for(True), name=f'sync-waiter of {self!r}')
        try:
            done, _ = await asyncio.wait({waiter, self._task}, timeout=timeout,
                                         return_when=asyncio.FIRST_COMPLETED)
        finally:
            await aiotasks.stop({waiter}, title='sync-waiter', quiet=True)
        if self._synced.is_on():
            return
        if self._task in done:
            if not self._task.cancelled():
                self._task.result()  # re-raise the informer's own error, if any.
            raise RuntimeError(f"{self!r} has exited before being synced.")
        raise asyncio.TimeoutError(f"{self!r} has not synced in {timeout} seconds.")

    def add_event_handler(
            self,
            handler: Optional[EventHandler] = None,
            *,
            on_add: Optional[AddCallback] = None,
            on_update: Optional[UpdateCallback] = None,
            on_delete: Optional[DeleteCallback] = None,
    ) -> EventHandler:
        """
        Register the callbacks for all the future changes.

        The handlers added before the informer is started receive all objects
        of the initial listing as additions. The handlers added later receive
        only the changes that happen after their registration.
        """
        if handler is None:
            handler = EventHandler(on_add=on_add, on_update=on_update, on_delete=on_delete)
        elif on_add is not None or on_update is not None or on_delete is not None:
            raise TypeError("Either a handler or the individual callbacks can be used, not both.")
        self.handlers.append(handler)
        return handler

    def list(self) -> List[bodies.RawBody]:
        return list(self.store.values())

    def get(self, name: str, *, namespace: Optional[str] = None) -> Optional[bodies.RawBody]:
        return self.store.get((namespace, name))

    async def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"{self!r} is already started.")

        # The task inherits the current context (incl. the routing); or the explicit cluster.
        task_context = contextvars.copy_context()
        if self.cluster is not None:
            task_context.run(routing.cluster_var.set, self.cluster)

        self._stopper = asyncio.get_running_loop().create_future()
        self._task = task_context.run(
            aiotasks.create_guarded_task,
            coro=self.run(),
            name=f'informer for {self.resource!r}',
            finishable=True,
            cancellable=True,
            logger=self.logger,
        )

    async def stop(self) -> None:
        if self._stopper is not None and not self._stopper.done():
            self._stopper.set_result(None)
        if self._task is not None:
            await aiotasks.stop({self._task}, title='informer', quiet=True, logger=self.logger)

    async def run(self) -> None:
        stream = watching.infinite_watch(
            context=self.context,
            settings=self.settings,
            resource=self.resource,
            namespace=self.namespace,
            stopper=self._stopper,
            logger=self.logger,
        )
        async for raw_event in stream:
            if isinstance(raw_event, watching.Bookmark):
                await self._finish_listing()
            elif raw_event['type'] is None:
                await self._upsert(raw_event['object'], listed=True)
            elif raw_event['type'] == 'DELETED':
                await self._remove(raw_event['object'])
            else:
                await self._upsert(raw_event['object'])

    async def _upsert(self, body: bodies.RawBody, *, listed: bool = False) -> None:
        key = bodies.get_key(body)
        old = self.store.get(key)
        self.store[key] = body
        if listed:
            self._listed.add(key)

        if old is None:
            await self._notify('on_add', body)
        elif bodies.get_resource_version(old) != bodies.get_resource_version(body):
            await self._notify('on_update', old, body)

    async def _remove(self, body: bodies.RawBody) -> None:
        key = bodies.get_key(body)
        self.store.pop(key, None)
        await self._notify('on_delete', body)

    async def _finish_listing(self) -> None:
        # Re-listings after the watch-stream restarts can miss the objects deleted meanwhile.
        vanished = [key for key in self.store if key not in self._listed]
        for key in vanished:
            await self._notify('on_delete', self.store.pop(key))
        self._listed.clear()

        if not self._synced.is_on():
            self.logger.debug(f"The cache of {self.resource!r} is synced: {len(self.store)} objects.")
            await self._synced.turn_to(True)

    async def _notify(self, attr: str, *args: bodies.RawBody) -> None:
        for handler in list(self.handlers):
            callback = getattr(handler, attr)
            if callback is None:
                continue
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.exception(f"Event handler {callback!r} has failed: {e!r}")


class InformerFactory:
    """
    Shared informers: one informer per resource & namespace, started together.

    All the informers use the same API context (and therefore the same
    transports, connection pool, and the target cluster, if bound).
    """

    def __init__(
            self,
            context: auth.APIContext,
            *,
            namespace: Optional[str] = None,
            cluster: Optional[str] = None,
            settings: Optional[configuration.GatewaySettings] = None,
    ) -> None:
        super().__init__()
        self.context = context
        self.namespace = namespace
        self.cluster = cluster
        self.settings = settings if settings is not None else configuration.GatewaySettings()
        self.informers: Dict[Tuple[references.Resource, Optional[str]], Informer] = {}

    async def __aenter__(self) -> "InformerFactory":
        await self.start()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.stop()

    def informer(
            self,
            resource: references.Resource,
            *,
            namespace: Optional[str] = None,
    ) -> Informer:
        namespace = namespace if namespace is not None else self.namespace
        namespace = namespace if resource.namespaced else None
        key = (resource, namespace)
        if key not in self.informers:
            self.informers[key] = Informer(
                context=self.context,
                resource=resource,
                namespace=namespace,
                cluster=self.cluster,
                settings=self.settings,
            )
        return self.informers[key]

    async def start(self) -> None:
        """ Start all the informers that are not started yet. """
        for informer in list(self.informers.values()):
            if informer.state is SyncState.UNSYNCED:
                await informer.start()

    def has_synced(self) -> bool:
        return all(informer.has_synced() for informer in self.informers.values())

    async def wait_for_cache_sync(self, timeout: Optional[float] = None) -> None:
        timeout = timeout if timeout is not None else self.settings.caching.sync_timeout
        coros = [informer.wait_for_sync() for informer in self.informers.values()]
        await asyncio.wait_for(asyncio.gather(*coros), timeout=timeout)

    async def stop(self) -> None:
        for informer in self.informers.values():
            await informer.stop()
