"""
Multi-cluster transports: routing the requests via the cluster gateway.

There are two modes of routing, for two distinct usage patterns:

* The basic mode (:class:`ClusterGatewayTransport`) routes every request
  to the cluster carried on that request. One client can juggle many clusters,
  switching between them per call via :func:`kubegate.cluster`.

* The enhanced mode (:class:`EnhancedClusterGateway`) is bound to exactly one
  cluster at construction, and ignores the cluster carried on the requests.
  It is suited for the long-living machinery, such as the informers,
  where the whole stack of clients & caches serves one cluster only.
  It also allows extra headers, header injectors, and response filters.

Both are wrappers around other transports (usually, the network transport)::

    context.wrap(kubegate.new_cluster_gateway_transport)
    context.wrap(kubegate.EnhancedClusterGateway('west-1').new_transport)

Neither mode retries the requests or interprets the responses' statuses.
All errors of the wrapped transports are escalated as is.
"""
import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence, Union

from kubegate._cogs.clients import errors, rewriting, transports
from kubegate._cogs.configs import configuration
from kubegate._cogs.structs import messages, routing

logger = logging.getLogger(__name__)

# The extension points of the enhanced transports. Can be sync or async.
HeaderInjector = Callable[[messages.Request],
                          Union[Mapping[str, str], Awaitable[Mapping[str, str]]]]
ResponseFilter = Callable[[messages.Response],
                          Union[messages.Response, Awaitable[messages.Response]]]


class ClusterGatewayTransport(transports.WrappingTransport):
    """
    Route every request to the cluster carried on that request.

    The requests with no cluster (or with the local one) are passed through
    unchanged. The invalid cluster names fail before anything is sent.
    """

    gateway: routing.Gateway

    def __init__(
            self,
            delegate: transports.Transport,
            *,
            settings: Optional[configuration.GatewaySettings] = None,
            gateway: Optional[routing.Gateway] = None,
    ) -> None:
        super().__init__(delegate)
        if gateway is None:
            gateway = routing.Gateway.from_settings(settings or configuration.GatewaySettings())
        self.gateway = gateway

    async def send(self, request: messages.Request) -> messages.Response:
        routed = rewriting.rewrite(request, request.cluster, gateway=self.gateway)
        return await self.delegate.send(routed)


def new_cluster_gateway_transport(delegate: transports.Transport) -> transports.Transport:
    """ Wrap a transport into the basic routing with the default settings. """
    return ClusterGatewayTransport(delegate)


@dataclasses.dataclass(frozen=True)
class ClusterTarget:
    """
    The per-cluster configuration of the enhanced transports.

    The endpoint, if set, overrides the gateway's endpoint for this cluster.
    The headers are added to every request to this cluster (e.g. credential
    hints, such as ``Impersonate-User``, if the gateway supports them).
    """
    name: routing.ClusterName
    endpoint: Optional[str] = None
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)


class EnhancedClusterGateway:
    """
    A factory of transports bound to one specific cluster.

    The factory is configured once and then produces as many transports
    as needed (e.g. one per client), all routing to the same cluster.
    The configuration is immutable after construction.
    """

    targets: Mapping[routing.ClusterName, ClusterTarget]
    header_injectors: Sequence[HeaderInjector]
    response_filters: Sequence[ResponseFilter]

    def __init__(
            self,
            cluster: str,
            *,
            settings: Optional[configuration.GatewaySettings] = None,
            endpoint: Optional[str] = None,
            headers: Optional[Mapping[str, str]] = None,
            header_injectors: Iterable[HeaderInjector] = (),
            response_filters: Iterable[ResponseFilter] = (),
    ) -> None:
        super().__init__()
        settings = settings if settings is not None else configuration.GatewaySettings()
        gateway = routing.Gateway.from_settings(settings, endpoint=endpoint)
        # The binding is never absent; only the local cluster is bound without routing.
        name = routing.ClusterName(cluster)
        if not cluster or cluster != gateway.local_name:
            name = rewriting.validate_cluster(cluster or '')

        # Only one cluster per instance. Multi-target routing is not supported (yet?).
        target = ClusterTarget(name=name, endpoint=endpoint, headers=dict(headers or {}))
        self.targets = {name: target}
        self.gateway = gateway
        self.header_injectors = tuple(header_injectors)
        self.response_filters = tuple(response_filters)
        logger.debug(f"Enhanced cluster gateway is bound to {cluster!r}.")

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.cluster!r})'

    @property
    def target(self) -> ClusterTarget:
        target, = self.targets.values()
        return target

    @property
    def cluster(self) -> routing.ClusterName:
        return self.target.name

    def new_transport(self, delegate: transports.Transport) -> transports.Transport:
        return EnhancedClusterGatewayTransport(delegate, factory=self)


class EnhancedClusterGatewayTransport(transports.WrappingTransport):
    """
    Route every request to the bound cluster, with extensions around it.

    The sequence for every request is:

    * add the target's static headers;
    * call the header injectors in order, merging their headers;
    * replace the cluster of the request with the bound one;
    * rewrite and send it as the basic transport does;
    * call the response filters in order, each getting the previous result.

    A failing extension stops the sequence and is raised as `ExtensionFailure`.
    If a response filter fails, the response is closed, since nobody else can.
    """

    def __init__(
            self,
            delegate: transports.Transport,
            *,
            factory: EnhancedClusterGateway,
    ) -> None:
        super().__init__(delegate)
        self.factory = factory
        self.router = ClusterGatewayTransport(delegate, gateway=factory.gateway)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.delegate!r}, cluster={self.factory.cluster!r})'

    async def send(self, request: messages.Request) -> messages.Response:
        target = self.factory.target
        if target.headers:
            request = request.with_headers(target.headers)

        for injector in self.factory.header_injectors:
            try:
                headers = await _maybe_await(injector(request))
                request = request.with_headers(headers)
            except Exception as e:
                raise errors.ExtensionFailure(injector, e) from e

        response = await self.router.send(request.with_cluster(target.name))

        for response_filter in self.factory.response_filters:
            try:
                filtered = await _maybe_await(response_filter(response))
                if not isinstance(filtered, messages.Response):
                    raise TypeError(f"A response was expected, got {filtered!r}.")
            except Exception as e:
                response.close()
                raise errors.ExtensionFailure(response_filter, e) from e
            response = filtered
        return response


async def _maybe_await(result: Any) -> Any:
    return await result if inspect.isawaitable(result) else result
