"""
All configuration flags, options, settings to fine-tune the clients.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

The settings are mutable while the application is being configured. However,
the transports take a snapshot of what they need at construction, so changing
the settings later does not affect the already constructed transports.
"""
import dataclasses
from typing import Iterable, Optional, Union


@dataclasses.dataclass
class RoutingSettings:

    gateway: Optional[str] = None
    """
    The physical endpoint of the cluster gateway, e.g. ``https://hub:6443``.

    All routed requests are sent to this endpoint's scheme & authority
    (and under its base path, if any) regardless of the target cluster.
    If ``None``, the requests keep their own server: i.e. the API server
    the client is configured for is the hub with the gateway in it.
    """

    group: str = 'cluster.core.oam.dev'
    """ The API group of the gateway's aggregated API. """

    version: str = 'v1alpha1'
    """ The API version of the gateway's aggregated API. """

    resource: str = 'clustergateways'
    """ The plural name of the gateway's cluster resource. """

    subresource: str = 'proxy'
    """ The subresource of a cluster which proxies the requests into it. """

    local_name: Optional[str] = 'local'
    """
    A reserved cluster name that addresses the hub itself (no routing).
    Set to ``None`` to route all non-empty cluster names via the gateway.
    """


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: Optional[float] = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the regular API calls (in seconds), unless overridden
    for specific calls (e.g. watch-streams have their own timeouts).
    """

    connect_timeout: Optional[float] = None
    """
    A timeout for the TCP connections to the API server or the gateway.
    """

    error_backoffs: Union[None, float, Iterable[float]] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoffs (in seconds) between retries of the failed API calls.

    Only the connection errors, timeouts, and HTTP 5xx are retried.
    The routing errors and the HTTP 4xx are escalated immediately.
    A single number means one retry; ``None`` means no retries.
    The transports never retry by themselves: it is the client's duty.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: Optional[float] = None
    """
    The maximum duration of one streaming request, as requested from the server.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: Optional[float] = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: Optional[float] = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """


@dataclasses.dataclass
class CachingSettings:

    sync_timeout: Optional[float] = None
    """
    How long to wait for the informers' initial listing (in seconds)
    when no explicit timeout is passed. ``None`` means waiting forever.
    """


@dataclasses.dataclass
class GatewaySettings:
    routing: RoutingSettings = dataclasses.field(default_factory=RoutingSettings)
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    caching: CachingSettings = dataclasses.field(default_factory=CachingSettings)
