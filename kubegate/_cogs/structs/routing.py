"""
Routing tags and the gateway's addressing scheme.

The target cluster of a call is carried in a context variable, which is set
by the caller for a block of code and inherited by all tasks spawned in it::

    with kubegate.cluster('west-1'):
        await kubegate.api.get('/api/v1/namespaces/default', ...)

The transports never read the context variable. It is read only once
by the client's outermost entry point (:func:`kubegate.api.request`),
which puts the cluster name onto the request as an explicit field.
From there on, the routing depends on the request alone.

The gateway is addressed via the aggregated API of the hub cluster::

    /apis/cluster.core.oam.dev/v1alpha1/clustergateways/{cluster}/proxy/{path}

All parts of this prefix are configurable via :class:`RoutingSettings`.
"""
import contextlib
import dataclasses
import re
import urllib.parse
from contextvars import ContextVar
from typing import Iterator, NewType, Optional

from kubegate._cogs.configs import configuration

# An opaque name of a downstream cluster, as known to the gateway.
ClusterName = NewType('ClusterName', str)

# The routing tag of the current call chain. `None` means no multi-cluster routing.
cluster_var: ContextVar[Optional[str]] = ContextVar('cluster_var', default=None)

# RFC 3986 unreserved characters: safe as a path segment with no escaping.
_SAFE_SEGMENT = re.compile(r'[A-Za-z0-9._~-]+')


@contextlib.contextmanager
def cluster(name: Optional[str]) -> Iterator[None]:
    """
    Route all requests of the wrapped block to the named cluster.

    ``None`` explicitly disables the routing for the block, even if an outer
    block has set a cluster. The names are not validated here, but only when
    the requests are actually sent (see :func:`kubegate.rewriting.rewrite`).
    """
    token = cluster_var.set(name)
    try:
        yield
    finally:
        cluster_var.reset(token)


def current_cluster() -> Optional[str]:
    """ Get the cluster name of the current call chain, if any. """
    return cluster_var.get()


def is_valid_cluster(name: str) -> bool:
    return bool(_SAFE_SEGMENT.fullmatch(name)) and name not in ('.', '..')


@dataclasses.dataclass(frozen=True)
class Gateway:
    """
    The physical addressing of the cluster gateway.

    If the endpoint is not set, the requests keep their own scheme & authority:
    i.e. the API server the client talks to is the hub with the gateway in it.
    """
    endpoint: Optional[str] = None  # e.g. "https://hub.example.com:6443"
    group: str = 'cluster.core.oam.dev'
    version: str = 'v1alpha1'
    resource: str = 'clustergateways'
    subresource: str = 'proxy'
    local_name: Optional[str] = 'local'

    def __post_init__(self) -> None:
        if self.endpoint is not None:
            parsed = urllib.parse.urlsplit(self.endpoint)
            if not parsed.scheme or not parsed.netloc:
                raise ValueError(f"The gateway endpoint must be an absolute URL: {self.endpoint!r}")

    @classmethod
    def from_settings(
            cls,
            settings: configuration.GatewaySettings,
            *,
            endpoint: Optional[str] = None,
    ) -> "Gateway":
        return cls(
            endpoint=endpoint if endpoint is not None else settings.routing.gateway,
            group=settings.routing.group,
            version=settings.routing.version,
            resource=settings.routing.resource,
            subresource=settings.routing.subresource,
            local_name=settings.routing.local_name,
        )

    @property
    def prefix(self) -> str:
        """ The fixed routing prefix, which is followed by the cluster name. """
        return f'/apis/{self.group}/{self.version}/{self.resource}/'

    def is_passthrough(self, name: Optional[str]) -> bool:
        """ Check if the name means "no routing": absent, empty, or local. """
        return not name or name == self.local_name

    def proxy_path(self, name: str, path: str) -> str:
        """ Build the gateway's path for an original path in a cluster. """
        base = urllib.parse.urlsplit(self.endpoint).path.rstrip('/') if self.endpoint else ''
        return f'{base}{self.prefix}{name}/{self.subresource}/{path.lstrip("/")}'
