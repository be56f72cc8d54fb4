"""
The main kubegate module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from kubegate._cogs.clients import (
    api,  # as a separate name on the public namespace
    errors,  # as a separate name on the public namespace
)
from kubegate._cogs.clients.auth import (
    APIContext,
)
from kubegate._cogs.clients.errors import (
    RoutingError,
    InvalidClusterIdentifier,
    MalformedRequest,
    ExtensionFailure,
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
)
from kubegate._cogs.clients.gateways import (
    HeaderInjector,
    ResponseFilter,
    ClusterTarget,
    ClusterGatewayTransport,
    EnhancedClusterGateway,
    EnhancedClusterGatewayTransport,
    new_cluster_gateway_transport,
)
from kubegate._cogs.clients.objects import (
    ObjectClient,
)
from kubegate._cogs.clients.rewriting import (
    rewrite,
)
from kubegate._cogs.clients.transports import (
    Transport,
    TransportWrapper,
    WrappingTransport,
    AiohttpTransport,
)
from kubegate._cogs.configs.configuration import (
    GatewaySettings,
)
from kubegate._cogs.helpers.typedefs import (
    Logger,
)
from kubegate._cogs.helpers.versions import (
    version as __version__,
)
from kubegate._cogs.structs.bodies import (
    RawBody,
    RawEvent,
    RawEventType,
    Labels,
    Annotations,
)
from kubegate._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
)
from kubegate._cogs.structs.messages import (
    Request,
    Response,
)
from kubegate._cogs.structs.references import (
    Resource,
    NAMESPACES,
    PODS,
)
from kubegate._cogs.structs.routing import (
    ClusterName,
    Gateway,
    cluster,
    current_cluster,
)
from kubegate._core.actions.loggers import (
    ClusterLogger,
    LogFormat,
    configure as configure_logging,
)
from kubegate._core.engines.informers import (
    EventHandler,
    Informer,
    InformerFactory,
    SyncState,
)
from kubegate._core.intents.piggybacking import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)

__all__ = [
    'api',
    'errors',
    'APIContext',
    'RoutingError',
    'InvalidClusterIdentifier',
    'MalformedRequest',
    'ExtensionFailure',
    'APIError',
    'APIClientError',
    'APIServerError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'HeaderInjector',
    'ResponseFilter',
    'ClusterTarget',
    'ClusterGatewayTransport',
    'EnhancedClusterGateway',
    'EnhancedClusterGatewayTransport',
    'new_cluster_gateway_transport',
    'ObjectClient',
    'rewrite',
    'Transport',
    'TransportWrapper',
    'WrappingTransport',
    'AiohttpTransport',
    'GatewaySettings',
    'Logger',
    'RawBody',
    'RawEvent',
    'RawEventType',
    'Labels',
    'Annotations',
    'LoginError',
    'ConnectionInfo',
    'Request',
    'Response',
    'Resource',
    'NAMESPACES',
    'PODS',
    'ClusterName',
    'Gateway',
    'cluster',
    'current_cluster',
    'ClusterLogger',
    'LogFormat',
    'configure_logging',
    'EventHandler',
    'Informer',
    'InformerFactory',
    'SyncState',
    'login',
    'login_with_kubeconfig',
    'login_with_service_account',
]
