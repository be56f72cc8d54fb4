from typing import Collection, List, Optional, Tuple

from kubegate._cogs.clients import api, auth
from kubegate._cogs.configs import configuration
from kubegate._cogs.helpers import typedefs
from kubegate._cogs.structs import bodies, references


async def read_obj(
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    return await api.get(
        url=resource.get_url(namespace=namespace, name=name),
        context=context,
        settings=settings,
        logger=logger,
    )


async def list_objs(
        *,
        context: auth.APIContext,
        settings: configuration.GatewaySettings,
        resource: references.Resource,
        namespace: references.Namespace,
        logger: typedefs.Logger,
) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
    """
    List the objects of specific resource type.

    The cluster-scoped call is used in two cases:

    * The resource itself is cluster-scoped, and namespacing makes not sense.
    * The client serves all namespaces for the namespaced resource.

    Otherwise, the namespace-scoped call is used.

    The list's items have no ``kind`` & ``apiVersion`` in K8s API.
    They are restored from the list's own ones, as if fetched individually.
    """
    rsp = await api.get(
        url=resource.get_url(namespace=namespace),
        context=context,
        settings=settings,
        logger=logger,
    )

    items: List[bodies.RawBody] = []
    resource_version = rsp.get('metadata', {}).get('resourceVersion', None)
    for item in rsp.get('items', []):
        if 'kind' in rsp:
            item.setdefault('kind', rsp['kind'][:-4] if rsp['kind'][-4:] == 'List' else rsp['kind'])
        if 'apiVersion' in rsp:
            item.setdefault('apiVersion', rsp['apiVersion'])
        items.append(item)

    return items, resource_version
