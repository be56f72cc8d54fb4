"""
The high-level client: operations on the objects by their resource kinds.

Unlike the low-level :mod:`api` functions, which take raw URLs, the object
client builds the URLs from the resource references and the object names.
It is built on an API context, same as the low-level client, and therefore
goes through the same transports, including the multi-cluster routing::

    client = ObjectClient(context)
    with kubegate.cluster('west-1'):
        ns = await client.get(kubegate.NAMESPACES, 'default')
"""
import logging
from typing import Collection, Optional

from kubegate._cogs.clients import api, auth, fetching
from kubegate._cogs.configs import configuration
from kubegate._cogs.helpers import typedefs
from kubegate._cogs.structs import bodies, references


class ObjectClient:

    def __init__(
            self,
            context: auth.APIContext,
            *,
            settings: Optional[configuration.GatewaySettings] = None,
            logger: Optional[typedefs.Logger] = None,
    ) -> None:
        super().__init__()
        self.context = context
        self.settings = settings if settings is not None else configuration.GatewaySettings()
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}: {self.context!r}>'

    def _namespace(
            self,
            resource: references.Resource,
            namespace: Optional[str],
    ) -> references.Namespace:
        if not resource.namespaced:
            return None
        namespace = namespace if namespace is not None else self.context.default_namespace
        return references.NamespaceName(namespace) if namespace is not None else None

    async def get(
            self,
            resource: references.Resource,
            name: str,
            *,
            namespace: Optional[str] = None,
    ) -> bodies.RawBody:
        return await fetching.read_obj(
            resource=resource,
            namespace=self._namespace(resource, namespace),
            name=name,
            context=self.context,
            settings=self.settings,
            logger=self.logger,
        )

    async def list(
            self,
            resource: references.Resource,
            *,
            namespace: Optional[str] = None,
    ) -> Collection[bodies.RawBody]:
        items, _ = await fetching.list_objs(
            resource=resource,
            namespace=references.NamespaceName(namespace) if namespace is not None else None,
            context=self.context,
            settings=self.settings,
            logger=self.logger,
        )
        return items

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
            *,
            namespace: Optional[str] = None,
    ) -> bodies.RawBody:
        namespace = namespace if namespace is not None else body.get('metadata', {}).get('namespace')
        return await api.post(
            url=resource.get_url(namespace=self._namespace(resource, namespace)),
            payload=body,
            context=self.context,
            settings=self.settings,
            logger=self.logger,
        )

    async def patch(
            self,
            resource: references.Resource,
            name: str,
            patch: object,
            *,
            namespace: Optional[str] = None,
    ) -> bodies.RawBody:
        return await api.patch(
            url=resource.get_url(namespace=self._namespace(resource, namespace), name=name),
            headers={'Content-Type': 'application/merge-patch+json'},
            payload=patch,
            context=self.context,
            settings=self.settings,
            logger=self.logger,
        )

    async def delete(
            self,
            resource: references.Resource,
            name: str,
            *,
            namespace: Optional[str] = None,
    ) -> Optional[bodies.RawBody]:
        return await api.delete(
            url=resource.get_url(namespace=self._namespace(resource, namespace), name=name),
            context=self.context,
            settings=self.settings,
            logger=self.logger,
        )
