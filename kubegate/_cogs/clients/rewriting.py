"""
Rewriting the cluster-agnostic requests into the gateway-addressed requests.

A request to the logical API of a cluster, such as::

    GET https://hub:6443/api/v1/namespaces/default?limit=1

is rewritten for the cluster ``west-1`` into a request to the gateway::

    GET https://hub:6443/apis/cluster.core.oam.dev/v1alpha1/clustergateways/west-1/proxy/api/v1/namespaces/default?limit=1

Only the scheme, the authority, and the path are changed. Everything else
(the method, the query, the headers, the body, the timeouts) is kept as is.

The rewriting is pure: the same inputs always give the same outputs,
and nothing is read or written anywhere in the process.
"""
import dataclasses
import urllib.parse
from typing import Optional

from kubegate._cogs.clients import errors
from kubegate._cogs.structs import messages, routing


def validate_cluster(name: str) -> routing.ClusterName:
    if not routing.is_valid_cluster(name):
        raise errors.InvalidClusterIdentifier(name)
    return routing.ClusterName(name)


def rewrite(
        request: messages.Request,
        cluster: Optional[str],
        *,
        gateway: routing.Gateway,
) -> messages.Request:
    """
    Address the request to the cluster via the gateway, or leave it as is.

    The routed request has no cluster name on it anymore: it is already
    addressed physically, and must not be routed again by other transports.
    """
    if gateway.is_passthrough(cluster):
        return request

    name = validate_cluster(cluster or '')

    try:
        parsed = urllib.parse.urlsplit(request.url)
        _ = parsed.port  # the port is parsed lazily, and can fail only here
    except (ValueError, TypeError, AttributeError) as e:
        raise errors.MalformedRequest(request.url, str(e)) from e
    if not parsed.scheme or not parsed.netloc:
        raise errors.MalformedRequest(request.url, "no scheme or host in the URL")

    scheme, netloc = parsed.scheme, parsed.netloc
    if gateway.endpoint is not None:
        endpoint = urllib.parse.urlsplit(gateway.endpoint)
        scheme, netloc = endpoint.scheme, endpoint.netloc

    path = gateway.proxy_path(name, parsed.path)
    url = urllib.parse.urlunsplit((scheme, netloc, path, parsed.query, parsed.fragment))
    return dataclasses.replace(request, url=url, cluster=None)
