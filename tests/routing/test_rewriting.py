import aiohttp
import pytest

from kubegate._cogs.clients.errors import InvalidClusterIdentifier, MalformedRequest, RoutingError
from kubegate._cogs.clients.rewriting import rewrite, validate_cluster
from kubegate._cogs.configs.configuration import GatewaySettings
from kubegate._cogs.structs.messages import Request
from kubegate._cogs.structs.routing import Gateway

PREFIX = '/apis/cluster.core.oam.dev/v1alpha1/clustergateways/'


@pytest.fixture()
def gateway():
    return Gateway()


@pytest.mark.parametrize('cluster', [None, '', 'local'])
def test_passthrough_returns_the_same_request(make_request, gateway, cluster):
    request = make_request()
    rewritten = rewrite(request, cluster, gateway=gateway)
    assert rewritten is request


def test_local_name_can_be_disabled(make_request):
    gateway = Gateway(local_name=None)
    rewritten = rewrite(make_request(), 'local', gateway=gateway)
    assert rewritten.path == f'{PREFIX}local/proxy/api/v1/namespaces/default'


def test_path_is_prefixed_with_the_cluster(make_request, gateway):
    rewritten = rewrite(make_request(), 'prod', gateway=gateway)
    assert rewritten.path == f'{PREFIX}prod/proxy/api/v1/namespaces/default'
    assert rewritten.path.startswith(PREFIX + 'prod/')


def test_authority_is_kept_without_an_endpoint(make_request, gateway, hostname):
    rewritten = rewrite(make_request(), 'prod', gateway=gateway)
    assert rewritten.url.startswith(f'https://{hostname}/apis/')


def test_authority_is_replaced_with_the_endpoint(make_request):
    gateway = Gateway(endpoint='http://gateway.local:8443')
    rewritten = rewrite(make_request(), 'prod', gateway=gateway)
    assert rewritten.url == f'http://gateway.local:8443{PREFIX}prod/proxy/api/v1/namespaces/default'


def test_base_path_of_the_endpoint_is_kept(make_request):
    gateway = Gateway(endpoint='https://hub.example.com/k8s/')
    rewritten = rewrite(make_request(), 'prod', gateway=gateway)
    assert rewritten.url == f'https://hub.example.com/k8s{PREFIX}prod/proxy/api/v1/namespaces/default'


def test_prefix_parts_are_configurable(make_request):
    settings = GatewaySettings()
    settings.routing.group = 'gateway.example.com'
    settings.routing.version = 'v1'
    settings.routing.resource = 'clusters'
    settings.routing.subresource = 'passthrough'
    gateway = Gateway.from_settings(settings)
    rewritten = rewrite(make_request('/api/v1/pods'), 'prod', gateway=gateway)
    assert gateway.prefix == '/apis/gateway.example.com/v1/clusters/'
    assert rewritten.path == '/apis/gateway.example.com/v1/clusters/prod/passthrough/api/v1/pods'


def test_everything_else_is_preserved(make_request, gateway):
    timeout = aiohttp.ClientTimeout(total=12)
    request = make_request(
        '/api/v1/pods?watch=true&resourceVersion=123#frag',
        method='PATCH',
        headers={'X-Custom': 'value'},
        payload={'spec': {}},
        data=None,
        timeout=timeout,
    )
    rewritten = rewrite(request, 'prod', gateway=gateway)
    assert rewritten.method == 'PATCH'
    assert rewritten.url.endswith('/proxy/api/v1/pods?watch=true&resourceVersion=123#frag')
    assert rewritten.headers == {'X-Custom': 'value'}
    assert rewritten.payload == {'spec': {}}
    assert rewritten.timeout is timeout


def test_routed_request_has_no_cluster(make_request, gateway):
    rewritten = rewrite(make_request(cluster='prod'), 'prod', gateway=gateway)
    assert rewritten.cluster is None


def test_original_request_is_not_modified(make_request, gateway):
    request = make_request()
    url = request.url
    rewrite(request, 'prod', gateway=gateway)
    assert request.url == url


def test_rewriting_is_deterministic(make_request, gateway):
    request = make_request('/api/v1/namespaces/default/pods?limit=5')
    rewritten1 = rewrite(request, 'prod', gateway=gateway)
    rewritten2 = rewrite(request, 'prod', gateway=gateway)
    assert rewritten1 == rewritten2
    assert rewritten1.url == rewritten2.url


@pytest.mark.parametrize('cluster', [
    'a/b', '/prod', 'prod/', 'west 1', ' prod', 'prod\n', '\t',
    'pr?od', 'pr#od', 'pr%2Fod', '.', '..', 'клaстер',
])
def test_unsafe_names_are_rejected(make_request, gateway, cluster):
    with pytest.raises(InvalidClusterIdentifier) as err:
        rewrite(make_request(), cluster, gateway=gateway)
    assert err.value.cluster == cluster
    assert isinstance(err.value, RoutingError)
    assert isinstance(err.value, ValueError)


@pytest.mark.parametrize('cluster', ['prod', 'west-1', 'a.b.c', 'under_score', 'tilde~', 'X'])
def test_safe_names_are_accepted(cluster):
    assert validate_cluster(cluster) == cluster


@pytest.mark.parametrize('url', [
    '/api/v1/pods',  # no scheme & host
    'api/v1/pods',
    'https:///api/v1/pods',  # no host
    'https://hub.example.com:badport/api',
])
def test_malformed_urls_are_rejected(gateway, url):
    request = Request(method='GET', url=url)
    with pytest.raises(MalformedRequest) as err:
        rewrite(request, 'prod', gateway=gateway)
    assert err.value.url == url


def test_invalid_names_fail_before_url_parsing(gateway):
    request = Request(method='GET', url='/relative')
    with pytest.raises(InvalidClusterIdentifier):
        rewrite(request, 'a/b', gateway=gateway)


def test_endpoint_must_be_absolute():
    with pytest.raises(ValueError):
        Gateway(endpoint='/relative/path')
