import asyncio

import aiohttp
import pytest

from kubegate._cogs.clients.errors import InvalidClusterIdentifier
from kubegate._cogs.clients.watching import WatchingError
from kubegate._cogs.configs.configuration import GatewaySettings
from kubegate._cogs.structs.credentials import LoginError
from kubegate._cogs.structs.messages import Response
from kubegate.cli import fetch_namespace, watch_pods

PREFIX = '/apis/cluster.core.oam.dev/v1alpha1/clustergateways/'


def test_help_in_root(invoke):
    result = invoke(['--help'])
    assert result.exit_code == 0
    assert 'Usage: kubegate [OPTIONS]' in result.output
    assert '  namespace ' in result.output
    assert '  pods ' in result.output


@pytest.mark.parametrize('command', ['namespace', 'pods'])
def test_help_in_subcommands(invoke, login, command):
    result = invoke([command, '--help'])
    assert result.exit_code == 0
    assert f'Usage: kubegate {command} [OPTIONS]' in result.output
    assert '--cluster-name' in result.output
    assert '--kubeconfig' in result.output
    assert '--log-format' in result.output
    assert not login.called


@pytest.mark.parametrize('command', ['namespace', 'pods'])
def test_cluster_name_is_required(invoke, login, command):
    result = invoke([command])
    assert result.exit_code == 2
    assert '--cluster-name' in result.output
    assert not login.called


def test_namespace_command(invoke, login, fetch_namespace):
    result = invoke(['namespace', '--cluster-name', 'west-1', '--kubeconfig', '/some/path'])
    assert result.exit_code == 0, result.output
    assert 'uid-raw' in result.output
    assert 'uid-obj' in result.output
    assert login.call_args[0] == ('/some/path',)
    assert fetch_namespace.call_count == 1
    assert fetch_namespace.call_args[1]['name'] == 'default'
    assert fetch_namespace.call_args[1]['cluster'] == 'west-1'


def test_namespace_command_with_a_name_and_gateway(invoke, login, fetch_namespace):
    result = invoke(['namespace', 'kube-system', '--cluster-name', 'west-1',
                     '--gateway', 'https://gw.example.com'])
    assert result.exit_code == 0, result.output
    assert fetch_namespace.call_args[1]['name'] == 'kube-system'
    assert fetch_namespace.call_args[1]['settings'].routing.gateway == 'https://gw.example.com'


def test_namespace_command_reports_routing_errors(invoke, login, fetch_namespace):
    fetch_namespace.side_effect = InvalidClusterIdentifier('a/b')
    result = invoke(['namespace', '--cluster-name', 'a/b'])
    assert result.exit_code == 1
    assert "not a safe URL path segment" in result.output


def test_login_errors_are_reported(invoke, login, fetch_namespace):
    login.side_effect = LoginError("Cannot authenticate.")
    result = invoke(['namespace', '--cluster-name', 'west-1'])
    assert result.exit_code == 1
    assert "Cannot authenticate." in result.output
    assert not fetch_namespace.called


def test_pods_command(invoke, login, watch_pods):
    result = invoke(['pods', '--cluster-name', 'west-1', '-n', 'ns1', '--timeout', '30'])
    assert result.exit_code == 0, result.output
    assert watch_pods.call_count == 1
    assert watch_pods.call_args[1]['cluster'] == 'west-1'
    assert watch_pods.call_args[1]['namespace'] == 'ns1'
    assert watch_pods.call_args[1]['timeout'] == 30


def test_pods_command_defaults_to_kube_system(invoke, login, watch_pods):
    result = invoke(['pods', '--cluster-name', 'west-1'])
    assert result.exit_code == 0, result.output
    assert watch_pods.call_args[1]['namespace'] == 'kube-system'
    assert watch_pods.call_args[1]['timeout'] is None


def test_pods_command_reports_timeouts(invoke, login, watch_pods):
    watch_pods.side_effect = asyncio.TimeoutError()
    result = invoke(['pods', '--cluster-name', 'west-1', '--timeout', '1'])
    assert result.exit_code == 1
    assert "has not synced" in result.output


async def test_namespace_is_fetched_via_both_clients(context, fake_transport):
    raw, obj = await fetch_namespace(context, name='default', cluster='west-1',
                                     settings=GatewaySettings())
    assert len(fake_transport.requests) == 2
    for request in fake_transport.requests:
        assert request.path == f'{PREFIX}west-1/proxy/api/v1/namespaces/default'
    assert raw['url'] == obj['url']


async def test_pods_are_printed_from_the_informer(context, fake_transport, response_maker):
    def handler(request):
        if 'watch=true' in request.url:
            released = asyncio.Event()

            async def chunks():
                await released.wait()
                yield b''

            return Response(status=200, request=request, stream=chunks(), release=released.set)
        return response_maker(request, {
            'kind': 'PodList', 'apiVersion': 'v1', 'metadata': {'resourceVersion': '1'},
            'items': [{
                'metadata': {'name': 'pod1', 'namespace': 'kube-system'},
                'status': {'podIP': '10.0.0.1', 'hostIP': '192.168.0.1'},
            }],
        })

    fake_transport.handler = handler
    lines = []
    await watch_pods(context, namespace='kube-system', cluster='west-1',
                     settings=GatewaySettings(), timeout=1, echo=lines.append)
    assert lines == ['kube-system pod1 10.0.0.1 192.168.0.1']
    assert fake_transport.requests[0].path == f'{PREFIX}west-1/proxy/api/v1/namespaces/kube-system/pods'


@pytest.mark.parametrize('error, message', [
    (WatchingError("Error in the watch-stream: {'code': 500}"), "Error in the watch-stream"),
    (RuntimeError("<Informer> has exited before being synced."), "exited before being synced"),
    (aiohttp.ClientConnectionError("refused"), "Cannot connect to the API: refused"),
])
def test_pods_command_reports_informer_failures(invoke, login, watch_pods, error, message):
    watch_pods.side_effect = error
    result = invoke(['pods', '--cluster-name', 'west-1'])
    assert result.exit_code == 1
    assert message in result.output
    assert 'Traceback' not in result.output


def test_namespace_command_reports_connection_errors(invoke, login, fetch_namespace):
    fetch_namespace.side_effect = aiohttp.ClientConnectionError("refused")
    result = invoke(['namespace', '--cluster-name', 'west-1'])
    assert result.exit_code == 1
    assert "Cannot connect to the API: refused" in result.output


async def test_pods_cannot_be_watched_in_an_empty_cluster(context, fake_transport):
    with pytest.raises(InvalidClusterIdentifier):
        await watch_pods(context, namespace='kube-system', cluster='',
                         settings=GatewaySettings(), timeout=1)
    assert fake_transport.requests == []
