import inspect
import json
import logging
import re

import pytest

import kubegate
from kubegate._cogs.clients.auth import APIContext
from kubegate._cogs.configs.configuration import GatewaySettings
from kubegate._cogs.structs.credentials import ConnectionInfo
from kubegate._cogs.structs.messages import Request, Response


@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-hub.example.com'


@pytest.fixture()
def server(hostname):
    return f'https://{hostname}'


@pytest.fixture()
def settings():
    settings = GatewaySettings()
    settings.networking.error_backoffs = [0, 0]  # retry, but fast
    settings.watching.reconnect_backoff = 0
    return settings


@pytest.fixture()
def logger():
    return logging.getLogger('kubegate.tests')


def make_response(request, payload=None, *, status=200, headers=None):
    """ A pre-read JSON response, as if it was received from the server. """
    body = json.dumps(payload if payload is not None else {}).encode('utf-8')
    return Response(status=status, request=request, headers=headers, body=body)


def echo_handler(request):
    """ Respond with what was received: to check what has reached the wire. """
    return make_response(request, {
        'method': request.method,
        'url': request.url,
        'headers': dict(request.headers),
        'cluster': request.cluster,
    })


class FakeTransport(kubegate.Transport):
    """
    An innermost transport with no network: records the requests & fakes the responses.

    The handler gets a request and returns a response (sync or async),
    or raises an error, as a real network transport could do.
    """

    def __init__(self, handler=echo_handler):
        super().__init__()
        self.handler = handler
        self.requests = []
        self.closed = False

    async def send(self, request):
        self.requests.append(request)
        result = self.handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def close(self):
        self.closed = True


@pytest.fixture()
def fake_transport():
    return FakeTransport()


@pytest.fixture()
def make_request(server):
    def fn(path='/api/v1/namespaces/default', *, method='GET', cluster=None, **kwargs):
        url = path if '://' in path else server + path
        return Request(method=method, url=url, cluster=cluster, **kwargs)
    return fn


@pytest.fixture()
def context(server, fake_transport):
    info = ConnectionInfo(server=server, default_namespace='default')
    return APIContext(info, transport=fake_transport)


@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns, prohibited=()):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            if remaining_patterns and re.search(remaining_patterns[0], message):
                remaining_patterns[:1] = []
            for pattern in prohibited:
                if re.search(pattern, message):
                    raise AssertionError(f"Prohibited pattern found: {pattern!r} in {message!r}")
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")
    return assert_logs_fn


@pytest.fixture()
def response_maker():
    return make_response


@pytest.fixture()
def transport_maker():
    return FakeTransport
