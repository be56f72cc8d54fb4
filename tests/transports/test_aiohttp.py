import aiohttp
import aiohttp.web
import pytest

from kubegate._cogs.clients.gateways import ClusterGatewayTransport
from kubegate._cogs.clients.transports import AiohttpTransport
from kubegate._cogs.structs.messages import Request, Response

PREFIX = '/apis/cluster.core.oam.dev/v1alpha1/clustergateways/'


@pytest.fixture()
async def session():
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture()
def url(hostname):
    return f'http://{hostname}'


async def test_request_reaches_the_server(aresponses, hostname, url, session):
    seen = []

    async def handler(request):
        seen.append((request.method, request.path_qs, request.headers.get('X-Custom'), await request.json()))
        return aiohttp.web.json_response({'ok': True})

    aresponses.add(hostname, '/api/v1/pods', 'post', handler, match_querystring=False)
    transport = AiohttpTransport(session)
    request = Request(method='POST', url=f'{url}/api/v1/pods?dryRun=All',
                      headers={'X-Custom': 'value'}, payload={'kind': 'Pod'})
    response = await transport.send(request)

    assert isinstance(response, Response)
    assert response.status == 200
    assert response.request is request
    assert await response.json() == {'ok': True}
    assert seen == [('POST', '/api/v1/pods?dryRun=All', 'value', {'kind': 'Pod'})]


async def test_statuses_are_not_interpreted(aresponses, hostname, url, session):
    aresponses.add(hostname, '/api', 'get', aresponses.Response(status=500, text='oops'))
    transport = AiohttpTransport(session)
    response = await transport.send(Request(method='GET', url=f'{url}/api'))
    assert response.status == 500
    assert await response.text() == 'oops'


async def test_bodies_are_streamed_in_chunks(aresponses, hostname, url, session):
    aresponses.add(hostname, '/api', 'get', aresponses.Response(text='a' * 100))
    transport = AiohttpTransport(session, chunk_size=30)
    response = await transport.send(Request(method='GET', url=f'{url}/api'))
    chunks = [chunk async for chunk in response.iter_chunks()]
    assert b''.join(chunks) == b'a' * 100
    assert max(len(chunk) for chunk in chunks) <= 30


async def test_routed_requests_reach_the_gateway(aresponses, hostname, url, session):
    aresponses.add(hostname, f'{PREFIX}prod/proxy/api/v1/namespaces/default', 'get',
                   aiohttp.web.json_response({'metadata': {'name': 'default'}}))
    transport = ClusterGatewayTransport(AiohttpTransport(session))
    request = Request(method='GET', url=f'{url}/api/v1/namespaces/default', cluster='prod')
    response = await transport.send(request)
    assert await response.json() == {'metadata': {'name': 'default'}}
    aresponses.assert_plan_strictly_followed()


async def test_closing_releases_the_responses_and_the_session(aresponses, hostname, url):
    aresponses.add(hostname, '/api', 'get', aresponses.Response(text='{}'))
    session = aiohttp.ClientSession()
    transport = AiohttpTransport(session)
    response = await transport.send(Request(method='GET', url=f'{url}/api'))
    await transport.close()
    assert session.closed
    assert not transport.responses
    response.close()
    assert response.closed
