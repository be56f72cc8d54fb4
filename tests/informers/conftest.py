import asyncio
import json
import urllib.parse

import pytest

from kubegate._cogs.structs.messages import Response


class FakeKube:
    """
    A minimalistic fake API server: serves a listing and then one watch-stream.

    The watch-stream yields the prepared events and then hangs until closed,
    as the real watch-streams do until the server-side timeout.
    """

    def __init__(self, response_maker):
        super().__init__()
        self.response_maker = response_maker
        self.items = []
        self.events = []
        self.resource_version = '100'
        self.list_status = 200
        self.list_blocked = False

    async def handle(self, request):
        query = urllib.parse.parse_qs(urllib.parse.urlsplit(request.url).query)
        if query.get('watch') == ['true']:
            events, self.events = self.events, []
            released = asyncio.Event()

            async def chunks():
                for event in events:
                    yield (json.dumps(event) + '\n').encode('utf-8')
                await released.wait()

            return Response(status=200, request=request, stream=chunks(), release=released.set)

        if self.list_blocked:
            await asyncio.Event().wait()
        if self.list_status != 200:
            return self.response_maker(request, {'kind': 'Status', 'code': self.list_status},
                                       status=self.list_status)
        return self.response_maker(request, {
            'kind': 'PodList',
            'apiVersion': 'v1',
            'metadata': {'resourceVersion': self.resource_version},
            'items': self.items,
        })


def pod(name, namespace='kube-system', rv='1', **status):
    return {'metadata': {'name': name, 'namespace': namespace, 'resourceVersion': rv},
            'status': status}


@pytest.fixture()
def kube(fake_transport, response_maker):
    kube = FakeKube(response_maker)
    fake_transport.handler = kube.handle
    return kube


@pytest.fixture()
def pod_maker():
    return pod
