"""
API contexts: the credentials-based transports and their composition.

An API context is what the clients are built on: the server's base URL,
the default namespace, and the transport to send the requests with.

Initially, the transport is the network transport with an ``aiohttp`` session
made from the credentials. It can then be wrapped by other transports,
e.g. by the multi-cluster routing, the same way as in other K8s clients::

    context = APIContext(info)
    context.wrap(kubegate.new_cluster_gateway_transport)

The wrapping must be done before the context is used for the requests.
"""
import base64
import contextlib
import os
import ssl
import tempfile
from typing import Any, Dict, Optional, Union

import aiohttp

from kubegate._cogs.clients import transports
from kubegate._cogs.helpers import versions
from kubegate._cogs.structs import credentials


class APIContext:
    """
    A container for a transport and the contextual info for URL building.

    The context owns the transport: closing the context closes the transport
    and therefore the underlying ``aiohttp`` session with all its connections.
    """

    # The main contained object used by the API methods.
    transport: transports.Transport

    # Contextual information for URL building.
    server: str
    default_namespace: Optional[str]

    def __init__(
            self,
            info: credentials.ConnectionInfo,
            *,
            transport: Optional[transports.Transport] = None,
    ) -> None:
        super().__init__()
        if transport is None:
            session = make_aiohttp_session(info)
            transport = transports.AiohttpTransport(session)

        self.transport = transport
        self.server = info.server
        self.default_namespace = info.default_namespace

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}: {self.server} via {self.transport!r}>'

    async def __aenter__(self) -> "APIContext":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    def wrap(self, fn: transports.TransportWrapper) -> None:
        """ Wrap the current transport with a new one (on top of the previous wrappers). """
        self.transport = fn(self.transport)

    async def close(self) -> None:
        await self.transport.close()


def make_aiohttp_session(info: credentials.ConnectionInfo) -> aiohttp.ClientSession:

    # Some SSL data are not accepted directly, so we have to use temp files.
    # Do not even create temporary files if there is no need. It can be a readonly filesystem.
    with contextlib.ExitStack() as stack:

        cert_path: Union[str, bytes, 'os.PathLike[str]', 'os.PathLike[bytes]', None]
        if info.certificate_path:
            cert_path = info.certificate_path
        elif info.certificate_data:
            cert_file = stack.enter_context(tempfile.NamedTemporaryFile(buffering=0))
            cert_file.write(decode_to_pem(info.certificate_data).encode('ascii'))
            cert_path = cert_file.name
        else:
            cert_path = None

        pkey_path: Union[str, bytes, 'os.PathLike[str]', 'os.PathLike[bytes]', None]
        if info.private_key_path:
            pkey_path = info.private_key_path
        elif info.private_key_data:
            pkey_file = stack.enter_context(tempfile.NamedTemporaryFile(buffering=0))
            pkey_file.write(decode_to_pem(info.private_key_data).encode('ascii'))
            pkey_path = pkey_file.name
        else:
            pkey_path = None

        # The SSL part (both client certificate auth and CA verification).
        context = ssl.create_default_context(
            purpose=ssl.Purpose.SERVER_AUTH,
            cafile=info.ca_path,
            cadata=decode_to_pem(info.ca_data) if info.ca_data is not None else None,
        )
        if cert_path and pkey_path:
            context.load_cert_chain(certfile=cert_path, keyfile=pkey_path)

    if info.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    # The token auth part.
    headers: Dict[str, str] = {}
    if info.scheme and info.token:
        headers['Authorization'] = f'{info.scheme} {info.token}'
    elif info.scheme:
        headers['Authorization'] = f'{info.scheme}'
    elif info.token:
        headers['Authorization'] = f'Bearer {info.token}'

    # It is a good practice to self-identify a bit.
    headers['User-Agent'] = f'kubegate/{versions.version or "unknown"}'

    # The basic auth part.
    auth: Optional[aiohttp.BasicAuth]
    if info.username and info.password:
        auth = aiohttp.BasicAuth(info.username, info.password)
    else:
        auth = None

    return aiohttp.ClientSession(
        connector=aiohttp.TCPConnector(
            limit=0,
            ssl=context,
        ),
        headers=headers,
        auth=auth,
    )


def decode_to_pem(data: Union[str, bytes]) -> str:
    if isinstance(data, str) and data.startswith('-----BEGIN '):
        return data
    elif isinstance(data, bytes) and data.startswith(b'-----BEGIN '):
        return data.decode('ascii')
    else:
        return base64.b64decode(data).decode('ascii')
