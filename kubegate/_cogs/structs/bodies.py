"""
All the structures coming from/to the Kubernetes API.

The objects are kept as plain JSON-decoded dicts. They are typed
to the per-field level only as far as the clients & informers use them;
all other fields are present at runtime, but are not type-checked.
"""
from typing import Any, List, Mapping, Optional, Tuple

from typing_extensions import Literal, TypedDict

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

# ``None`` is used for the listing, when the pseudo-watch-stream is simulated.
RawInputType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED', 'ERROR']
RawEventType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Labels
    annotations: Annotations
    resourceVersion: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: Mapping[str, Any]
    status: Mapping[str, Any]


class RawList(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    items: List[RawBody]


class RawError(TypedDict, total=False):
    apiVersion: str  # usually: Literal['v1']
    kind: str  # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


class RawInput(TypedDict, total=True):
    type: RawInputType
    object: Any  # RawBody or RawError


# The identity of an object in a cache: (namespace, name).
ObjectKey = Tuple[Optional[str], str]


def get_key(body: RawBody) -> ObjectKey:
    meta = body.get('metadata', {})
    return meta.get('namespace'), meta.get('name', '')


def get_resource_version(body: RawBody) -> Optional[str]:
    return body.get('metadata', {}).get('resourceVersion')
