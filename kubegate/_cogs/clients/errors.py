"""
Routing errors and K8s API errors.

The routing errors are raised by the transports themselves, before anything
is sent over the network (or, for the response filters, after it is received).
They are never retried: retrying an invalid cluster name makes no sense.

The K8s API errors are raised by the clients from the responses' statuses.
The transports never raise them: they pass the responses through as is.

Low-level errors, such as the network connectivity issues, SSL/HTTPS issues,
etc, are escalated from the client library (``aiohttp``) as is, since they are
related not to the domain of K8s API, but rather to the networking.
Neither the routing transports nor the errors here wrap them.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.
"""
import collections.abc
import json
from typing import Any, Collection, Optional

from typing_extensions import Literal, TypedDict

from kubegate._cogs.structs import messages


class RoutingError(Exception):
    """ Raised when a request cannot be routed to the target cluster. """


class InvalidClusterIdentifier(RoutingError, ValueError):
    """ Raised when a cluster name is not usable as a URL path segment. """

    def __init__(self, cluster: str) -> None:
        super().__init__(f"Cluster name is not a safe URL path segment: {cluster!r}")
        self.cluster = cluster


class MalformedRequest(RoutingError, ValueError):
    """ Raised when a request has no usable absolute URL to be rewritten. """

    def __init__(self, url: object, reason: str) -> None:
        super().__init__(f"Cannot route a request to {url!r}: {reason}")
        self.url = url


class ExtensionFailure(RoutingError):
    """
    Raised when a header injector or a response filter fails.

    The original error is available both as ``cause`` and ``__cause__``.
    """

    def __init__(self, extension: object, cause: BaseException) -> None:
        super().__init__(f"Extension {extension!r} has failed: {cause!r}")
        self.extension = extension
        self.cause = cause


class RawStatusCause(TypedDict):
    field: str
    reason: str
    message: str


class RawStatusDetails(TypedDict):
    name: str
    uid: str
    retryAfterSeconds: int
    kind: str
    group: str
    causes: Collection[RawStatusCause]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.19/#status-v1-meta
class RawStatus(TypedDict):
    apiVersion: str
    kind: Literal["Status"]
    code: int
    status: Literal["Success", "Failure"]
    reason: str
    message: str
    details: RawStatusDetails


class APIError(Exception):

    def __init__(
            self,
            payload: Optional[RawStatus],
            *,
            status: int,
    ) -> None:
        message = payload.get('message') if payload else None
        super().__init__(message, payload)
        self._status = status
        self._payload = payload

    @property
    def status(self) -> int:
        return self._status

    @property
    def code(self) -> Optional[int]:
        return self._payload.get('code') if self._payload else None

    @property
    def message(self) -> Optional[str]:
        return self._payload.get('message') if self._payload else None

    @property
    def details(self) -> Optional[RawStatusDetails]:
        return self._payload.get('details') if self._payload else None


class APIClientError(APIError):
    pass


class APIServerError(APIError):
    pass


class APIUnauthorizedError(APIClientError):
    pass


class APIForbiddenError(APIClientError):
    pass


class APINotFoundError(APIClientError):
    pass


class APIConflictError(APIClientError):
    pass


async def check_response(
        response: messages.Response,
) -> None:
    """
    Check for specialised K8s errors, and raise with extended information.

    The erroneous response is read fully and closed. The successful ones
    are left untouched, so that they could be streamed afterwards.
    """
    if response.status >= 400:

        payload: Optional[RawStatus]
        try:
            payload = await response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None
        finally:
            response.close()

        # Better be safe: who knows which sensitive information can be dumped unless kind==Status.
        if not isinstance(payload, collections.abc.Mapping) or payload.get('kind') != 'Status':
            payload = None

        cls = (
            APIUnauthorizedError if response.status == 401 else
            APIForbiddenError if response.status == 403 else
            APINotFoundError if response.status == 404 else
            APIConflictError if response.status == 409 else
            APIClientError if 400 <= response.status < 500 else
            APIServerError if 500 <= response.status < 600 else
            APIError
        )
        raise cls(payload, status=response.status)


async def parse_response(
        response: messages.Response,
) -> Any:
    """
    Check the response for errors, and either raise or returned the parsed data.
    """
    await check_response(response)
    async with response:
        return await response.json()
