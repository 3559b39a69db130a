"""
API client errors.

The underlying client library (now, ``aiohttp``) can be replaced in the future.
We cannot rely on embedding its exceptions all over the code of the client.
Hence, we have our own hierarchy of exceptions for the API errors.

Unlike the original design of the underlying library, low-level errors,
such as the network connectivity issues or timeouts, are also wrapped into
our own errors (:class:`APITransportError` and its descendants), so that
the callers of the dispatcher never see the ``aiohttp``'s exceptions.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.

Some selected statuses of API errors are made into their own classes,
so that they could be intercepted and handled in other places of the client
(e.g. 401 for re-authentication). All other statuses are raised as the base
error class and are indistinguishable from each other (except via the fields).
"""
import asyncio
import collections.abc
import json
import socket
from typing import Any, Collection, Dict, Iterable, Optional

import aiohttp
from typing_extensions import Literal, TypedDict

# Keys of the options/configs whose values are never shown verbatim in errors & logs.
SECRET_KEYS = frozenset({'password', 'pass', 'token', 'authorization', 'credentials'})
SECRET_MASK = '***'


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


class ClientError(Exception):
    """
    The base class for all errors of the client.

    The diagnostic context (the resource, the options, the connection info)
    is attached by the dispatcher when the error is escalated. The secrets
    in the context are masked (see :func:`mask_secrets`).
    """

    def __init__(self, *args: object) -> None:
        super().__init__(*args)
        self.context: Dict[str, Any] = {}
        self.logged: bool = False

    def annotate(self, **context: Any) -> None:
        self.context.update(mask_secrets(context))


class ParameterError(ClientError):
    """ A required configuration parameter is missing. """

    def __init__(self, parameter: str) -> None:
        super().__init__(f"missing required parameter: {parameter!r}")
        self.parameter = parameter


class VersionError(ClientError):
    """ The API version is not known to the registry of API specifications. """

    def __init__(self, version: str, versions: Iterable[str]) -> None:
        super().__init__(f"invalid api version: {version!r}")
        self.version = version
        self.versions = sorted(versions)


class TokenParseError(ClientError):
    """ The OAuth token cannot be extracted from the authentication response. """

    def __init__(self, header: Optional[str], reason: str) -> None:
        super().__init__(f"failed to parse oAuth token from response: {reason}")
        self.header = header
        self.reason = reason


class InsecureTransportError(ClientError):
    """ The credentials would be sent over an unencrypted connection. """


class MethodNotAllowedError(ClientError):
    """ The method is not allowed for the endpoint according to its specification. """


class WatchFrameError(ClientError):
    """ The watch-stream's frame is malformed or too large to be ever decoded. """


class APIError(ClientError):

    def __init__(
            self,
            payload: Optional[RawStatus],
            *,
            status: int,
            body: Optional[str] = None,
            message: Optional[str] = None,
    ) -> None:
        if message is None and payload:
            message = payload.get('message')
        super().__init__(message, payload)
        self._status = status
        self._payload = payload
        self._body = body
        self._message = message

    @property
    def status(self) -> int:
        return self._status

    @property
    def code(self) -> Optional[int]:
        return self._payload.get('code') if self._payload else None

    @property
    def message(self) -> Optional[str]:
        return self._message

    @property
    def details(self) -> Optional[RawStatusDetails]:
        return self._payload.get('details') if self._payload else None

    @property
    def body(self) -> Optional[str]:
        return self._body


class APIBadRequestError(APIError):
    pass


class APIUnauthorizedError(APIError):
    pass


class APIForbiddenError(APIError):
    pass


class APINotFoundError(APIError):
    pass


class APIConflictError(APIError):
    pass


class APITransportError(ClientError):
    """ The request did not reach the server or the response did not arrive. """

    @property
    def status(self) -> None:
        return None


class APIHostNotFoundError(APITransportError):
    """ The server's hostname cannot be resolved. It is fatal and never retried. """


class APITimeoutError(APITransportError):
    """ The server did not respond or did not send the data in time. """


class APIDisconnectedError(APITransportError):
    """ The connection was closed by the server before the response was fully read. """


def get_error_class(status: int) -> type:
    return (
        APIBadRequestError if status == 400 else
        APIUnauthorizedError if status == 401 else
        APIForbiddenError if status == 403 else
        APINotFoundError if status == 404 else
        APIConflictError if status == 409 else
        APIError
    )


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Check for specialised API errors, and raise with extended information.
    """
    if response.status >= 400:

        # Read the response's body before it is closed by raise_for_status().
        body: Optional[str]
        payload: Optional[RawStatus]
        try:
            body = await response.text()
        except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, UnicodeDecodeError):
            body = None
        try:
            payload = json.loads(body) if body else None
        except json.JSONDecodeError:
            payload = None

        # Better be safe: who knows which sensitive information can be dumped unless kind==Status.
        if not isinstance(payload, collections.abc.Mapping) or payload.get('kind') != 'Status':
            payload = None

        cls = get_error_class(response.status)

        # Raise the client-specific error while keeping the original error in scope.
        # This call also closes the response's body, so it cannot be read afterwards.
        try:
            response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise cls(payload, status=response.status, body=body) from e


def check_payload(
        payload: object,
        *,
        body: Optional[str] = None,
) -> None:
    """
    Check a successfully received payload for the errors reported inside of it.

    Some API servers respond with a successful HTTP status, but put the failure
    status into the response body (as a ``Status`` object with a code).
    """
    if (isinstance(payload, collections.abc.Mapping) and
            payload.get('kind') == 'Status' and
            payload.get('status') == 'Failure' and
            isinstance(payload.get('code'), int) and
            payload['code'] >= 400):
        cls = get_error_class(payload['code'])
        raise cls(payload, status=payload['code'], body=body)


def wrap_transport_error(exc: BaseException) -> APITransportError:
    """
    Convert the client library's low-level error into our own error.

    The caller is expected to raise the result ``from`` the original error.
    """
    if isinstance(exc, aiohttp.ClientConnectorError) and isinstance(exc.os_error, socket.gaierror):
        return APIHostNotFoundError(f"host not found: {exc.host}")
    elif isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return APITimeoutError(f"request timed out: {exc!r}")
    elif isinstance(exc, (aiohttp.ClientPayloadError, aiohttp.ServerDisconnectedError)):
        return APIDisconnectedError(f"connection closed: {exc!r}")
    else:
        return APITransportError(f"request failed: {exc!r}")


def mask_secrets(value: Any) -> Any:
    """
    Replace the values of the secret-looking keys with a mask, recursively.

    Works with mappings, sequences, and dataclass-like objects exposing a dict.
    The original objects are never modified; only the masked copies are returned.
    """
    if isinstance(value, collections.abc.Mapping):
        return {
            key: SECRET_MASK if str(key).lower() in SECRET_KEYS and val is not None
            else mask_secrets(val)
            for key, val in value.items()
        }
    elif isinstance(value, (list, tuple)):
        return type(value)(mask_secrets(item) for item in value)
    elif hasattr(value, '__dataclass_fields__'):
        return mask_secrets({name: getattr(value, name) for name in value.__dataclass_fields__})
    else:
        return value

