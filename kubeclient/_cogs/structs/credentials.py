"""
Connection- and authentication-related structures.

The client handles some rudimentary authentication directly: either a token
is provided upfront, or the username & password are exchanged for a token
via the OAuth challenge endpoint of the API server (see :mod:`auth`).

For that, a minimally sufficient data structure is introduced -- to bring
all the connection parameters together in a structured and type-annotated way:

* API server's URL (scheme, host, port).
* API version of the core API.
* Default namespace for the namespaced resources.
* HTTP ``Authorization: Bearer token``.
* HTTP ``Authorization: Basic username:password`` for the token exchange only.
* SSL certificate authority and verification ignorance flag.
* Extra HTTP headers for all requests.
"""
import dataclasses
import re
from typing import Collection, Mapping, Optional, Union

from kubeclient._cogs.clients import errors

DEFAULT_PROTOCOL = 'https'
DEFAULT_PORT = 8443


@dataclasses.dataclass(frozen=True)
class Credentials:
    """ The user's credentials to be exchanged for a token. """
    username: str
    password: str = dataclasses.field(repr=False)


@dataclasses.dataclass(frozen=True)
class AuthOptions:
    """
    Overrides for the authentication exchange.
    """

    allow_unsafe: bool = False
    """
    Allow sending the credentials to the servers without HTTPS.
    Without this flag, such an authentication is refused before any request.
    """

    preserve_auth: bool = True
    """
    Keep the credentials after the first token exchange. If ``False``, they are
    forgotten, and no re-authentication is possible once the token expires.
    """

    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    """ Extra headers for the authentication request only. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    A single API server with specific credentials and connection flags to use.
    """
    server: str  # e.g. "https://localhost:8443"
    version: str  # e.g. "v1"
    namespace: Optional[str] = None
    token: Optional[str] = dataclasses.field(default=None, repr=False)
    credentials: Optional[Credentials] = dataclasses.field(default=None, repr=False)
    auth_options: AuthOptions = dataclasses.field(default_factory=AuthOptions)
    ca_path: Optional[str] = None
    insecure: bool = False
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)

    @classmethod
    def parse(
            cls,
            *,
            host: Optional[str],
            version: Union[None, int, str],
            versions: Collection[str],
            port: Optional[int] = None,
            protocol: Optional[str] = None,
            namespace: Optional[str] = None,
            token: Optional[str] = None,
            credentials: Optional[Credentials] = None,
            auth_options: Optional[AuthOptions] = None,
            ca_path: Optional[str] = None,
            insecure: bool = False,
            headers: Optional[Mapping[str, str]] = None,
    ) -> "ConnectionInfo":
        return cls(
            server=parse_hostname(host, port=port, protocol=protocol),
            version=parse_version(version, versions),
            namespace=namespace or None,  # an empty namespace is the global scope.
            token=token or None,
            credentials=credentials,
            auth_options=auth_options if auth_options is not None else AuthOptions(),
            ca_path=ca_path,
            insecure=insecure,
            headers=dict(headers or {}),
        )


def parse_hostname(
        host: Optional[str],
        *,
        port: Optional[int] = None,
        protocol: Optional[str] = None,
) -> str:
    """
    Complete the server's URL with the scheme & port if they are absent.

    E.g., ``localhost`` becomes ``https://localhost:8443`` by default.
    """
    if not host:
        raise errors.ParameterError('host')

    host = host.rstrip('/')
    if not re.match(r'^[a-z][a-z0-9+.-]*://', host):
        host = f'{protocol or DEFAULT_PROTOCOL}://{host}'
    if not re.search(r':[0-9]+$', host):
        host = f'{host}:{port or DEFAULT_PORT}'
    return host


def parse_version(
        version: Union[None, int, str],
        versions: Collection[str],
) -> str:
    """
    Validate the API version against the known ones (e.g. ``1`` -> ``"v1"``).
    """
    if version is None or version == '':
        raise errors.ParameterError('version')

    parsed = f'v{version}' if isinstance(version, int) else str(version)
    if parsed not in versions:
        raise errors.VersionError(parsed, versions)
    return parsed
