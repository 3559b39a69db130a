"""
The main kubeclient module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from kubeclient._cogs.clients.api import (
    Response,
)
from kubeclient._cogs.clients.auth import (
    APIContext,
    Authenticator,
)
from kubeclient._cogs.clients.dispatching import (
    Dispatcher,
)
from kubeclient._cogs.clients.errors import (
    ClientError,
    ParameterError,
    VersionError,
    TokenParseError,
    InsecureTransportError,
    MethodNotAllowedError,
    WatchFrameError,
    APIError,
    APIBadRequestError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APITransportError,
    APIHostNotFoundError,
    APITimeoutError,
    APIDisconnectedError,
)
from kubeclient._cogs.clients.watching import (
    FrameDecoder,
    Notification,
    SessionState,
    WatchSession,
)
from kubeclient._cogs.configs.configuration import (
    ClientSettings,
    NetworkingSettings,
    WatchingSettings,
)
from kubeclient._cogs.helpers.typedefs import (
    Logger,
)
from kubeclient._cogs.helpers.versions import (
    version as __version__,
)
from kubeclient._cogs.structs.credentials import (
    AuthOptions,
    ConnectionInfo,
    Credentials,
)
from kubeclient._cogs.structs.operations import (
    Operation,
)
from kubeclient._cogs.structs.references import (
    render_selector,
    resolve_path,
    resolve_url,
)
from kubeclient._cogs.structs.specs import (
    ApiSpec,
    Capability,
    EndpointSpec,
    NestedSpec,
    KUBERNETES,
    KUBERNETES_EXTENSIONS,
    OPENSHIFT,
)
from kubeclient._core.capabilities import (
    NodesEndpoint,
    ScalableEndpoint,
)
from kubeclient._core.client import (
    KubernetesClient,
)
from kubeclient._core.endpoints import (
    Endpoint,
)
from kubeclient._core.loggers import (
    LogFormat,
    EndpointLogger,
    configure,
)

__all__ = [
    'Response',
    'APIContext', 'Authenticator',
    'Dispatcher',
    'ClientError', 'ParameterError', 'VersionError', 'TokenParseError',
    'InsecureTransportError', 'MethodNotAllowedError', 'WatchFrameError',
    'APIError', 'APIBadRequestError', 'APIUnauthorizedError', 'APIForbiddenError',
    'APINotFoundError', 'APIConflictError',
    'APITransportError', 'APIHostNotFoundError', 'APITimeoutError', 'APIDisconnectedError',
    'FrameDecoder', 'Notification', 'SessionState', 'WatchSession',
    'ClientSettings', 'NetworkingSettings', 'WatchingSettings',
    'Logger',
    'AuthOptions', 'ConnectionInfo', 'Credentials',
    'Operation',
    'render_selector', 'resolve_path', 'resolve_url',
    'ApiSpec', 'Capability', 'EndpointSpec', 'NestedSpec',
    'KUBERNETES', 'KUBERNETES_EXTENSIONS', 'OPENSHIFT',
    'NodesEndpoint', 'ScalableEndpoint',
    'KubernetesClient',
    'Endpoint',
    'LogFormat', 'EndpointLogger', 'configure',
]
