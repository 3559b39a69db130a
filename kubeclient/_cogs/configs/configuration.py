"""
All configuration flags, options, settings to fine-tune the client.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

The connection itself (the server, the credentials, the API version)
is not a setting: see :class:`kubeclient.ConnectionInfo`. The settings are
only about how the client behaves once it knows where to connect.

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).
"""
import dataclasses
from typing import Optional


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: Optional[float] = None
    """
    A timeout (in seconds) for the regular (non-watching) requests.
    By default, there is no timeout: the requests wait as long as needed.
    Individual calls can override it with the ``timeout=`` option.
    """

    connect_timeout: Optional[float] = None
    """
    A timeout (in seconds) for establishing a connection to the API server.
    If not set, the request timeout is used (if any).
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: Optional[float] = None
    """
    The maximum duration of one streaming request. Patched into the query
    as ``timeoutSeconds``. The server closes the stream after this time,
    and the client reconnects from the last seen resource version.
    """

    client_timeout: Optional[float] = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: Optional[float] = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    sock_read_timeout: Optional[float] = None
    """
    The longest idle time (in seconds) between two chunks of the watch-stream.
    When exceeded, the connection is considered as timed out and is re-opened
    within the limits of the retry budget given to the session's ``start()``.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """

    max_frame_size: Optional[int] = 16 * 1024 * 1024
    """
    The maximum size (in bytes) of the buffered incomplete data in the stream.

    If the buffered data cannot be decoded as a complete event while it grows
    beyond this size, it is discarded and an error is reported to the watchers.
    Set to ``None`` to buffer forever.
    """


@dataclasses.dataclass
class ClientSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
