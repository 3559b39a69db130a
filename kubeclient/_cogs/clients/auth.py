import asyncio
import logging
import secrets
import ssl
import urllib.parse
from typing import List, Optional

import aiohttp

from kubeclient._cogs.clients import errors
from kubeclient._cogs.helpers import versions
from kubeclient._cogs.structs import credentials

logger = logging.getLogger(__name__)

# The OAuth client which responds with the token in the redirect (instead of an HTML form).
OAUTH_PATH = '/oauth/authorize'
OAUTH_CLIENT_ID = 'openshift-challenging-client'
MIN_TOKEN_LENGTH = 10


class APIContext:
    """
    A container for an aiohttp session and the environment info.

    The session is created lazily on the first use, so that the client
    can be constructed outside of the event loop (but used inside of it).

    We assume that the whole client runs in the same event loop, so there is
    no need to split the sessions for multiple loops.
    """

    # Contextual information for URL building.
    server: str
    default_namespace: Optional[str]

    # List of open responses, e.g. of the watch-streams.
    responses: List[aiohttp.ClientResponse]

    def __init__(
            self,
            info: credentials.ConnectionInfo,
    ) -> None:
        super().__init__()
        self.info = info
        self.server = info.server
        self.default_namespace = info.namespace
        self.responses = []
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = self.make_aiohttp_session(self.info)
        return self._session

    def make_aiohttp_session(self, info: credentials.ConnectionInfo) -> aiohttp.ClientSession:

        # The SSL part: only the CA verification, no client certificates.
        context = ssl.create_default_context(cafile=info.ca_path)
        if info.insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        # It is a good practice to self-identify a bit.
        headers = dict(info.headers)
        headers.setdefault('User-Agent', f'kubeclient/{versions.version or "unknown"}')

        return aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=0,
                ssl=context,
            ),
            headers=headers,
        )

    def flush_closed_responses(self) -> None:
        # There's no point keeping references to already closed responses.
        self.responses[:] = [_response for _response in self.responses if not _response.closed]

    def add_response(self, response: aiohttp.ClientResponse) -> None:
        # Keep track of responses so they can be closed later when the session is closed.
        self.flush_closed_responses()
        if not response.closed:
            self.responses.append(response)

    def close_open_responses(self) -> None:
        for response in self.responses:
            if not response.closed:
                response.close()
        self.responses.clear()

    async def close(self) -> None:
        # Close all open responses that use this session before closing the session itself.
        self.close_open_responses()
        if self._session is not None:
            await self._session.close()
            self._session = None


class Authenticator:
    """
    The owner of the token: obtains it on demand, and forgets it when it fails.

    The token is either given upfront (and used as is until it fails),
    or obtained via the OAuth challenge from the username & password.

    The concurrent re-authentications are not serialised: if several requests
    fail with 401 at the same time, each of them performs its own exchange,
    and the last successful exchange wins. The token is a single value
    overwritten on every exchange, so nothing accumulates.
    """

    def __init__(
            self,
            info: credentials.ConnectionInfo,
            *,
            context: APIContext,
    ) -> None:
        super().__init__()
        self.server = info.server
        self.options = info.auth_options
        self.token: Optional[str] = info.token
        self.credentials: Optional[credentials.Credentials] = info.credentials
        self._context = context

    def __repr__(self) -> str:
        has_token = 'token' if self.token is not None else 'no token'
        return f'<{self.__class__.__name__}: {self.server} ({has_token})>'

    async def ensure_token(self) -> Optional[str]:
        """
        Return the current token; obtain it first if there is none yet.

        Without the credentials, the current token is returned as is, even if
        it is absent: e.g. if the server requires no authentication at all.
        """
        if self.token is None and self.credentials is not None:
            await self.authenticate()
        return self.token

    def invalidate(self) -> None:
        """ Forget the token; the next :meth:`ensure_token` obtains a new one. """
        self.token = None

    async def authenticate(self) -> str:
        """
        Exchange the credentials for a new token via the OAuth challenge.

        On failure, the token remains as it was, and the error is escalated.
        """
        try:
            token = await self._exchange()
        except errors.ClientError as e:
            if not e.logged:
                e.logged = True
                e.annotate(server=self.server, options=self.options)
                logger.critical(f"Authentication failed at {self.server}: {e}")
            raise
        self.token = token
        logger.debug(f"Authenticated at {self.server}.")
        return token

    async def _exchange(self) -> str:
        if not self.options.allow_unsafe and not self.server.startswith('https://'):
            raise errors.InsecureTransportError(
                "refusing to authenticate over http; set allow_unsafe to suppress")

        creds = self.credentials
        if creds is None:
            raise errors.ParameterError('credentials')

        # Forget the credentials after the first use if requested. Re-login is impossible then.
        if not self.options.preserve_auth:
            self.credentials = None

        url = self.server.rstrip('/') + OAUTH_PATH
        params = {'response_type': 'token', 'client_id': OAUTH_CLIENT_ID}
        headers = dict({'X-CSRF-Token': secrets.token_hex(16)}, **self.options.headers)
        try:
            response = await self._context.session.get(
                url,
                params=params,
                headers=headers,
                auth=aiohttp.BasicAuth(creds.username, creds.password),
                allow_redirects=False,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise errors.wrap_transport_error(e) from e

        async with response:
            try:
                await errors.check_response(response)
            except errors.APIUnauthorizedError as e:
                raise errors.APIUnauthorizedError(
                    None, status=e.status, body=e.body, message="invalid user credentials",
                ) from e
            return parse_token(response.headers.get('Location'))


def parse_token(location: Optional[str]) -> str:
    """
    Extract the token from the redirect: ``...#access_token=...&expires_in=...``.
    """
    if not location:
        raise errors.TokenParseError(None, "the 'Location' header is absent")

    fragment = urllib.parse.urlsplit(location).fragment
    masked = location.split('#', 1)[0] + ('#' + errors.SECRET_MASK if fragment else '')
    values = urllib.parse.parse_qs(fragment).get('access_token')
    if not values:
        raise errors.TokenParseError(masked, "no access_token in the redirect's fragment")

    token = values[0]
    if len(token) < MIN_TOKEN_LENGTH:
        raise errors.TokenParseError(masked, "the access_token is too short")
    return token
