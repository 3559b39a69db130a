"""
Dispatching of the logical operations as the HTTP requests.

Every operation goes through the same steps: the token is ensured,
the URL is resolved, the request is sent, the response is classified.
On a "401 Unauthorized", the token is invalidated and re-obtained, and the
request is repeated exactly once. All other errors are escalated as is.

The dispatcher has no retries of its own beyond that: neither for the server
errors nor for the network errors. The watch-streams have their own policy
of reconnecting (see :mod:`watching`), which uses the dispatcher to connect.
"""
import logging
from typing import Any, Dict, Optional

import aiohttp

from kubeclient._cogs.clients import api, auth, errors
from kubeclient._cogs.configs import configuration
from kubeclient._cogs.helpers import typedefs
from kubeclient._cogs.structs import operations

logger = logging.getLogger(__name__)

PATCH_CONTENT_TYPE = 'application/strategic-merge-patch+json'


class Dispatcher:

    def __init__(
            self,
            *,
            context: auth.APIContext,
            authenticator: auth.Authenticator,
            settings: Optional[configuration.ClientSettings] = None,
    ) -> None:
        super().__init__()
        self.context = context
        self.authenticator = authenticator
        self.settings = settings if settings is not None else configuration.ClientSettings()

    async def execute(
            self,
            operation: operations.Operation,
            *,
            logger: typedefs.Logger = logger,
    ) -> Any:
        """
        Execute the operation and return the parsed body of the response.

        In the verbose mode, the full response (status, headers, body) is returned.
        """
        try:
            response = await self.open(operation, logger=logger)
            return await api.read_response(response, verbose=operation.verbose)
        except errors.ClientError as e:
            self.escalate(e, operation, logger=logger)
            raise

    async def open(
            self,
            operation: operations.Operation,
            *,
            timeout: Optional[aiohttp.ClientTimeout] = None,
            logger: typedefs.Logger = logger,
    ) -> aiohttp.ClientResponse:
        """
        Send the operation's request and return the unread (but checked) response.

        The response must be closed by the caller. It is used for streaming.
        """
        token = await self.authenticator.ensure_token()
        try:
            return await self._send(operation, token=token, timeout=timeout, logger=logger)
        except errors.APIUnauthorizedError:
            logger.debug(f"Re-authenticating for {operation.describe()}.")
            self.authenticator.invalidate()
            token = await self.authenticator.ensure_token()
            return await self._send(operation, token=token, timeout=timeout, logger=logger)

    async def _send(
            self,
            operation: operations.Operation,
            *,
            token: Optional[str],
            timeout: Optional[aiohttp.ClientTimeout],
            logger: typedefs.Logger,
    ) -> aiohttp.ClientResponse:
        return await api.request(
            method=operation.method,
            url=operation.get_url(),
            context=self.context,
            payload=operation.body,
            headers=self.build_headers(operation, token=token),
            timeout=timeout if timeout is not None else self.build_timeout(operation),
            logger=logger,
        )

    def build_headers(
            self,
            operation: operations.Operation,
            *,
            token: Optional[str],
    ) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if operation.method == 'PATCH':
            headers['Content-Type'] = PATCH_CONTENT_TYPE
        headers.update(operation.headers)
        if token is not None:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    def build_timeout(
            self,
            operation: operations.Operation,
    ) -> aiohttp.ClientTimeout:
        # No timeouts at all unless explicitly configured: some requests are long by nature.
        total = (
            operation.timeout if operation.timeout is not None else
            self.settings.networking.request_timeout
        )
        return aiohttp.ClientTimeout(
            total=total,
            sock_connect=self.settings.networking.connect_timeout,
        )

    def escalate(
            self,
            exc: errors.ClientError,
            operation: operations.Operation,
            *,
            logger: typedefs.Logger = logger,
    ) -> None:
        """
        Log the error once (no matter how many layers it goes through), with the context.

        The host resolution failures are fatal: nothing will ever work with a wrong host.
        """
        if exc.logged:
            return
        exc.logged = True
        exc.annotate(
            resource=operation.resource,
            operation=operation,
            connection=self.context.info,
        )
        if isinstance(exc, errors.APIHostNotFoundError):
            logger.critical(f"Failed to {operation.describe()}: {exc}")
        else:
            logger.error(f"Failed to {operation.describe()}: {exc!r}")
