"""
The transport: HTTP requests and streams over the aiohttp's session.

Only the network-level work is done here: sending the requests, checking
the responses for errors, and reading the streams. The URLs, the headers,
and the retries are decided by the callers (the dispatcher, the watchers).
All errors are converted into the client's own errors (see :mod:`errors`).
"""
import asyncio
import dataclasses
import json
from typing import Any, AsyncIterator, Mapping, Optional

import aiohttp

from kubeclient._cogs.clients import auth, errors
from kubeclient._cogs.helpers import typedefs

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclasses.dataclass(frozen=True)
class Response:
    """ A full response envelope, as returned to the callers in the verbose mode. """
    status: int
    headers: Mapping[str, str]
    body: Any


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        payload: Optional[object] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    """
    Perform one request and check its response, but do not read or parse it.

    The response must be closed by the caller (e.g. with ``async with``).
    """
    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')

    # Bodies are sent as JSON, unless they are already serialised by the caller.
    data: Optional[object] = None
    json_payload: Optional[object] = None
    if isinstance(payload, (str, bytes)):
        data = payload
    elif payload is not None:
        json_payload = payload

    what = f"{method.upper()} {url}"
    logger.debug(f"Requesting: {what}")
    try:
        response = await context.session.request(
            method=method.upper(),
            url=url,
            data=data,
            json=json_payload,
            headers=headers,
            timeout=timeout if timeout is not None else aiohttp.ClientTimeout(),
        )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise errors.wrap_transport_error(e) from e

    try:
        await errors.check_response(response)  # but do not parse it!
    except errors.APIError as e:
        logger.debug(f"Request failed with HTTP {e.status}: {what}")
        raise
    return response


async def read_response(
        response: aiohttp.ClientResponse,
        *,
        verbose: bool = False,
) -> Any:
    """
    Read the response fully, parse it as JSON (if not empty), and close it.
    """
    async with response:
        try:
            body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise errors.wrap_transport_error(e) from e

    payload: Any
    try:
        payload = json.loads(body) if body else None
    except json.JSONDecodeError:
        payload = body  # non-JSON endpoints, e.g. pod logs.
    errors.check_payload(payload, body=body)

    if verbose:
        return Response(status=response.status, headers=dict(response.headers), body=payload)
    return payload


async def iter_chunks(
        content: aiohttp.StreamReader,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Iterate over the raw chunks of the streaming response as they arrive.

    The chunks are not aligned with the frames (the events) of the stream:
    one chunk can contain several frames, and one frame can span several chunks.
    The framing is the consumer's responsibility (see :class:`FrameDecoder`).

    The timeouts are escalated as :class:`errors.APITimeoutError`, so that
    the consumers could distinguish them from other transport errors.
    """
    try:
        async for data in content.iter_chunked(chunk_size):
            if data:
                yield data
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise errors.wrap_transport_error(e) from e
