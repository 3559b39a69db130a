"""
Watching and streaming watch-events.

A watch-session first lists (or gets) the watched resource with a regular
request, and remembers the snapshot and its resource version. Then, once
explicitly started, it streams the changes since that version in the
background and notifies the subscribers of every event.

The subscribers are registered before the session is started, so that
no events are missed between the snapshot and the subscription.

The stream is re-opened when the server ends it cleanly (which it does
regularly, even if the stream is fine), always from the last seen resource version.
The delivery is therefore at-least-once: some events can be seen twice
near the reconnection points. The re-opening on timeouts is limited by
the retry budget given to :meth:`WatchSession.start`.
"""
import asyncio
import collections.abc
import dataclasses
import enum
import inspect
import json
import logging
import re
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterator, \
                   List, Optional, Set, Union

import aiohttp

from kubeclient._cogs.aiokits import aiotasks
from kubeclient._cogs.clients import api, dispatching, errors
from kubeclient._cogs.helpers import typedefs
from kubeclient._cogs.structs import operations

logger = logging.getLogger(__name__)

# The raw watch-event types as sent by the server, and the kinds of notifications for them.
EVENT_KINDS = {
    'ADDED': 'create',
    'MODIFIED': 'update',
    'DELETED': 'delete',
}
KINDS = frozenset({'create', 'update', 'delete', 'error', 'response'})

# What the nesting of the JSON values depends on; escaped characters are skipped as pairs.
SIGNIFICANT_BYTES = re.compile(rb'\\.?|[\[\]{}"\n]', re.DOTALL)
WHITESPACE = re.compile(r'[ \t\n\r]*')

Callback = Callable[[Any], Union[None, Awaitable[None]]]


class SessionState(str, enum.Enum):
    IDLE = 'idle'
    SNAPSHOTTING = 'snapshotting'
    CONNECTED = 'connected'
    RECONNECTING = 'reconnecting'
    STOPPED = 'stopped'


@dataclasses.dataclass(frozen=True)
class Notification:
    kind: str
    payload: Any


class FrameDecoder:
    """
    Cut the stream of raw bytes into the JSON-decoded watch-events.

    The chunks of the stream are not aligned with the events: one chunk can
    contain several events (usually newline-separated), and one event can
    span several chunks. The incomplete data remain in the buffer until
    the rest of them arrive. So do the malformed data: they are
    indistinguishable from the incomplete ones until the buffer is too big.

    Only the new bytes of every chunk are scanned for the brackets & quotes.
    The buffer is decoded only when a top-level value might have ended there,
    so a big event split over many chunks is decoded once, not per chunk.

    If the limit is set and the buffer grows beyond it, the buffered data
    are discarded and :class:`errors.WatchFrameError` is raised after all
    the complete events of the chunk are yielded.
    """

    def __init__(self, max_frame_size: Optional[int] = None) -> None:
        super().__init__()
        self.max_frame_size = max_frame_size
        self.buffer = bytearray()
        self._decoder = json.JSONDecoder()
        self._scanned = 0
        self._depth = 0
        self._in_string = False

    def feed(self, chunk: bytes) -> Iterator[Any]:
        self.buffer.extend(chunk)
        if self._scan():
            yield from self._extract()

        if self.max_frame_size is not None and len(self.buffer) > self.max_frame_size:
            size = len(self.buffer)
            self._reset()
            raise errors.WatchFrameError(
                f"the watch-event is not decodable after {size} bytes "
                f"(the limit is {self.max_frame_size} bytes); discarded.")

    def _reset(self) -> None:
        self.buffer.clear()
        self._scanned = 0
        self._depth = 0
        self._in_string = False

    def _scan(self) -> bool:
        """ Follow the nesting in the new bytes; tell if a top-level value could end there. """
        boundary = False
        for match in SIGNIFICANT_BYTES.finditer(self.buffer, self._scanned):
            token = match.group()
            if token == b'\\':  # an escape split between chunks: rescan it with the next chunk.
                self._scanned = match.start()
                return boundary
            elif token.startswith(b'\\'):
                continue
            elif token == b'"':
                self._in_string = not self._in_string
                boundary = boundary or (not self._in_string and self._depth == 0)
            elif self._in_string:
                continue
            elif token in (b'{', b'['):
                self._depth += 1
            elif token in (b'}', b']'):
                self._depth = max(self._depth - 1, 0)
                boundary = boundary or self._depth == 0
            else:
                boundary = boundary or self._depth == 0
        self._scanned = len(self.buffer)
        return boundary

    def _extract(self) -> List[Any]:
        """ Decode the complete values from the buffer's front and drop their bytes. """

        # A multi-byte character can be split between chunks; decode only the complete prefix.
        try:
            text = self.buffer.decode('utf-8')
        except UnicodeDecodeError as e:
            text = bytes(self.buffer[:e.start]).decode('utf-8')

        values: List[Any] = []
        consumed = 0
        while True:
            match = WHITESPACE.match(text, consumed)
            start = match.end() if match else consumed
            if start >= len(text):
                consumed = start
                break
            try:
                value, consumed = self._decoder.raw_decode(text, start)
            except json.JSONDecodeError:
                break  # incomplete or malformed: keep buffering.
            values.append(value)

        size = len(text[:consumed].encode('utf-8'))
        del self.buffer[:size]
        self._scanned = max(self._scanned - size, 0)
        return values


class WatchSession:
    """
    A watch over a resource (a list or a single object) with its subscribers.

    The typical lifecycle::

        session = await client.pods.watch()
        session.on('create', on_created)
        async with session:
            async for notification in session.subscribe():
                ...

    The session's notifications are ``create``, ``update``, ``delete`` (with
    the changed object), ``error`` (with an error or a raw unexpected object),
    and ``response`` (with the response envelope of every opened stream).
    """

    def __init__(
            self,
            *,
            dispatcher: dispatching.Dispatcher,
            operation: operations.Operation,
            logger: typedefs.Logger = logger,
    ) -> None:
        super().__init__()
        self.dispatcher = dispatcher
        self.operation = operation
        self.logger = logger
        self.state = SessionState.IDLE
        self.started = False
        self.initial: Any = None
        self.resource_version: Optional[str] = None
        self.retry_count: Optional[int] = None
        self._callbacks: Dict[str, List[Callback]] = {}
        self._queues: List["asyncio.Queue[Optional[Notification]]"] = []
        self._tasks: List[aiotasks.Task] = []
        self._responses: Set[aiohttp.ClientResponse] = set()
        self._readers = 0

    def __repr__(self) -> str:
        return (f'<{self.__class__.__name__}: {self.operation.describe()} '
                f'{self.state.value} at {self.resource_version!r}>')

    async def snapshot(self) -> Any:
        """
        Get the current state of the watched resource and its resource version.
        """
        self.state = SessionState.SNAPSHOTTING
        operation = dataclasses.replace(self.operation, verbose=False)
        try:
            body = await self.dispatcher.execute(operation, logger=self.logger)
        except errors.ClientError:
            self.state = SessionState.STOPPED
            raise

        self.initial = body
        if isinstance(body, collections.abc.Mapping):
            self.resource_version = (body.get('metadata') or {}).get('resourceVersion')
        self.logger.info(f"Created a watch-session at resourceVersion={self.resource_version!r}.")
        return body

    def on(self, kind: str, callback: Callback) -> None:
        """ Call the callback (sync or async) with the payload of each such notification. """
        if kind not in KINDS:
            raise ValueError(f"Unknown notification kind: {kind!r}")
        self._callbacks.setdefault(kind, []).append(callback)

    def subscribe(self) -> AsyncIterator[Notification]:
        """
        Iterate over all notifications of the session until it is stopped.

        The subscription is registered immediately (not on the first iteration),
        so it is safe to subscribe before starting and to iterate after that.
        """
        queue: "asyncio.Queue[Optional[Notification]]" = asyncio.Queue()
        self._queues.append(queue)
        return self._drain(queue)

    async def _drain(
            self,
            queue: "asyncio.Queue[Optional[Notification]]",
    ) -> AsyncIterator[Notification]:
        try:
            while True:
                notification = await queue.get()
                if notification is None:
                    break
                yield notification
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    def start(self, retry_count: Optional[int] = None, force: bool = False) -> None:
        """
        Start streaming the changes in the background.

        The streams are re-opened on timeouts at most ``retry_count`` times
        in a row (infinitely if ``None``). Repeated calls do nothing, unless
        forced. Forcing opens one more stream, so every event is seen twice.
        """
        if self.started and not force:
            return
        if self.state == SessionState.STOPPED:
            raise RuntimeError(f"The watch-session is already stopped: {self!r}")

        self.started = True
        self.retry_count = retry_count
        self._readers += 1
        self._tasks.append(aiotasks.create_guarded_task(
            name=f"watch-stream for {self.operation.describe()}",
            coro=self._read(retry_count),
            finishable=True,
            cancellable=True,
            logger=self.logger,
        ))

    async def stop(self) -> None:
        """ Stop streaming and close the streams. Nothing is notified afterwards. """
        self.state = SessionState.STOPPED
        for response in list(self._responses):
            response.close()
        await aiotasks.stop(self._tasks, title="watch-stream", logger=self.logger)
        self._finish()

    async def wait(self) -> None:
        """
        Wait until all streams are over (due to errors or stopping).

        The failures of the callbacks, which break the streaming, are re-raised.
        """
        done, _ = await aiotasks.wait(self._tasks)
        for task in done:
            if not task.cancelled():
                task.result()

    async def __aenter__(self) -> "WatchSession":
        if self.state == SessionState.IDLE:
            await self.snapshot()
        self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def _read(self, retry_count: Optional[int]) -> None:
        """
        Stream the events through the reconnects until stopped or failed.

        The server ends the streams regularly: it is normal, and the stream is
        re-opened unconditionally, with the retry budget restored. The timeouts
        consume the budget; once the budget is exhausted, the timeout is
        notified as an error. All other errors, the broken connections included,
        are notified and end the stream.
        """
        budget = retry_count
        try:
            while True:
                try:
                    await self._stream()
                except errors.APITimeoutError as e:
                    if budget is not None and budget <= 0:
                        self.logger.error(f"The watch-stream has timed out, no retries left: {e}")
                        await self._emit('error', e)
                        return
                    budget = None if budget is None else budget - 1
                    self.logger.debug(f"The watch-stream has timed out, reconnecting: {e}")
                except errors.ClientError as e:
                    if self.state == SessionState.STOPPED:
                        return  # the stream is closed by stopping, not by the server.
                    self.logger.error(f"The watch-stream has failed: {e!r}")
                    await self._emit('error', e)
                    return
                else:
                    self.logger.debug("The watch-stream is closed by the server, reconnecting.")
                    budget = retry_count

                self.state = SessionState.RECONNECTING
                await asyncio.sleep(self.dispatcher.settings.watching.reconnect_backoff)
        finally:
            self._readers -= 1
            if self._readers <= 0:
                self._finish()

    async def _stream(self) -> None:
        """ Open one stream and process its events until the stream is over. """
        settings = self.dispatcher.settings
        params: Dict[str, str] = {}
        params['watch'] = 'true'
        if self.resource_version is not None:
            params['resourceVersion'] = self.resource_version
        if settings.watching.server_timeout is not None:
            params['timeoutSeconds'] = str(settings.watching.server_timeout)

        connect_timeout = (
            settings.watching.connect_timeout if settings.watching.connect_timeout is not None else
            settings.networking.connect_timeout if settings.networking.connect_timeout is not None else
            settings.networking.request_timeout
        )

        # The token and the URL are re-derived every time: the token could be refreshed meanwhile.
        operation = dataclasses.replace(
            self.operation,
            params=dict(self.operation.params, **params),
            timeout=None,
            verbose=False,
        )
        self.logger.debug(f"Watching the changes since resourceVersion={self.resource_version!r}.")
        response = await self.dispatcher.open(
            operation,
            logger=self.logger,
            timeout=aiohttp.ClientTimeout(
                total=settings.watching.client_timeout,
                sock_connect=connect_timeout,
                sock_read=settings.watching.sock_read_timeout,
            ),
        )
        self.dispatcher.context.add_response(response)
        self._responses.add(response)
        try:
            async with response:
                self.state = SessionState.CONNECTED
                envelope = api.Response(status=response.status, headers=dict(response.headers),
                                        body=None)
                await self._emit('response', envelope)

                decoder = FrameDecoder(max_frame_size=settings.watching.max_frame_size)
                async for chunk in api.iter_chunks(response.content):
                    try:
                        for raw_event in decoder.feed(chunk):
                            await self._process(raw_event)
                    except errors.WatchFrameError as e:
                        self.logger.error(f"Malformed data in the watch-stream: {e}")
                        await self._emit('error', e)
        finally:
            self._responses.discard(response)

    async def _process(self, raw_event: Any) -> None:
        raw_type = raw_event.get('type') if isinstance(raw_event, collections.abc.Mapping) else None
        kind = EVENT_KINDS.get(raw_type) if isinstance(raw_type, str) else None
        if kind is None:
            raw_object = raw_event.get('object', raw_event) if raw_type is not None else raw_event
            self.logger.error(f"Unexpected event in the watch-stream: {raw_event!r}")
            await self._emit('error', raw_object)
            return

        raw_object = raw_event.get('object')
        await self._emit(kind, raw_object)

        if isinstance(raw_object, collections.abc.Mapping):
            metadata = raw_object.get('metadata') or {}
            name = metadata.get('name')
            version = metadata.get('resourceVersion')
            self._advance(version)
            self.logger.debug(f"Watch-event {raw_type} for {name!r} "
                              f"at resourceVersion={self.resource_version!r}.")

    def _advance(self, version: Optional[str]) -> None:
        """
        Remember the newer resource version. Never go back to the older ones.

        The versions are opaque, but they are comparable if they are numeric
        (which they are in practice). Non-numeric versions are always taken.
        """
        if not version:
            return
        current = self.resource_version
        if (current is not None and str(current).isdigit() and str(version).isdigit() and
                int(version) < int(current)):
            self.logger.debug(f"Ignoring an older resourceVersion={version!r} (at {current!r}).")
            return
        self.resource_version = version

    async def _emit(self, kind: str, payload: Any) -> None:
        notification = Notification(kind=kind, payload=payload)
        for callback in list(self._callbacks.get(kind, [])):
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        for queue in list(self._queues):
            queue.put_nowait(notification)

    def _finish(self) -> None:
        self.state = SessionState.STOPPED
        for queue in list(self._queues):
            queue.put_nowait(None)
        self._queues.clear()
