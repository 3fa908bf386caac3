"""
Debug Adapter Protocol client session.

Implements InspectionSession over a StreamTransport:

- threads / stackTrace / evaluate / variables requests
- responses matched to requests by request_seq
- events dispatched to listeners ('stopped' drives view refreshes)
- the attach handshake used by the command line entry point
"""

import asyncio
import itertools
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set

from gridprobe.core.session import InspectionSession, SessionError
from gridprobe.core.variable_handle import VariableHandle, handle_from_evaluate, handle_from_variable
from gridprobe.logging import get_logger, trace_print
from .messages import (
    Message,
    MessageType,
    make_evaluate_request,
    make_request,
    make_response,
    make_stack_trace_request,
    make_threads_request,
    make_variables_request,
)
from .stream_transport import ConnectionClosed, StreamTransport
from .wire_protocol import ProtocolError

logger = get_logger(__name__)

EventListener = Callable[[Message], None]

# Listener key receiving every event
ALL_EVENTS = '*'


class DapSession(InspectionSession):
    """
    Client side of one debug adapter connection.

    Call start() before issuing requests so responses are read.
    """

    def __init__(self, transport: StreamTransport, request_timeout: float = 10.0):
        self._transport = transport
        self._request_timeout = request_timeout
        self._seq = itertools.count(1)
        self._pending: Dict[int, asyncio.Future] = {}
        self._listeners: Dict[str, List[EventListener]] = defaultdict(list)
        self._reader_task: Optional[asyncio.Task] = None
        self._reply_tasks: Set[asyncio.Task] = set()
        self._stopped = asyncio.Event()
        self._initialized = asyncio.Event()
        self._closed = False
        self.capabilities: Dict[str, Any] = {}

    @classmethod
    async def connect(cls, host: str, port: int, timeout: float = 5.0, request_timeout: float = 10.0) -> 'DapSession':
        """Connect to an adapter listening on host:port and start reading."""
        transport = await StreamTransport.connect(host, port, timeout=timeout)
        session = cls(transport, request_timeout=request_timeout)
        session.start()
        logger.info(f"Connected to debug adapter at {host}:{port}")
        return session

    # === Lifecycle ===

    def start(self) -> None:
        """Start the background reader task."""
        if self._reader_task is None:
            self._reader_task = asyncio.get_running_loop().create_task(self._read_loop())

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_stopped(self) -> bool:
        """True while the debuggee is known to be paused."""
        return self._stopped.is_set()

    async def close(self) -> None:
        """Stop reading, fail pending requests and close the transport."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None
        self._fail_pending("session closed")
        self._closed = True
        await self._transport.close()

    async def _read_loop(self) -> None:
        try:
            while True:
                msg = await self._transport.recv_message()
                self._dispatch(msg)
        except ConnectionClosed as e:
            logger.info(f"Debug adapter connection closed: {e}")
            self._fail_pending(f"connection closed: {e}")
        except ProtocolError as e:
            logger.error(f"Protocol error from debug adapter: {e}")
            self._fail_pending(f"protocol error: {e}")
        finally:
            self._closed = True

    def _fail_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(SessionError('request', reason))

    def _dispatch(self, msg: Message) -> None:
        if msg.msg_type is MessageType.RESPONSE:
            future = self._pending.pop(msg.request_seq, None)
            if future is None:
                logger.debug(f"Unmatched response for request_seq={msg.request_seq}")
            elif not future.done():
                future.set_result(msg)
        elif msg.msg_type is MessageType.EVENT:
            self._on_event(msg)
        else:
            # Reverse requests (runInTerminal, startDebugging) are not supported
            logger.debug(f"Declining reverse request '{msg.command}'")
            reply = make_response(msg, next(self._seq), success=False, message="not supported")
            task = asyncio.get_running_loop().create_task(self._send_quietly(reply))
            self._reply_tasks.add(task)
            task.add_done_callback(self._reply_tasks.discard)

    async def _send_quietly(self, msg: Message) -> None:
        try:
            await self._transport.send_message(msg)
        except ConnectionClosed as e:
            logger.debug(f"Could not send {msg.command} reply: {e}")

    def _on_event(self, msg: Message) -> None:
        if msg.event == 'stopped':
            self._stopped.set()
        elif msg.event == 'initialized':
            self._initialized.set()
        elif msg.event in ('continued', 'exited', 'terminated'):
            self._stopped.clear()
        trace_print(f"EVENT {msg.event}")

        for listener in self._listeners.get(msg.event, []) + self._listeners.get(ALL_EVENTS, []):
            try:
                listener(msg)
            except Exception:
                logger.exception(f"Event listener failed for '{msg.event}'")

    # === Events ===

    def add_event_listener(self, event: str, listener: EventListener) -> None:
        """Call `listener(msg)` for each `event` (or every event with ALL_EVENTS)."""
        self._listeners[event].append(listener)

    def remove_event_listener(self, event: str, listener: EventListener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    async def wait_for_event(self, event: str, timeout: Optional[float] = None) -> Message:
        """Wait for the next `event`."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def _listener(msg: Message) -> None:
            if not future.done():
                future.set_result(msg)

        self.add_event_listener(event, _listener)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.remove_event_listener(event, _listener)

    async def wait_until_stopped(self, timeout: Optional[float] = None) -> None:
        """Wait until the debuggee reports a pause."""
        await asyncio.wait_for(self._stopped.wait(), timeout)

    # === Requests ===

    async def send_request(self, command: str, arguments: Optional[Dict[str, Any]] = None) -> asyncio.Future:
        """Send a request and return the future of its response message."""
        return await self._send(make_request(next(self._seq), command, arguments))

    async def _send(self, msg: Message) -> asyncio.Future:
        if self._closed:
            raise SessionError(msg.command or 'request', "session closed")
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[msg.seq] = future
        try:
            await self._transport.send_message(msg)
        except ConnectionClosed as e:
            self._pending.pop(msg.seq, None)
            raise SessionError(msg.command or 'request', str(e)) from e
        trace_print(f"REQUEST #{msg.seq} {msg.command} {msg.arguments}")
        return future

    async def await_response(self, command: str, future: asyncio.Future) -> Dict[str, Any]:
        """Wait for a response future and return its body.

        Raises:
            SessionError: error response, timeout or lost connection.
        """
        try:
            response: Message = await asyncio.wait_for(future, self._request_timeout)
        except asyncio.TimeoutError:
            self._forget(future)
            raise SessionError(command, f"no response within {self._request_timeout}s")
        if not response.success:
            error = response.body.get('error')
            detail = error.get('format', '') if isinstance(error, dict) else ''
            raise SessionError(command, response.message or detail)
        return response.body

    def _forget(self, future: asyncio.Future) -> None:
        for seq, pending in list(self._pending.items()):
            if pending is future:
                del self._pending[seq]

    async def request(self, command: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a request and return the response body."""
        future = await self.send_request(command, arguments)
        return await self.await_response(command, future)

    async def _call(self, msg: Message) -> Dict[str, Any]:
        future = await self._send(msg)
        return await self.await_response(msg.command or 'request', future)

    # === InspectionSession ===

    async def list_threads(self) -> List[int]:
        body = await self._call(make_threads_request(next(self._seq)))
        return [t['id'] for t in body.get('threads') or [] if isinstance(t, dict) and 'id' in t]

    async def list_stack_frames(self, thread_id: int, levels: int = 1) -> List[int]:
        body = await self._call(make_stack_trace_request(next(self._seq), thread_id, levels))
        return [f['id'] for f in body.get('stackFrames') or [] if isinstance(f, dict) and 'id' in f]

    async def evaluate(self, expression: str, frame_id: int) -> VariableHandle:
        body = await self._call(make_evaluate_request(next(self._seq), expression, frame_id))
        return handle_from_evaluate(expression, body)

    async def list_children(self, reference: int, offset: int, count: int) -> List[VariableHandle]:
        body = await self._call(make_variables_request(next(self._seq), reference, offset, count))
        return [handle_from_variable(v) for v in body.get('variables') or [] if isinstance(v, dict)]

    # === Handshake ===

    async def initialize(self, adapter_id: str = 'gridprobe') -> Dict[str, Any]:
        """Send `initialize` and remember the adapter's capabilities."""
        self.capabilities = await self.request('initialize', {
            'clientID': 'gridprobe',
            'clientName': 'gridprobe',
            'adapterID': adapter_id,
            'linesStartAt1': True,
            'columnsStartAt1': True,
            'pathFormat': 'path',
            'supportsVariableType': True,
            'supportsVariablePaging': True,
        })
        return self.capabilities

    async def attach(self, arguments: Optional[Dict[str, Any]] = None, initialized_timeout: float = 10.0) -> None:
        """Attach and finish configuration.

        Some adapters only answer `attach` after `configurationDone`, so the
        attach response is awaited last. The `initialized` event may arrive
        before or after the attach request is sent.
        """
        attach_future = await self.send_request('attach', arguments or {})
        try:
            await asyncio.wait_for(self._initialized.wait(), initialized_timeout)
        except asyncio.TimeoutError:
            logger.warning("No 'initialized' event from adapter, sending configurationDone anyway")
        await self.request('configurationDone')
        await self.await_response('attach', attach_future)

    async def pause(self, thread_id: Optional[int] = None) -> None:
        """Ask the adapter to pause a thread (the first one if not given)."""
        if thread_id is None:
            threads = await self.list_threads()
            if not threads:
                raise SessionError('pause', "no threads")
            thread_id = threads[0]
        await self.request('pause', {'threadId': thread_id})

    async def disconnect(self, terminate_debuggee: bool = False) -> None:
        """Send `disconnect`, ignoring a failure, then close."""
        try:
            await self.request('disconnect', {'terminateDebuggee': terminate_debuggee})
        except SessionError as e:
            logger.debug(f"disconnect: {e}")
        await self.close()


async def open_session(
    host: str,
    port: int,
    attach_args: Optional[Dict[str, Any]] = None,
    pause: bool = False,
    wait_timeout: Optional[float] = None,
) -> DapSession:
    """Connect, run the attach handshake and wait for the debuggee to pause."""
    session = await DapSession.connect(host, port)
    try:
        await session.initialize()
        await session.attach(attach_args)
        if pause:
            await session.pause()
        await session.wait_until_stopped(wait_timeout)
    except BaseException:
        await session.close()
        raise
    return session
