import asyncio

from .messages import Message
from .wire_protocol import HEADER_DELIMITER, ProtocolError, decode_body, encode_message, parse_header


class ConnectionClosed(Exception):
    """Raised when the stream is closed by the peer or due to an error."""
    pass


class StreamTransport:
    """Framed DAP message transport over an asyncio stream pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self._send_lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def connect(cls, host: str = "127.0.0.1", port: int = 0, timeout: float = 5.0) -> "StreamTransport":
        """Open a TCP connection to a debug adapter."""
        try:
            reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Connecting to {host}:{port} timed out")
        except OSError as e:
            raise ConnectionError(str(e)) from e
        return cls(reader, writer)

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def send_message(self, msg: Message) -> None:
        """Send one framed message."""
        if self._closed:
            raise ConnectionClosed("Transport is closed")
        data = encode_message(msg)
        async with self._send_lock:
            try:
                self.writer.write(data)
                await self.writer.drain()
            except (BrokenPipeError, ConnectionResetError, OSError) as e:
                raise ConnectionClosed(str(e)) from e

    async def recv_message(self) -> Message:
        """Receive one framed message."""
        try:
            header = await self.reader.readuntil(HEADER_DELIMITER)
        except asyncio.IncompleteReadError as e:
            raise ConnectionClosed("Stream closed by peer") from e
        except asyncio.LimitOverrunError as e:
            raise ProtocolError("Header block too large") from e
        except (ConnectionResetError, OSError) as e:
            raise ConnectionClosed(str(e)) from e

        length = parse_header(header[:-len(HEADER_DELIMITER)])
        try:
            body = await self.reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ConnectionClosed("Stream closed mid-message") from e
        except (ConnectionResetError, OSError) as e:
            raise ConnectionClosed(str(e)) from e
        return decode_body(body)

    async def close(self) -> None:
        """Close the transport."""
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionResetError, BrokenPipeError, OSError):
            pass
