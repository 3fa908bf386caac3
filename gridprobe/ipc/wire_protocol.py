import json
from typing import List, Optional, Tuple

from .messages import Message

HEADER_DELIMITER = b'\r\n\r\n'
CONTENT_LENGTH = b'content-length'

# Refuse absurd frames rather than buffering them
MAX_CONTENT_LENGTH = 64 * 1024 * 1024


class ProtocolError(Exception):
    """Raised when wire protocol constraints are violated."""
    pass


def encode_message(msg: Message) -> bytes:
    """
    Encode a Message into a framed byte stream.
    Format: Content-Length: <N>\\r\\n\\r\\n<N bytes of UTF-8 JSON>
    """
    body = json.dumps(msg.to_dict(), separators=(',', ':')).encode('utf-8')
    header = f"Content-Length: {len(body)}\r\n\r\n".encode('ascii')
    return header + body


def parse_header(header: bytes) -> int:
    """
    Parse a header block (without the blank-line delimiter) and return the
    content length.
    """
    content_length: Optional[int] = None
    for raw_line in header.split(b'\r\n'):
        line = raw_line.strip()
        if not line:
            continue
        name, sep, value = line.partition(b':')
        if not sep:
            raise ProtocolError(f"Malformed header line: {raw_line!r}")
        if name.strip().lower() == CONTENT_LENGTH:
            try:
                content_length = int(value.strip())
            except ValueError:
                raise ProtocolError(f"Invalid Content-Length: {value!r}")
    if content_length is None:
        raise ProtocolError("Missing Content-Length header")
    if content_length < 0 or content_length > MAX_CONTENT_LENGTH:
        raise ProtocolError(f"Content-Length out of range: {content_length}")
    return content_length


def decode_body(body: bytes) -> Message:
    """
    Decode a frame body into a Message.
    """
    try:
        payload = json.loads(body.decode('utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Failed to parse JSON body: {e}")
    if not isinstance(payload, dict):
        raise ProtocolError("Message body is not a JSON object")
    try:
        return Message.from_dict(payload)
    except (ValueError, TypeError) as e:
        raise ProtocolError(f"Invalid message: {e}")


def decode_message(data: bytes) -> Message:
    """
    Decode exactly one framed message.
    """
    messages, rest = FrameDecoder.split(data)
    if not messages:
        raise ProtocolError("Message truncated")
    if len(messages) > 1 or rest:
        raise ProtocolError("Trailing data after message")
    return messages[0]


class FrameDecoder:
    """Incremental decoder for a byte stream of framed messages."""

    def __init__(self):
        self._buffer = bytearray()

    def feed(self, data: bytes) -> List[Message]:
        """Add bytes and return every message completed by them."""
        self._buffer.extend(data)
        messages, rest = self.split(bytes(self._buffer))
        self._buffer = bytearray(rest)
        return messages

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a full message."""
        return len(self._buffer)

    @staticmethod
    def split(data: bytes) -> Tuple[List[Message], bytes]:
        messages: List[Message] = []
        offset = 0
        while True:
            end = data.find(HEADER_DELIMITER, offset)
            if end < 0:
                break
            length = parse_header(data[offset:end])
            body_start = end + len(HEADER_DELIMITER)
            if len(data) - body_start < length:
                break
            messages.append(decode_body(data[body_start:body_start + length]))
            offset = body_start + length
        return messages, data[offset:]
