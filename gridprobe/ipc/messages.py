"""
Debug Adapter Protocol messages exchanged with the adapter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class MessageType(Enum):
    """Kinds of DAP protocol messages."""

    REQUEST = 'request'     # Client -> adapter
    RESPONSE = 'response'   # Adapter -> client, answers a request
    EVENT = 'event'         # Adapter -> client, unsolicited


@dataclass
class Message:
    """A DAP protocol message."""
    msg_type: MessageType
    seq: int = 0
    command: Optional[str] = None          # request / response
    event: Optional[str] = None            # event
    request_seq: Optional[int] = None      # response
    success: bool = True                   # response
    message: Optional[str] = None          # response error text
    arguments: Dict[str, Any] = field(default_factory=dict)   # request
    body: Dict[str, Any] = field(default_factory=dict)        # response / event

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON object sent on the wire."""
        payload: Dict[str, Any] = {'seq': self.seq, 'type': self.msg_type.value}
        if self.msg_type is MessageType.REQUEST:
            payload['command'] = self.command
            if self.arguments:
                payload['arguments'] = self.arguments
        elif self.msg_type is MessageType.RESPONSE:
            payload['request_seq'] = self.request_seq
            payload['success'] = self.success
            payload['command'] = self.command
            if self.message:
                payload['message'] = self.message
            payload['body'] = self.body
        else:
            payload['event'] = self.event
            payload['body'] = self.body
        return payload

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Message':
        """Create from a decoded JSON object.

        Raises:
            ValueError: unknown or missing message type.
        """
        msg_type = MessageType(d.get('type'))
        body = d.get('body')
        arguments = d.get('arguments')
        return cls(
            msg_type=msg_type,
            seq=int(d.get('seq', 0)),
            command=d.get('command'),
            event=d.get('event'),
            request_seq=d.get('request_seq'),
            success=bool(d.get('success', True)),
            message=d.get('message'),
            arguments=arguments if isinstance(arguments, dict) else {},
            body=body if isinstance(body, dict) else {},
        )


# Factory functions for the requests gridprobe issues

def make_request(seq: int, command: str, arguments: Optional[Dict[str, Any]] = None) -> Message:
    """Create a request message."""
    return Message(
        msg_type=MessageType.REQUEST,
        seq=seq,
        command=command,
        arguments=dict(arguments or {}),
    )


def make_threads_request(seq: int) -> Message:
    """Create a `threads` request."""
    return make_request(seq, 'threads')


def make_stack_trace_request(seq: int, thread_id: int, levels: int = 1) -> Message:
    """Create a `stackTrace` request for the innermost `levels` frames."""
    return make_request(seq, 'stackTrace', {
        'threadId': thread_id,
        'startFrame': 0,
        'levels': levels,
    })


def make_evaluate_request(seq: int, expression: str, frame_id: int, context: str = 'watch') -> Message:
    """Create an `evaluate` request."""
    return make_request(seq, 'evaluate', {
        'expression': expression,
        'frameId': frame_id,
        'context': context,
    })


def make_variables_request(seq: int, reference: int, start: int, count: int) -> Message:
    """Create a paged `variables` request."""
    return make_request(seq, 'variables', {
        'variablesReference': reference,
        'start': start,
        'count': count,
    })


def make_response(
    request: Message,
    seq: int,
    body: Optional[Dict[str, Any]] = None,
    success: bool = True,
    message: Optional[str] = None,
) -> Message:
    """Create a response to `request` (used by test adapters)."""
    return Message(
        msg_type=MessageType.RESPONSE,
        seq=seq,
        command=request.command,
        request_seq=request.seq,
        success=success,
        message=message,
        body=dict(body or {}),
    )


def make_event(seq: int, event: str, body: Optional[Dict[str, Any]] = None) -> Message:
    """Create an event message (used by test adapters)."""
    return Message(
        msg_type=MessageType.EVENT,
        seq=seq,
        event=event,
        body=dict(body or {}),
    )
