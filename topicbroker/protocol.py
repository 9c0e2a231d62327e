"""Length-prefixed text framing used between the broker and its subscribers.

Every frame is a 4-byte big-endian length followed by that many bytes of
text. The text starts with an operation code (see :class:`Op`) and a space.
"""

from __future__ import annotations

import socket
import struct
from enum import IntEnum
from typing import Protocol

BUFFER_MAX_LEN = 1_000_000

_HEADER = struct.Struct("!I")
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class Op(IntEnum):
    """Operation codes carried at the start of every frame."""

    SEND_FAIL = 0
    SEND_SUCCESS = 1
    SEND_BUFFER = 2
    CLIENT_EXIT = 3
    CLIENT_SUBSCRIBE = 4
    CLIENT_UNSUBSCRIBE = 5
    CLIENT_CONNECT = 6
    QUIT = 7


class ConnectionClosed(ConnectionError):
    """The peer closed the connection before a whole frame arrived."""


class _Serializable(Protocol):
    def serialize(self) -> str: ...


def _to_bytes(payload: str | bytes) -> bytes:
    if isinstance(payload, str):
        return payload.encode(_ENCODING, _ERRORS)
    return bytes(payload)


def encode_frame(payload: str | bytes) -> bytes:
    """Return ``payload`` prefixed with its length as a 4-byte big-endian integer."""
    body = _to_bytes(payload)
    return _HEADER.pack(len(body)) + body


def recv_exact(sock: socket.socket, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``sock``.

    Raises ConnectionClosed if the peer closes the connection first.
    """
    buffer = bytearray()
    while len(buffer) < size:
        chunk = sock.recv(size - len(buffer))
        if not chunk:
            raise ConnectionClosed(
                f"connection closed after {len(buffer)} of {size} bytes"
            )
        buffer.extend(chunk)
    return bytes(buffer)


def send_frame(sock: socket.socket, payload: str | bytes) -> None:
    """Send ``payload`` as a single length-prefixed frame."""
    sock.sendall(encode_frame(payload))


def receive_data(sock: socket.socket) -> str:
    """Receive one frame and return its text."""
    (size,) = _HEADER.unpack(recv_exact(sock, _HEADER.size))
    return recv_exact(sock, size).decode(_ENCODING, _ERRORS)


def _message(op: int, *parts: str) -> str:
    return " ".join((str(int(op)), *parts))


def send_exit(client: _Serializable, sock: socket.socket) -> None:
    """Tell the server that ``client`` is leaving."""
    send_frame(sock, _message(Op.CLIENT_EXIT, client.serialize()))


def send_sub_unsub(client: _Serializable, op: int, topic: str, sock: socket.socket) -> None:
    """Send a subscribe or unsubscribe request for ``topic``."""
    send_frame(sock, _message(op, topic, client.serialize()))


def send_connect_request(client: _Serializable, sock: socket.socket) -> None:
    """Announce ``client`` to the server."""
    send_frame(sock, _message(Op.CLIENT_CONNECT, client.serialize()))


def send_command_resp(op: int, sock: socket.socket, old_message: str) -> None:
    """Answer a request with ``op`` followed by the request it answers."""
    send_frame(sock, _message(op, old_message))


def send_response_data(data: str, sock: socket.socket) -> None:
    """Deliver a notification to a subscriber."""
    send_frame(sock, _message(Op.SEND_BUFFER, data))


def send_quit(sock: socket.socket) -> None:
    """Tell a subscriber that the server is shutting down."""
    send_frame(sock, _message(Op.QUIT))


def shutdown_and_close(sock: socket.socket) -> None:
    """Shut down both directions of ``sock`` and close it."""
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()