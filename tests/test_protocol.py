import socket
from dataclasses import dataclass

import pytest

from topicbroker.protocol import (
    ConnectionClosed,
    Op,
    encode_frame,
    receive_data,
    recv_exact,
    send_command_resp,
    send_connect_request,
    send_exit,
    send_frame,
    send_quit,
    send_response_data,
    send_sub_unsub,
    shutdown_and_close,
)


@dataclass
class _FakeClient:
    text: str

    def serialize(self):
        return self.text


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    left.settimeout(5)
    right.settimeout(5)
    yield left, right
    left.close()
    right.close()


def test_encode_frame_layout():
    assert encode_frame("abc") == b"\x00\x00\x00\x03abc"


def test_encode_frame_accepts_bytes_and_str_alike():
    assert encode_frame(b"hello world") == encode_frame("hello world")


def test_frame_round_trip(pair):
    left, right = pair
    send_frame(left, "6 C1 127.0.0.1 4040")
    assert receive_data(right) == "6 C1 127.0.0.1 4040"


def test_several_frames_keep_boundaries(pair):
    left, right = pair
    send_frame(left, "first")
    send_frame(left, "second message")
    assert receive_data(right) == "first"
    assert receive_data(right) == "second message"


def test_recv_exact_joins_chunks(pair):
    left, right = pair
    left.sendall(b"ab")
    left.sendall(b"cd")
    assert recv_exact(right, 4) == b"abcd"


def test_receive_on_closed_peer_raises(pair):
    left, right = pair
    left.close()
    with pytest.raises(ConnectionClosed):
        receive_data(right)


def test_truncated_frame_raises(pair):
    left, right = pair
    left.sendall(encode_frame("complete payload")[:7])
    left.close()
    with pytest.raises(ConnectionClosed):
        receive_data(right)


def test_send_exit(pair):
    left, right = pair
    send_exit(_FakeClient("C1 127.0.0.1 4040"), left)
    assert receive_data(right) == f"{int(Op.CLIENT_EXIT)} C1 127.0.0.1 4040"


def test_send_connect_request(pair):
    left, right = pair
    send_connect_request(_FakeClient("C2 10.0.0.1 5000"), left)
    assert receive_data(right) == f"{int(Op.CLIENT_CONNECT)} C2 10.0.0.1 5000"


def test_send_sub_unsub(pair):
    left, right = pair
    client = _FakeClient("C1 127.0.0.1 4040")
    send_sub_unsub(client, Op.CLIENT_SUBSCRIBE, "upb/+/temp", left)
    send_sub_unsub(client, Op.CLIENT_UNSUBSCRIBE, "upb/+/temp", left)
    assert receive_data(right) == f"{int(Op.CLIENT_SUBSCRIBE)} upb/+/temp C1 127.0.0.1 4040"
    assert receive_data(right) == f"{int(Op.CLIENT_UNSUBSCRIBE)} upb/+/temp C1 127.0.0.1 4040"


def test_send_command_resp_wraps_old_message(pair):
    left, right = pair
    old = f"{int(Op.CLIENT_SUBSCRIBE)} a/b C1 127.0.0.1 4040"
    send_command_resp(Op.SEND_SUCCESS, left, old)
    reply = receive_data(right)
    op, rest = reply.split(" ", 1)
    assert int(op) == Op.SEND_SUCCESS
    assert rest == old


def test_send_response_data(pair):
    left, right = pair
    send_response_data("a/b - INT - 5", left)
    assert receive_data(right) == f"{int(Op.SEND_BUFFER)} a/b - INT - 5"


def test_send_quit(pair):
    left, right = pair
    send_quit(left)
    assert receive_data(right) == str(int(Op.QUIT))


def test_shutdown_and_close(pair):
    left, right = pair
    shutdown_and_close(left)
    assert left.fileno() == -1
    with pytest.raises(ConnectionClosed):
        receive_data(right)