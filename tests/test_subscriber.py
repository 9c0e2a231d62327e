import io
import socket

import pytest

from topicbroker.protocol import Op, receive_data, send_command_resp, send_frame, send_quit
from topicbroker.subscriber import (
    EXIT_FAILURE,
    EXIT_OK,
    SUBSCRIBE_MESSAGE,
    UNSUBSCRIBE_MESSAGE,
    Subscriber,
    main,
)

HOST = "127.0.0.1"


@pytest.fixture
def session():
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind((HOST, 0))
    listener.listen(1)
    port = listener.getsockname()[1]
    out = io.StringIO()
    sub = Subscriber("C1", HOST, port, out=out)
    conn, _ = listener.accept()
    conn.settimeout(5)
    try:
        yield sub, conn, out, port
    finally:
        sub.close()
        conn.close()
        listener.close()


def test_connect_request_is_sent(session):
    sub, conn, _, port = session
    assert receive_data(conn) == f"{int(Op.CLIENT_CONNECT)} C1 {HOST} {port}"


def test_subscribe_command(session):
    sub, conn, _, port = session
    receive_data(conn)
    sub.handle_command("subscribe a/b\n")
    assert receive_data(conn) == f"{int(Op.CLIENT_SUBSCRIBE)} a/b C1 {HOST} {port}"


def test_unsubscribe_command(session):
    sub, conn, _, port = session
    receive_data(conn)
    sub.handle_command("unsubscribe a/+\n")
    assert receive_data(conn) == f"{int(Op.CLIENT_UNSUBSCRIBE)} a/+ C1 {HOST} {port}"


def test_exit_command(session):
    sub, conn, _, port = session
    receive_data(conn)
    sub.handle_command("exit\n")
    assert receive_data(conn) == f"{int(Op.CLIENT_EXIT)} C1 {HOST} {port}"


@pytest.mark.parametrize("line", ["hello\n", "subscribe\n", "\n", "unsubscribe   \n"])
def test_ignored_commands_send_nothing(session, line):
    sub, conn, _, port = session
    receive_data(conn)
    sub.handle_command(line)
    sub.handle_command("exit\n")
    assert receive_data(conn) == f"{int(Op.CLIENT_EXIT)} C1 {HOST} {port}"


def test_subscribe_success_prints(session):
    sub, _, out, _ = session
    assert sub.handle_server_message("1 4 a/b C1 127.0.0.1 4040") is None
    assert out.getvalue() == SUBSCRIBE_MESSAGE + "a/b\n"


def test_unsubscribe_success_prints(session):
    sub, _, out, _ = session
    assert sub.handle_server_message("1 5 a/b C1 127.0.0.1 4040") is None
    assert out.getvalue() == UNSUBSCRIBE_MESSAGE + "a/b\n"


def test_notification_is_printed_without_op(session):
    sub, _, out, _ = session
    assert sub.handle_server_message("2 upb/temp - INT - 5") is None
    assert out.getvalue() == "upb/temp - INT - 5\n"


def test_failed_connect_ends_with_failure(session):
    sub, _, out, _ = session
    assert sub.handle_server_message("0 6 C1 127.0.0.1 4040") == EXIT_FAILURE
    assert out.getvalue() == ""


def test_other_failure_is_ignored(session):
    sub, _, out, _ = session
    assert sub.handle_server_message("0 4 a/b C1 127.0.0.1 4040") is None
    assert out.getvalue() == ""


@pytest.mark.parametrize("data", ["1 3 C1 127.0.0.1 4040", "7"])
def test_exit_and_quit_end_session(session, data):
    sub, _, _, _ = session
    assert sub.handle_server_message(data) == EXIT_OK


def test_run_stops_on_quit(session):
    sub, conn, out, _ = session
    receive_data(conn)
    send_command_resp(Op.SEND_SUCCESS, conn, "4 x/y C1 127.0.0.1 4040")
    send_frame(conn, "2 x/y - STRING - hi")
    send_quit(conn)
    assert sub.run() == EXIT_OK
    assert out.getvalue().splitlines() == [SUBSCRIBE_MESSAGE + "x/y", "x/y - STRING - hi"]


def test_run_fails_on_rejected_connect(session):
    sub, conn, _, _ = session
    request = receive_data(conn)
    send_command_resp(Op.SEND_FAIL, conn, request)
    assert sub.run() == EXIT_FAILURE


def test_run_stops_when_server_closes(session):
    sub, conn, _, _ = session
    receive_data(conn)
    conn.shutdown(socket.SHUT_RDWR)
    assert sub.run() == EXIT_OK


@pytest.mark.parametrize(
    "argv",
    [[], ["C1", "127.0.0.1"], ["C1", "1.2.3", "4040"], ["C1", "127.0.0.1", "port"],
     ["C1", "127.0.0.1", "70000"]],
)
def test_main_rejects_bad_arguments(argv, capsys):
    assert main(argv) == 1
    assert "Please use executable correctly" in capsys.readouterr().err