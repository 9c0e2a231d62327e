"""A subscriber: connects to the broker and prints the notifications it gets.

Commands read from standard input:

* ``subscribe <topic>`` asks the broker for messages on ``topic``;
* ``unsubscribe <topic>`` cancels such a subscription;
* ``exit`` asks the broker to disconnect this subscriber.
"""

from __future__ import annotations

import selectors
import socket
import sys
from enum import Enum, auto
from typing import IO, Optional, Sequence

from topicbroker.cli_checks import is_ip_address, is_port_number
from topicbroker.protocol import (
    ConnectionClosed,
    Op,
    receive_data,
    send_connect_request,
    send_exit,
    send_sub_unsub,
    shutdown_and_close,
)
from topicbroker.topics import Client

SUBSCRIBE_MESSAGE = "Subscribed to topic "
UNSUBSCRIBE_MESSAGE = "Unsubscribed from topic "

EXIT_OK = 0
EXIT_FAILURE = 1


class _Source(Enum):
    SERVER = auto()
    STDIN = auto()


def _parse_int(tokens: Sequence[str], index: int) -> Optional[int]:
    try:
        return int(tokens[index])
    except (IndexError, ValueError):
        return None


class Subscriber:
    """A connection to the broker on behalf of one client id."""

    def __init__(
        self,
        client_id: str,
        ip: str,
        port: int,
        stdin: Optional[IO[str]] = None,
        out: Optional[IO[str]] = None,
    ) -> None:
        self.out = out if out is not None else sys.stdout
        self.client = Client(client_id, port, ip)
        self._stdin = stdin
        self._selector = selectors.DefaultSelector()
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self.sock.connect((ip, port))
            send_connect_request(self.client, self.sock)
        except OSError:
            self._selector.close()
            self.sock.close()
            raise
        self._selector.register(self.sock, selectors.EVENT_READ, _Source.SERVER)
        if stdin is not None:
            self._selector.register(stdin, selectors.EVENT_READ, _Source.STDIN)

    def __enter__(self) -> Subscriber:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _print(self, message: str) -> None:
        print(message, file=self.out, flush=True)

    def run(self) -> int:
        """Handle events until the session ends; return the exit status."""
        while True:
            for key, _ in self._selector.select():
                if key.data is _Source.SERVER:
                    try:
                        data = receive_data(self.sock)
                    except (ConnectionClosed, OSError):
                        return EXIT_OK
                    status = self.handle_server_message(data)
                    if status is not None:
                        return status
                else:
                    line = self._stdin.readline()
                    if not line:
                        self._selector.unregister(self._stdin)
                    else:
                        self.handle_command(line)

    def handle_server_message(self, data: str) -> Optional[int]:
        """Act on one frame from the broker.

        Returns an exit status when the session is over, otherwise None.
        """
        tokens = data.split()
        op = _parse_int(tokens, 0)
        if op == Op.SEND_FAIL:
            if _parse_int(tokens, 1) == Op.CLIENT_CONNECT:
                return EXIT_FAILURE
        elif op == Op.SEND_SUCCESS:
            answered = _parse_int(tokens, 1)
            if answered == Op.CLIENT_SUBSCRIBE and len(tokens) > 2:
                self._print(SUBSCRIBE_MESSAGE + tokens[2])
            elif answered == Op.CLIENT_UNSUBSCRIBE and len(tokens) > 2:
                self._print(UNSUBSCRIBE_MESSAGE + tokens[2])
            elif answered == Op.CLIENT_EXIT:
                return EXIT_OK
        elif op == Op.SEND_BUFFER:
            self._print(data[2:])
        elif op == Op.QUIT:
            return EXIT_OK
        return None

    def handle_command(self, line: str) -> None:
        """Send the request for a line typed on standard input."""
        tokens = line.split()
        if not tokens:
            return
        command = tokens[0]
        if command == "exit":
            send_exit(self.client, self.sock)
        elif command in ("subscribe", "unsubscribe") and len(tokens) > 1:
            op = Op.CLIENT_SUBSCRIBE if command == "subscribe" else Op.CLIENT_UNSUBSCRIBE
            send_sub_unsub(self.client, op, tokens[1], self.sock)

    def close(self) -> None:
        """Release the connection to the broker."""
        self._selector.close()
        shutdown_and_close(self.sock)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a subscriber: ``<client id> <server ip> <server port>``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 3 or not is_ip_address(args[1]) or not is_port_number(args[2]):
        print("Please use executable correctly", file=sys.stderr)
        return EXIT_FAILURE
    try:
        subscriber = Subscriber(args[0], args[1], int(args[2]), stdin=sys.stdin)
    except OSError as exc:
        print(exc, file=sys.stderr)
        return EXIT_FAILURE
    with subscriber:
        return subscriber.run()


if __name__ == "__main__":
    raise SystemExit(main())