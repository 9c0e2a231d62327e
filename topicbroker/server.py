"""The broker: takes datagrams from publishers and forwards them to subscribers.

Publishers send datagrams over UDP; subscribers connect over TCP on the same
port and talk the framed protocol of :mod:`topicbroker.protocol`. Typing
``exit`` on standard input stops the broker and disconnects every subscriber.
"""

from __future__ import annotations

import selectors
import socket
import sys
from enum import Enum, auto
from typing import IO, Optional, Sequence

from topicbroker.cli_checks import is_port_number
from topicbroker.datagram import MAX_DATAGRAM_LEN, format_notification, parse_topic
from topicbroker.protocol import (
    ConnectionClosed,
    Op,
    receive_data,
    send_command_resp,
    send_quit,
    shutdown_and_close,
)
from topicbroker.topics import Client, Node, add_path_to_tree, notify_clients, split_topic

MAX_CONNECTIONS = 100


class _Source(Enum):
    UDP = auto()
    LISTENER = auto()
    STDIN = auto()
    CLIENT = auto()


def _parse_op(tokens: Sequence[str]) -> Optional[Op]:
    try:
        return Op(int(tokens[0]))
    except (IndexError, ValueError):
        return None


class Server:
    """A topic broker listening on one port for both UDP and TCP."""

    def __init__(
        self,
        port: int,
        host: str = "",
        stdin: Optional[IO[str]] = None,
        out: Optional[IO[str]] = None,
    ) -> None:
        self.out = out if out is not None else sys.stdout
        self.root = Node()
        self.clients: dict[str, Client] = {}
        self._stdin = stdin
        self._running = False
        self._selector = selectors.DefaultSelector()
        self._udp: Optional[socket.socket] = None
        self._tcp: Optional[socket.socket] = None
        try:
            self._tcp = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._tcp.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._tcp.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self._tcp.bind((host, port))
            self._tcp.listen(MAX_CONNECTIONS)
            self.port: int = self._tcp.getsockname()[1]

            self._udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self._udp.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._udp.bind((host, self.port))
        except OSError:
            self.close()
            raise

        self._selector.register(self._udp, selectors.EVENT_READ, _Source.UDP)
        self._selector.register(self._tcp, selectors.EVENT_READ, _Source.LISTENER)
        if stdin is not None:
            self._selector.register(stdin, selectors.EVENT_READ, _Source.STDIN)

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _print(self, message: str) -> None:
        print(message, file=self.out, flush=True)

    def serve_forever(self) -> None:
        """Handle events until ``exit`` is read from standard input."""
        self._running = True
        while self._running:
            for key, _ in self._selector.select():
                if not self._running:
                    break
                self._dispatch(key)

    def _dispatch(self, key: selectors.SelectorKey) -> None:
        source = key.data
        if source is _Source.UDP:
            try:
                datagram = self._udp.recv(MAX_DATAGRAM_LEN)
            except OSError:
                return
            self.handle_datagram(datagram)
        elif source is _Source.LISTENER:
            self._accept()
        elif source is _Source.STDIN:
            line = self._stdin.readline()
            if not line:
                self._unregister(self._stdin)
            elif self.handle_command(line):
                self._running = False
        else:
            sock = key.fileobj
            try:
                data = receive_data(sock)
            except (ConnectionClosed, OSError):
                self._drop(sock)
                return
            self.handle_request(sock, data)

    def handle_datagram(self, datagram: bytes) -> None:
        """Forward a publisher's datagram to every matching subscriber."""
        try:
            notification = format_notification(datagram)
        except ValueError:
            return
        notify_clients(self.root, split_topic(parse_topic(datagram)), notification)

    def _accept(self) -> None:
        try:
            conn, _ = self._tcp.accept()
        except OSError:
            return
        try:
            data = receive_data(conn)
        except (ConnectionClosed, OSError):
            conn.close()
            return

        tokens = data.split()
        if _parse_op(tokens) is not Op.CLIENT_CONNECT:
            shutdown_and_close(conn)
            return
        try:
            client_id, ip, port = tokens[1], tokens[2], int(tokens[3])
        except (IndexError, ValueError):
            shutdown_and_close(conn)
            return

        if client_id in self.clients:
            self._print(f"Client {client_id} already connected.")
            try:
                send_command_resp(Op.SEND_FAIL, conn, data)
            except OSError:
                pass
            conn.close()
            return

        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self.clients[client_id] = Client(client_id, port, ip, sock=conn)
        self._selector.register(conn, selectors.EVENT_READ, _Source.CLIENT)
        self._print(f"New client {client_id} connected from {ip}:{port}")

    def handle_request(self, sock: socket.socket, data: str) -> None:
        """Carry out a request a connected subscriber sent on ``sock``."""
        tokens = data.split()
        op = _parse_op(tokens)
        if op is Op.CLIENT_EXIT:
            self._client_exit(tokens, data)
        elif op in (Op.CLIENT_SUBSCRIBE, Op.CLIENT_UNSUBSCRIBE):
            if len(tokens) < 3:
                return
            topic, client_id = tokens[1], tokens[2]
            client = self.clients.get(client_id)
            if client is None:
                return
            if op is Op.CLIENT_SUBSCRIBE:
                ok = add_path_to_tree(self.root, client, topic)
            else:
                ok = client.unsubscribe_from_topic(self.root, topic)
            self._respond(client, Op.SEND_SUCCESS if ok else Op.SEND_FAIL, data)

    def _respond(self, client: Client, op: Op, data: str) -> None:
        if client.sock is None:
            return
        try:
            send_command_resp(op, client.sock, data)
        except OSError:
            pass

    def _client_exit(self, tokens: Sequence[str], data: str) -> None:
        if len(tokens) < 2:
            return
        client = self.clients.pop(tokens[1], None)
        if client is None:
            return
        client.unsubscribe_from_all()
        self._respond(client, Op.SEND_SUCCESS, data)
        if client.sock is not None:
            self._unregister(client.sock)
            shutdown_and_close(client.sock)
        self._print(f"Client {client.client_id} disconnected.")

    def _drop(self, sock: socket.socket) -> None:
        self._unregister(sock)
        shutdown_and_close(sock)
        client = next((c for c in self.clients.values() if c.sock is sock), None)
        if client is not None:
            del self.clients[client.client_id]
            client.unsubscribe_from_all()
            self._print(f"Client {client.client_id} disconnected.")

    def _unregister(self, fileobj) -> None:
        try:
            self._selector.unregister(fileobj)
        except (KeyError, ValueError):
            pass

    def handle_command(self, line: str) -> bool:
        """Carry out a line typed on standard input; True means stop."""
        tokens = line.split()
        if not tokens or tokens[0] != "exit":
            return False
        for client in list(self.clients.values()):
            client.unsubscribe_from_all()
            if client.sock is None:
                continue
            try:
                send_quit(client.sock)
            except OSError:
                pass
            self._unregister(client.sock)
            shutdown_and_close(client.sock)
        self.clients.clear()
        return True

    def close(self) -> None:
        """Release every socket the broker holds."""
        self._running = False
        for client in self.clients.values():
            if client.sock is not None:
                client.sock.close()
        self.clients.clear()
        self._selector.close()
        for sock in (self._udp, self._tcp):
            if sock is not None:
                sock.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the broker on the port given as the only argument."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1 or not is_port_number(args[0]):
        print("Number of arguments or arguments invalid!", file=sys.stderr)
        return 1
    try:
        server = Server(int(args[0]), stdin=sys.stdin)
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    with server:
        server.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())