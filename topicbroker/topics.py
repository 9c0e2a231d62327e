"""Subscribers and the topic tree with ``+`` and ``*`` wildcards.

A topic is a ``/``-separated path. In a subscription, ``+`` matches exactly
one level and ``*`` matches one or more levels up to the next named level.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from topicbroker.protocol import send_response_data

SINGLE_LEVEL = "+"
MULTI_LEVEL = "*"


@dataclass(eq=False)
class Node:
    """One level of the topic tree and the clients subscribed at it."""

    word: str = ""
    subscribers: list[Client] = field(default_factory=list)
    children: list[Node] = field(default_factory=list)

    def add_subscriber(self, subscriber: Client) -> bool:
        """Add ``subscriber`` unless a client with its id is already here."""
        if any(sub.client_id == subscriber.client_id for sub in self.subscribers):
            return False
        self.subscribers.append(subscriber)
        return True

    def remove_subscriber(self, subscriber: Client) -> None:
        """Remove the first subscriber with the same id, if any."""
        for sub in self.subscribers:
            if sub.client_id == subscriber.client_id:
                self.subscribers.remove(sub)
                return

    def add_child(self, child: Node) -> None:
        self.children.append(child)

    def has_child(self, word: str) -> bool:
        return self.find_child(word) is not None

    def find_child(self, word: str) -> Optional[Node]:
        """Return the first child for ``word``, or None."""
        return next((child for child in self.children if child.word == word), None)


@dataclass(eq=False)
class Client:
    """A subscriber known to the broker."""

    client_id: str
    port: int
    ip: str
    sock: Optional[socket.socket] = None
    subscribed_topics: list[Node] = field(default_factory=list)

    def subscribe_to_topic(self, node: Node) -> None:
        """Remember that this client is subscribed at ``node``."""
        if node not in self.subscribed_topics:
            self.subscribed_topics.append(node)

    def unsubscribe_from_all(self) -> None:
        """Remove this client from every node it subscribed at."""
        for node in self.subscribed_topics:
            node.remove_subscriber(self)
        self.subscribed_topics.clear()

    def unsubscribe_from_topic(self, root: Node, topic: str) -> bool:
        """Remove this client from the node for ``topic``.

        Returns False if the tree holds no such path.
        """
        node = root
        for word in split_topic(topic):
            child = node.find_child(word)
            if child is None:
                return False
            node = child
        node.remove_subscriber(self)
        if node in self.subscribed_topics:
            self.subscribed_topics.remove(node)
        return True

    def serialize(self) -> str:
        return f"{self.client_id} {self.ip} {self.port}"


def split_topic(topic: str) -> list[str]:
    """Split a topic on ``/``; a trailing separator yields no empty level."""
    if not topic:
        return []
    parts = topic.split("/")
    if parts[-1] == "":
        parts.pop()
    return parts


def add_path_to_tree(root: Node, subscriber: Client, topic: str) -> bool:
    """Subscribe ``subscriber`` to ``topic``, creating levels as needed.

    Returns False if a client with the same id was already subscribed.
    """
    node = root
    for word in split_topic(topic):
        child = node.find_child(word)
        if child is None:
            child = Node(word)
            node.add_child(child)
        node = child
    added = node.add_subscriber(subscriber)
    if added:
        subscriber.subscribe_to_topic(node)
    return added


def _walk(node: Node, tokens: Sequence[str], start: int) -> Iterator[Client]:
    if start == len(tokens):
        yield from list(node.subscribers)
        return
    token = tokens[start]
    for child in reversed(node.children):
        if child.word == token or child.word == SINGLE_LEVEL:
            yield from _walk(child, tokens, start + 1)
        elif child.word == MULTI_LEVEL:
            for position, word in enumerate(tokens[start:], start=start):
                found = child.find_child(word)
                if found is not None:
                    yield from _walk(found, tokens, position + 1)


def matching_subscribers(root: Node, tokens: Sequence[str]) -> list[Client]:
    """Return the clients to notify for a message on the levels ``tokens``.

    A client appears once for every subscription path that matches.
    """
    return list(_walk(root, tokens, 0))


def notify_clients(root: Node, tokens: Sequence[str], data: str) -> None:
    """Send ``data`` to every client whose subscription matches ``tokens``."""
    for client in matching_subscribers(root, tokens):
        if client.sock is None:
            continue
        try:
            send_response_data(data, client.sock)
        except OSError:
            continue