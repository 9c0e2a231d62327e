# topicbroker

A small publish/subscribe broker. Publishers send datagrams over UDP, each
with a topic and a typed value. Subscribers connect over TCP, subscribe to
topic patterns, and get a formatted line for every message that matches.

## Installing

    pip install .

## Running the server

    topicbroker-server 4040

The server listens on the given port for UDP publishers and for TCP
subscribers. Type `exit` on its standard input to disconnect every
subscriber and stop. It prints a line each time a subscriber connects or
disconnects.

## Running a subscriber

    topicbroker-subscriber C1 127.0.0.1 4040

The arguments are the client id, the server's IPv4 address and its port.
A second client with an id that is already connected is refused.
Commands read from standard input:

- `subscribe <topic>`: prints `Subscribed to topic <topic>` once the server accepts it
- `unsubscribe <topic>`: prints `Unsubscribed from topic <topic>`
- `exit`: disconnects from the server

## Topics and wildcards

Topics are `/`-separated paths such as `upb/precis/temp`. A subscription
pattern may use:

- `+`: matches exactly one level (`+/precis/temp`)
- `*`: matches one or more levels (`*/temp`)

## Datagram format

A UDP datagram has a 50-byte topic, zero-padded, then one type byte, then
the payload:

| type | name       | payload                                                      |
|------|------------|--------------------------------------------------------------|
| 0    | INT        | sign byte, then a 32-bit big-endian unsigned value           |
| 1    | SHORT_REAL | 16-bit big-endian unsigned value, divided by 100             |
| 2    | FLOAT      | sign byte, 32-bit big-endian value, then a power-of-ten byte |
| 3    | STRING     | text of up to 1500 bytes                                     |

Subscribers see lines such as `upb/precis/temp - SHORT_REAL - 23.50`.

## Library use

The pieces can also be used on their own:

- `topicbroker.topics`: the topic tree (`Node`, `Client`, `add_path_to_tree`, `matching_subscribers`)
- `topicbroker.datagram`: `parse_topic` and `format_notification`
- `topicbroker.protocol`: length-prefixed TCP framing (`send_frame`, `receive_data`) and the `Op` codes
- `topicbroker.cli_checks`: `is_port_number` and `is_ip_address`

## Running the tests

    pip install .[test]
    pytest