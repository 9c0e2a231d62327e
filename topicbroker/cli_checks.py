"""Validation of command-line arguments: port numbers and IPv4 addresses."""

_MAX_PORT = 65535
_MAX_OCTET = 255


def is_pos_number(number: str) -> bool:
    """Return True if ``number`` is a non-empty string of decimal digits."""
    return bool(number) and number.isascii() and number.isdigit()


def is_port_number(number: str) -> bool:
    """Return True if ``number`` is a decimal port number in 0..65535."""
    return is_pos_number(number) and int(number) <= _MAX_PORT


def is_ip_address(ip_address: str) -> bool:
    """Return True if ``ip_address`` holds four dot-separated numbers in 0..255.

    Empty fields between consecutive dots are skipped, as a tokenizer would.
    """
    fields = [field for field in ip_address.split(".") if field]
    if len(fields) != 4:
        return False
    return all(is_pos_number(field) and int(field) <= _MAX_OCTET for field in fields)