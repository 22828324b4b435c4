"""Random test data: identifiers, domains, URLs and network ports."""

from __future__ import annotations

import os
import random
import socket

_ASCII_LETTERS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFJHIJKLMNOPQRSTUVWXYZ"
_DIGITS = "0123456789"
_DEFAULT_ZONES = ("com", "ru", "net", "biz", "yandex")

# A fresh generator per process, seeded from the operating system.
_rng = random.Random(int.from_bytes(os.urandom(8), "little", signed=True))


def _random_string(alphabet: str, min_len: int, max_len: int, forbidden_first: str) -> str:
    length = _rng.randrange(max_len - min_len) + min_len
    chars: list[str] = []
    while len(chars) < length:
        # The last symbol of the alphabet is never picked.
        char = alphabet[_rng.randrange(len(alphabet) - 1)]
        if not chars and char in forbidden_first:
            continue
        chars.append(char)
    return "".join(chars)


def ascii_string(min_len: int, max_len: int) -> str:
    """Return a random alphanumeric string of length in [min_len, max_len).

    The first character is never a digit. Raises ValueError when
    max_len is not greater than min_len.
    """
    return _random_string(_ASCII_LETTERS, min_len, max_len, _DIGITS)


def digit_string(min_len: int, max_len: int) -> str:
    """Return a random string of digits of length in [min_len, max_len).

    The first character is never zero. Raises ValueError when
    max_len is not greater than min_len.
    """
    return _random_string(_DIGITS, min_len, max_len, "0")


def domain(min_len: int, max_len: int, *zones: str) -> str:
    """Return a random lower-case domain name.

    A zero length bound falls back to 5 (minimum) or 15 (maximum). With no
    zones a common one is picked, with one zone it is always used, with
    several one of them is picked.
    """
    if min_len == 0:
        min_len = 5
    if max_len == 0:
        max_len = 15

    if len(zones) == 1:
        zone = zones[0]
    elif not zones:
        zone = _rng.choice(_DEFAULT_ZONES)
    else:
        zone = zones[_rng.randrange(len(zones))]

    host = ascii_string(min_len, max_len).lower()
    return f"{host}.{zone.lstrip('.')}"


def url() -> str:
    """Return a random valid HTTP URL with up to three path segments."""
    host = domain(5, 15)
    path = ""
    segments = 0
    # The bound is drawn anew on every pass, as a loop condition would be.
    while segments < _rng.randrange(4):
        path += "/" + ascii_string(5, 15).lower()
        segments += 1
    return f"http://{host}{path}"


def port(from_: int, to: int) -> int:
    """Return a random port in [from_, to).

    A non-positive lower bound becomes 1024; an upper bound that is
    non-positive or above 65535 becomes 65535.
    """
    if from_ <= 0:
        from_ = 1024
    if to <= 0 or to > 65535:
        to = 65535
    return _rng.randrange(to - from_) + from_


def unused_port() -> int:
    """Return a TCP port on localhost that is free at the moment of the call."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        sock.listen()
        return sock.getsockname()[1]