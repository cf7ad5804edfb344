"""
OpenPGP packet walking.

PGP-wrapped layer keys are stored in the layer's annotations as OpenPGP
messages. The Public-Key Encrypted Session Key (PKESK) packets at the start of
each message name the key IDs able to unwrap it.
"""

import base64
import binascii
from collections.abc import Iterator

from layer_crypt.exceptions import KeyContentError

_TAG_PKESK = 1
_TAG_SYMMETRICALLY_ENCRYPTED = 9
_TAG_SEIPD = 18
_DATA_TAGS = (_TAG_SYMMETRICALLY_ENCRYPTED, _TAG_SEIPD)


def get_key_ids_from_packets(b64_pgp_packets: str) -> list[int]:
    """
    Get the recipient key IDs of comma-separated base64 OpenPGP messages.

    Args:
        b64_pgp_packets: Annotation value, e.g. "hQEMA...,hQIMA...".

    Returns:
        Key IDs in message order.

    Raises:
        KeyContentError: If a message is not valid base64 or OpenPGP.
    """
    key_ids: list[int] = []
    for b64_packet in b64_pgp_packets.split(","):
        try:
            message = base64.b64decode(b64_packet, validate=True)
        except binascii.Error as e:
            msg = "Could not decode base64 encoded PGP packet"
            raise KeyContentError(msg) from e
        key_ids.extend(get_key_ids(message))
    return key_ids


def get_key_ids(message: bytes) -> list[int]:
    """Get the key IDs of the PKESK packets preceding a message's encrypted data."""
    return [
        _parse_pkesk_key_id(body) for tag, body in iter_packets(message) if tag == _TAG_PKESK
    ]


def iter_packets(message: bytes) -> Iterator[tuple[int, bytes]]:
    """
    Iterate over (tag, body) pairs up to the first encrypted data packet.

    Raises:
        KeyContentError: If a packet header is malformed or truncated.
    """
    offset = 0
    while offset < len(message):
        tag, is_new_format = _parse_tag(message[offset])
        if tag in _DATA_TAGS:
            return
        if is_new_format:
            length, length_bytes = _parse_new_format_length(message[offset + 1 :])
        else:
            length, length_bytes = _parse_old_format_length(
                message[offset + 1 :], message[offset] & 0x03
            )
        start = offset + 1 + length_bytes
        if start + length > len(message):
            msg = f"Truncated PGP packet with tag {tag}"
            raise KeyContentError(msg)
        yield tag, message[start : start + length]
        offset = start + length


def format_key_id(key_id: int) -> str:
    """Format a key ID the way gpg prints it."""
    return f"0x{key_id:x}"


def _parse_tag(first_byte: int) -> tuple[int, bool]:
    if (first_byte & 0xC0) == 0xC0:
        return first_byte & 0x3F, True
    if (first_byte & 0x80) == 0x80:
        return (first_byte & 0x3C) >> 2, False
    msg = f"Invalid packet header: 0x{first_byte:02x}"
    raise KeyContentError(msg)


def _parse_new_format_length(data: bytes) -> tuple[int, int]:
    if not data:
        msg = "Missing length byte"
        raise KeyContentError(msg)

    first_byte = data[0]

    if first_byte < 192:
        return first_byte, 1

    if first_byte < 224:
        if len(data) < 2:
            msg = "Incomplete two-byte length"
            raise KeyContentError(msg)
        return ((first_byte - 192) << 8) + data[1] + 192, 2

    if first_byte == 255:
        if len(data) < 5:
            msg = "Incomplete five-byte length"
            raise KeyContentError(msg)
        return int.from_bytes(data[1:5], "big"), 5

    msg = "Partial body length not supported for key packets"
    raise KeyContentError(msg)


def _parse_old_format_length(data: bytes, length_type: int) -> tuple[int, int]:
    sizes = {0: 1, 1: 2, 2: 4}
    if length_type not in sizes:
        msg = "Indeterminate length not supported"
        raise KeyContentError(msg)
    size = sizes[length_type]
    if len(data) < size:
        msg = f"Incomplete {size}-byte length"
        raise KeyContentError(msg)
    return int.from_bytes(data[:size], "big"), size


def _parse_pkesk_key_id(body: bytes) -> int:
    # v3 PKESK: version(1) + key id(8) + algorithm(1) + encrypted session key
    if len(body) < 10 or body[0] != 3:
        msg = "Unsupported PKESK packet"
        raise KeyContentError(msg)
    return int.from_bytes(body[1:9], "big")
