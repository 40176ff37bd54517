"""RouterOS API wire format: word lengths, words and sentences.

A sentence on the wire is a run of words, each ``<length><bytes>``, closed by
a zero length. The length prefix takes 1 to 4 bytes; the top bits of the first
byte say how many::

    0xxxxxxx                              length < 0x80
    10xxxxxx xxxxxxxx                     length < 0x4000
    110xxxxx xxxxxxxx xxxxxxxx            length < 0x200000
    1110xxxx xxxxxxxx xxxxxxxx xxxxxxxx   length < 0x10000000
"""

import socket
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .constants import (
    DEFAULT_ENCODING,
    FOUR_BYTE_LIMIT,
    FOUR_BYTE_MARK,
    FOUR_BYTE_MASK,
    MAX_WORD_LENGTH,
    ONE_BYTE_LIMIT,
    RESERVED_MARK,
    THREE_BYTE_LIMIT,
    THREE_BYTE_MARK,
    THREE_BYTE_MASK,
    TWO_BYTE_LIMIT,
    TWO_BYTE_MARK,
    TWO_BYTE_MASK,
)
from .errors import LengthTooLargeError, ProtocolError

TERMINATOR = b"\x00"

_MASKS = {2: TWO_BYTE_MASK, 3: THREE_BYTE_MASK, 4: FOUR_BYTE_MASK}

# ----------------------------------------------------------------------------
# Length prefix
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class NeedMore:
    """Result of an incomplete decode: ``remaining`` more bytes are required."""

    remaining: int


def encode_length(length: int) -> bytes:
    """Encode a word length using the shortest prefix form.

    Args:
        length: Word length in bytes

    Returns:
        The 1 to 4 byte prefix

    Raises:
        ValueError: If length is negative
        LengthTooLargeError: If length does not fit in 28 bits
    """
    if length < 0:
        raise ValueError(f"Word length cannot be negative: {length}")
    if length < ONE_BYTE_LIMIT:
        return bytes((length,))
    if length < TWO_BYTE_LIMIT:
        return bytes(((length >> 8) | TWO_BYTE_MARK, length & 0xFF))
    if length < THREE_BYTE_LIMIT:
        return bytes(((length >> 16) | THREE_BYTE_MARK, (length >> 8) & 0xFF, length & 0xFF))
    if length < FOUR_BYTE_LIMIT:
        return bytes(
            ((length >> 24) | FOUR_BYTE_MARK, (length >> 16) & 0xFF, (length >> 8) & 0xFF, length & 0xFF)
        )
    raise LengthTooLargeError(f"Word length {length} exceeds the maximum of {MAX_WORD_LENGTH} bytes")


def prefix_size(first: int) -> int:
    """Return the size of the length prefix announced by its first byte."""
    if first & TWO_BYTE_MARK == 0:
        return 1
    if first & THREE_BYTE_MARK == TWO_BYTE_MARK:
        return 2
    if first & FOUR_BYTE_MARK == THREE_BYTE_MARK:
        return 3
    if first & RESERVED_MARK == FOUR_BYTE_MARK:
        return 4
    raise ProtocolError(f"Unsupported word length prefix 0x{first:02X}")


def _compose(prefix: bytes | bytearray) -> int:
    if len(prefix) == 1:
        return prefix[0]
    length = prefix[0] & _MASKS[len(prefix)]
    for byte in prefix[1:]:
        length = (length << 8) | byte
    if length > MAX_WORD_LENGTH:
        raise ProtocolError(f"Decoded word length {length:#x} is out of range")
    return length


class LengthDecoder:
    """Incremental length prefix decoder.

    Bytes are fed one at a time; a partially received prefix is kept until the
    next call, so a prefix split across reads decodes the same as a whole one.
    """

    def __init__(self) -> None:
        self._prefix = bytearray()
        self._size = 0

    @property
    def pending(self) -> bool:
        """True while part of a prefix has been consumed."""
        return bool(self._prefix)

    def reset(self) -> None:
        self._prefix.clear()
        self._size = 0

    def feed(self, byte: int) -> int | NeedMore:
        """Consume one byte.

        Returns:
            The decoded length once the prefix is complete, otherwise
            ``NeedMore`` with the number of bytes still missing

        Raises:
            ProtocolError: If the prefix is malformed
        """
        if not self._prefix:
            self._size = prefix_size(byte)
        self._prefix.append(byte)
        remaining = self._size - len(self._prefix)
        if remaining:
            return NeedMore(remaining)
        try:
            return _compose(self._prefix)
        finally:
            self.reset()

    def decode(self, read_byte: Callable[[], int | None]) -> int | NeedMore:
        """Pull bytes from ``read_byte`` until a length is decoded or it runs dry.

        Args:
            read_byte: Returns the next available byte, or None if there is none

        Returns:
            The decoded length, or ``NeedMore`` if the reader ran out first
        """
        while True:
            byte = read_byte()
            if byte is None:
                return NeedMore(self._size - len(self._prefix) if self._prefix else 1)
            result = self.feed(byte)
            if not isinstance(result, NeedMore):
                return result


def decode_length(data: bytes) -> int | NeedMore:
    """Decode the length prefix at the start of ``data``."""
    decoder = LengthDecoder()
    stream = iter(data)
    return decoder.decode(lambda: next(stream, None))


# ----------------------------------------------------------------------------
# Words and sentences
# ----------------------------------------------------------------------------


def pack_word(word: bytes | str, encoding: str = DEFAULT_ENCODING) -> bytes:
    """Serialize a single word with its length prefix."""
    if isinstance(word, str):
        word = word.encode(encoding)
    return encode_length(len(word)) + word


def pack_sentence(words: Iterable[bytes | str], encoding: str = DEFAULT_ENCODING) -> bytes:
    """Serialize words into a terminated sentence.

    Args:
        words: Words to send, command first
        encoding: Text encoding for ``str`` words

    Returns:
        Binary representation of the sentence
    """
    return b"".join(pack_word(word, encoding) for word in words) + TERMINATOR


# ----------------------------------------------------------------------------
# Blocking socket helpers
# ----------------------------------------------------------------------------


def recv_exact(sock: socket.socket, n: int) -> bytes:
    """Receive exactly n bytes from socket.

    Raises:
        ConnectionError: If connection is closed unexpectedly
    """
    buf = bytearray()
    while len(buf) < n:
        chunk = sock.recv(n - len(buf))
        if not chunk:
            raise ConnectionError("Unexpected EOF from peer")
        buf.extend(chunk)
    return bytes(buf)


def read_word(sock: socket.socket) -> bytes:
    """Read one length-prefixed word from a blocking socket."""
    first = recv_exact(sock, 1)
    size = prefix_size(first[0])
    length = _compose(first + recv_exact(sock, size - 1)) if size > 1 else first[0]
    return recv_exact(sock, length) if length else b""


def read_sentence(sock: socket.socket) -> list[bytes]:
    """Read words from a blocking socket up to the sentence terminator.

    Raises:
        ProtocolError: If a length prefix is malformed
        ConnectionError: If connection is closed unexpectedly
    """
    words = []
    while True:
        word = read_word(sock)
        if not word:
            return words
        words.append(word)
