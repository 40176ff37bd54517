"""Tests for the word length codec and sentence packing."""

import socket

import pytest

from rosapi import (
    MAX_WORD_LENGTH,
    LengthDecoder,
    LengthTooLargeError,
    NeedMore,
    ProtocolError,
    decode_length,
    encode_length,
    pack_sentence,
    pack_word,
)
from rosapi.wire import prefix_size, read_sentence


def test_encode_examples() -> None:
    """Test the documented encodings."""
    assert encode_length(5) == bytes.fromhex("05")
    assert encode_length(200) == bytes.fromhex("80C8")
    assert encode_length(0x4000) == bytes.fromhex("C04000")
    assert encode_length(0x200000) == bytes.fromhex("E0200000")


@pytest.mark.parametrize(
    "length,size",
    [
        (0, 1),
        (0x7F, 1),
        (0x80, 2),
        (0x3FFF, 2),
        (0x4000, 3),
        (0x1FFFFF, 3),
        (0x200000, 4),
        (MAX_WORD_LENGTH, 4),
    ],
)
def test_shortest_form_at_boundaries(length: int, size: int) -> None:
    """Each length uses the smallest form and decodes back to itself."""
    encoded = encode_length(length)
    assert len(encoded) == size
    assert decode_length(encoded) == length


def test_encode_rejects_out_of_range() -> None:
    with pytest.raises(LengthTooLargeError):
        encode_length(MAX_WORD_LENGTH + 1)
    with pytest.raises(ValueError):
        encode_length(-1)


def test_length_too_large_is_value_error() -> None:
    with pytest.raises(ValueError):
        encode_length(0x10000000)


def test_streaming_decode() -> None:
    """Feeding E0 20 00 00 one byte at a time."""
    decoder = LengthDecoder()
    results = [decoder.feed(b) for b in bytes.fromhex("E0200000")]
    assert results == [NeedMore(3), NeedMore(2), NeedMore(1), 0x200000]
    assert not decoder.pending


@pytest.mark.parametrize("length", [0, 1, 0x7F, 0x80, 0x1234, 0x4000, 0xABCDE, 0x200000, 0x0ABCDEF1])
def test_incremental_decode_reports_each_missing_byte(length: int) -> None:
    encoded = encode_length(length)
    decoder = LengthDecoder()
    for i, byte in enumerate(encoded[:-1]):
        assert decoder.feed(byte) == NeedMore(len(encoded) - i - 1)
        assert decoder.pending
    assert decoder.feed(encoded[-1]) == length


def test_decode_from_reader_keeps_partial_prefix() -> None:
    """A reader that runs dry leaves the prefix pending for the next call."""
    decoder = LengthDecoder()
    chunks = [bytearray(b"\xc0"), bytearray(b"\x40"), bytearray(), bytearray(b"\x00\xff")]

    def reader(chunk):
        return lambda: chunk.pop(0) if chunk else None

    assert decoder.decode(reader(chunks[0])) == NeedMore(2)
    assert decoder.decode(reader(chunks[1])) == NeedMore(1)
    assert decoder.decode(reader(chunks[2])) == NeedMore(1)
    assert decoder.decode(reader(chunks[3])) == 0x4000
    # the byte after the prefix is left in the reader
    assert chunks[3] == bytearray(b"\xff")


def test_decode_empty_reader_needs_one_byte() -> None:
    assert LengthDecoder().decode(lambda: None) == NeedMore(1)
    assert decode_length(b"") == NeedMore(1)
    assert decode_length(b"\xe0\x20") == NeedMore(2)


def test_decode_accepts_long_forms() -> None:
    """Non-shortest encodings from a peer are still accepted."""
    assert decode_length(b"\x80\x05") == 5
    assert decode_length(b"\xc0\x00\x05") == 5
    assert decode_length(b"\xe0\x00\x00\x05") == 5


@pytest.mark.parametrize("first", [0xF0, 0xF8, 0xFF])
def test_reserved_prefix_is_protocol_error(first: int) -> None:
    decoder = LengthDecoder()
    with pytest.raises(ProtocolError):
        decoder.feed(first)
    assert not decoder.pending
    with pytest.raises(ProtocolError):
        prefix_size(first)


def test_prefix_sizes() -> None:
    assert [prefix_size(b) for b in (0x00, 0x7F, 0x80, 0xBF, 0xC0, 0xDF, 0xE0, 0xEF)] == [1, 1, 2, 2, 3, 3, 4, 4]


def test_pack_word_and_sentence() -> None:
    assert pack_word("") == b"\x00"
    assert pack_word("/login") == b"\x06/login"
    assert pack_word(b"\xff\x00") == b"\x02\xff\x00"
    assert pack_word("x" * 200) == b"\x80\xc8" + b"x" * 200
    assert pack_sentence(["/login"]) == b"\x06/login\x00"
    assert pack_sentence([]) == b"\x00"


def test_pack_word_is_byte_transparent() -> None:
    """latin-1 maps every byte value to one character and back."""
    raw = bytes(range(256))
    assert pack_word(raw.decode("latin-1")) == pack_word(raw)


def test_read_sentence_from_socket() -> None:
    """Blocking helpers read a sentence split across sends."""
    left, right = socket.socketpair()
    try:
        data = pack_sentence(["/interface/print", "=.proplist=name", "x" * 300])
        left.sendall(data[:3])
        left.sendall(data[3:])
        assert read_sentence(right) == [b"/interface/print", b"=.proplist=name", b"x" * 300]

        left.close()
        with pytest.raises(ConnectionError):
            read_sentence(right)
    finally:
        left.close()
        right.close()
