"""Tests for the sentence reassembler."""

import random

import pytest

from rosapi import ProtocolError, SentenceReassembler, pack_sentence

SENTENCES = [
    [b"!re", b"=.id=*1", b"=name=ether1", b".tag=7"],
    [b"!re", b"=comment=" + b"c" * 500],
    [],
    [b"!done", b".tag=7"],
    [b"!trap", b"=message=" + bytes(range(256))],
]
STREAM = b"".join(pack_sentence(words) for words in SENTENCES)


def _pump_in_chunks(data: bytes, sizes) -> list[list[bytes]]:
    reassembler = SentenceReassembler()
    out = []
    offset = 0
    for size in sizes:
        out.extend(reassembler.feed(data[offset : offset + size]))
        offset += size
    out.extend(reassembler.feed(data[offset:]))
    assert not reassembler.in_progress
    return out


def test_whole_stream() -> None:
    assert SentenceReassembler().feed(STREAM) == SENTENCES


def test_one_byte_at_a_time() -> None:
    assert _pump_in_chunks(STREAM, [1] * len(STREAM)) == SENTENCES


@pytest.mark.parametrize("seed", range(5))
def test_random_chunking(seed: int) -> None:
    """Result does not depend on how the stream is split."""
    rng = random.Random(seed)
    sizes = []
    remaining = len(STREAM)
    while remaining > 0:
        size = rng.randint(0, 40)
        sizes.append(size)
        remaining -= size
    assert _pump_in_chunks(STREAM, sizes) == SENTENCES


def test_sentence_needs_terminator() -> None:
    """No sentence is produced before its terminating empty word."""
    reassembler = SentenceReassembler()
    data = pack_sentence(["!done", "=ret=abc"])
    assert reassembler.feed(data[:-1]) == []
    assert reassembler.in_progress
    assert reassembler.feed(data[-1:]) == [[b"!done", b"=ret=abc"]]
    assert not reassembler.in_progress


def test_length_prefix_split_across_reads() -> None:
    word = b"w" * 0x4000  # three byte prefix
    data = pack_sentence([word])
    reassembler = SentenceReassembler()
    assert reassembler.feed(data[:1]) == []
    assert reassembler.feed(data[1:2]) == []
    assert reassembler.in_progress
    assert reassembler.feed(data[2:]) == [[word]]


def test_lone_terminator_is_empty_sentence() -> None:
    assert SentenceReassembler().feed(b"\x00\x00") == [[], []]


def test_pump_reads_no_more_than_requested() -> None:
    """pump() asks for at most the bytes still missing from the current word."""
    data = bytearray(pack_sentence(["/system/identity/print"]))
    requests = []

    def read(n: int) -> bytes:
        requests.append(n)
        chunk = bytes(data[:n])
        del data[:n]
        return chunk

    assert list(SentenceReassembler().pump(read)) == [[b"/system/identity/print"]]
    assert max(requests) == len("/system/identity/print")


def test_reset_discards_partial_sentence() -> None:
    reassembler = SentenceReassembler()
    reassembler.feed(pack_sentence(["!re", "=name=x"])[:-1])
    reassembler.reset()
    assert not reassembler.in_progress
    assert reassembler.feed(pack_sentence(["!done"])) == [[b"!done"]]


def test_malformed_prefix() -> None:
    reassembler = SentenceReassembler()
    with pytest.raises(ProtocolError):
        reassembler.feed(b"\x03abc\xf0")
