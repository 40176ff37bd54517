"""Stateful byte stream to sentence decoder."""

from collections.abc import Callable, Iterator

from .wire import LengthDecoder, NeedMore


class SentenceReassembler:
    """Collect words from a non-blocking byte source into whole sentences.

    Partial state (a half-read length prefix, a half-read word, the words of
    an unterminated sentence) is kept between calls, so the sentences produced
    do not depend on how the stream was split into reads.
    """

    def __init__(self) -> None:
        self._length = LengthDecoder()
        self._remaining: int | None = None  # body bytes still missing, None between words
        self._word = bytearray()
        self._sentence: list[bytes] = []

    @property
    def in_progress(self) -> bool:
        """True if part of a sentence has been received."""
        return self._length.pending or self._remaining is not None or bool(self._sentence)

    def reset(self) -> None:
        """Discard any partially received sentence."""
        self._length.reset()
        self._remaining = None
        self._word.clear()
        self._sentence = []

    def pump(self, read: Callable[[int], bytes]) -> Iterator[list[bytes]]:
        """Consume available bytes and yield every sentence they complete.

        Args:
            read: Returns up to n available bytes, or b"" when none are left

        Yields:
            Completed sentences as lists of raw words

        Raises:
            ProtocolError: If a length prefix is malformed
        """

        def read_byte() -> int | None:
            data = read(1)
            return data[0] if data else None

        while True:
            if self._remaining is None:
                length = self._length.decode(read_byte)
                if isinstance(length, NeedMore):
                    return
                if length == 0:
                    sentence, self._sentence = self._sentence, []
                    yield sentence
                    continue
                self._remaining = length

            chunk = read(self._remaining)
            if chunk:
                self._word += chunk
                self._remaining -= len(chunk)
            if self._remaining:
                return

            self._sentence.append(bytes(self._word))
            self._word.clear()
            self._remaining = None

    def feed(self, data: bytes) -> list[list[bytes]]:
        """Consume an in-memory chunk and return the sentences it completes."""
        view = memoryview(data)
        offset = 0

        def read(n: int) -> bytes:
            nonlocal offset
            chunk = bytes(view[offset : offset + n])
            offset += len(chunk)
            return chunk

        return list(self.pump(read))
