"""Shared fixtures for the rosapi tests."""

import pytest

from rosapi import (
    ApiError,
    Connection,
    ConnectionState,
    LoginState,
    Sentence,
    SentenceReassembler,
    Transport,
    pack_sentence,
    run_server,
)


class MemoryTransport(Transport):
    """In-memory transport; the test plays the router."""

    def __init__(self):
        super().__init__()
        self.inbox = bytearray()
        self.written = bytearray()
        self.connect_calls: list[tuple[str, int]] = []
        self.aborted = False

    def connect(self, host, port):
        self.connect_calls.append((host, port))
        self._set_state(ConnectionState.HOST_LOOKUP)
        self._set_state(ConnectionState.CONNECTING)

    def read(self, n):
        chunk = bytes(self.inbox[:n])
        del self.inbox[:n]
        return chunk

    def write(self, data):
        self.written += data

    def disconnect(self):
        self._set_state(ConnectionState.CLOSING)
        self._set_state(ConnectionState.UNCONNECTED)

    def abort(self):
        self.aborted = True
        self.inbox.clear()
        self._set_state(ConnectionState.UNCONNECTED)

    def poll(self, timeout=None):
        pass

    # Router side

    def establish(self):
        self._set_state(ConnectionState.CONNECTED)

    def deliver(self, data: bytes):
        self.inbox += data
        if self.on_ready_read:
            self.on_ready_read()

    def say(self, *words: str):
        self.deliver(pack_sentence(words))

    def remote_close(self):
        self._set_state(ConnectionState.UNCONNECTED)

    def fail(self, message: str):
        self._set_state(ConnectionState.UNCONNECTED)
        self._report_error(message)

    def sent(self) -> list[list[str]]:
        """Sentences written so far, decoded."""
        return [[w.decode("latin-1") for w in words] for words in SentenceReassembler().feed(bytes(self.written))]


class Recorder:
    """Collects connection events in the order they fire."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []

    def states(self) -> list[ConnectionState]:
        return [v for k, v in self.events if k == "state"]

    def login_states(self) -> list[LoginState]:
        return [v for k, v in self.events if k == "login"]

    def errors(self) -> list[ApiError]:
        return [v for k, v in self.events if k == "error"]

    def sentences(self) -> list[Sentence]:
        return [v for k, v in self.events if k == "sentence"]

    def attach(self, conn: Connection) -> Connection:
        conn.on_state_changed = lambda s: self.events.append(("state", s))
        conn.on_login_state_changed = lambda s: self.events.append(("login", s))
        conn.on_error = lambda e: self.events.append(("error", e))
        conn.on_sentence = lambda s: self.events.append(("sentence", s))
        return conn


CHALLENGE = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def transport() -> MemoryTransport:
    return MemoryTransport()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def conn(transport, recorder) -> Connection:
    return recorder.attach(Connection(("admin", ""), transport=transport))


@pytest.fixture
def logged_in(conn, transport) -> Connection:
    """A connection that has completed the challenge login."""
    conn.connect("router", 8728)
    transport.establish()
    transport.say("!done", f"=ret={CHALLENGE}")
    transport.say("!done")
    assert conn.is_logged_in()
    transport.written.clear()
    return conn


@pytest.fixture
def server():
    with run_server(port=0) as srv:
        yield srv
