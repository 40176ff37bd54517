# mypy: ignore-errors
"""RouterOS API connection with login handshake."""

import hashlib
import itertools
import logging
import string
import time
from collections.abc import Callable

from .constants import (
    CHALLENGE_HEX_LENGTH,
    DEFAULT_API_PORT,
    DEFAULT_ENCODING,
    LOGIN_COMMAND,
    RESPONSE_PREFIX,
    ConnectionState,
    LoginMethod,
    LoginState,
    ResultType,
)
from .errors import (
    AlreadyConnectedError,
    ApiError,
    AuthenticationError,
    IllegalStateError,
    ProtocolError,
    TransportClosedError,
    TransportError,
)
from .reassembler import SentenceReassembler
from .sentence import Credentials, Sentence, tag_word
from .transport import TcpTransport, Transport
from .wire import TERMINATOR, pack_sentence, pack_word

CredentialsSource = Credentials | tuple[str, str] | Callable[[], Credentials | tuple[str, str] | None]


class Connection:
    """Event-driven connection to a RouterOS API service.

    All events are raised on the thread calling ``poll``/``run_until``; the
    connection is not thread safe. Typical use::

        conn = Connection(("admin", ""), on_sentence=print)
        conn.connect("192.168.88.1")
        conn.run_until(conn.is_logged_in, timeout=5.0)
        conn.send(Sentence(command="/system/resource/print"))
        while conn.is_connected():
            conn.poll()
    """

    def __init__(
        self,
        credentials: CredentialsSource | None = None,
        transport: Transport | None = None,
        encoding: str = DEFAULT_ENCODING,
        login_method: LoginMethod = LoginMethod.CHALLENGE,
        on_state_changed: Callable[[ConnectionState], None] = None,
        on_login_state_changed: Callable[[LoginState], None] = None,
        on_error: Callable[[ApiError], None] = None,
        on_sentence: Callable[[Sentence], None] = None,
    ):
        """Initialize connection.

        Args:
            credentials: Credentials, a (username, password) pair, or a
                callable returning either; resolved when the login starts
            transport: Byte stream to use (defaults to a new TcpTransport)
            encoding: Text encoding of words on the wire
            login_method: Challenge/response or plain password login
            on_state_changed: Called with each new ConnectionState
            on_login_state_changed: Called with each new LoginState
            on_error: Called with an ApiError describing each failure
            on_sentence: Called with every sentence received after login
        """
        self.credentials = credentials
        self.encoding = encoding
        self.login_method = login_method
        self.on_state_changed = on_state_changed
        self.on_login_state_changed = on_login_state_changed
        self.on_error = on_error
        self.on_sentence = on_sentence

        self._transport = transport or TcpTransport()
        self._transport.on_state_changed = self._on_transport_state
        self._transport.on_ready_read = self._on_ready_read
        self._transport.on_error = self._on_transport_error
        self._reassembler = SentenceReassembler()

        self._state = ConnectionState.UNCONNECTED
        self._login_state = LoginState.NO_LOGIN
        self._tags = itertools.count(1)
        self._username = ""
        self._password = bytearray()

    # ------------------------------------------------------------------
    # Host operations
    # ------------------------------------------------------------------

    def connect(self, address: str, port: int = DEFAULT_API_PORT) -> bool:
        """Start connecting to the router.

        Returns:
            False if the connection is not idle, True once connecting started
        """
        if self._state != ConnectionState.UNCONNECTED:
            self._emit_error(AlreadyConnectedError("Trying to connect an already opened socket"))
            return False
        self._transport.connect(address, port)
        return True

    def close(self, force: bool = False) -> None:
        """Close the connection; does nothing unless connected.

        Args:
            force: Drop the socket at once, discarding unsent data, instead of
                flushing pending output first
        """
        if not self.is_connected():
            return
        if force:
            self._reassembler.reset()
            self._transport.abort()
            self._emit_error(TransportError("forced abort/close on socket"))
        else:
            self._transport.disconnect()

    def send(self, sentence: Sentence, add_tag: bool = True) -> str:
        """Send a sentence to the router.

        Args:
            sentence: Sentence to send
            add_tag: Append a .tag word, minting a tag if the sentence has none

        Returns:
            The tag used, or "" if add_tag is False

        Raises:
            IllegalStateError: If the connection is not logged in
            LengthTooLargeError: If a word is too long to encode
        """
        if not self.is_logged_in():
            raise IllegalStateError("Cannot send before login has completed")

        # Words are encoded before a tag is minted
        packed = [pack_word(word, self.encoding) for word in sentence.to_words()]
        tag = ""
        if add_tag:
            tag = sentence.tag or str(next(self._tags))
            packed.append(pack_word(tag_word(tag), self.encoding))
        self._write_bytes(b"".join(packed) + TERMINATOR)
        logging.debug("Sent %s tag=%r", sentence.command, tag)
        return tag

    def poll(self, timeout: float | None = None) -> None:
        """Wait up to ``timeout`` seconds for I/O and dispatch resulting events."""
        self._transport.poll(timeout)

    def run_until(self, predicate: Callable[[], bool], timeout: float | None = None) -> bool:
        """Poll until ``predicate()`` holds, the timeout expires, or the connection drops.

        Returns:
            The final value of ``predicate()``
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            if self._state == ConnectionState.UNCONNECTED:
                return predicate()
            if deadline is None:
                self.poll()
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return predicate()
            self.poll(remaining)
        return True

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def login_state(self) -> LoginState:
        return self._login_state

    def is_connected(self) -> bool:
        """True while the socket is connected, whether or not login is done."""
        return self._state == ConnectionState.CONNECTED

    def is_logged_in(self) -> bool:
        return self.is_connected() and self._login_state == LoginState.LOGGED_IN

    def is_closing(self) -> bool:
        return self._state == ConnectionState.CLOSING

    def is_connecting(self) -> bool:
        return self._state == ConnectionState.CONNECTING

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def _on_transport_state(self, state: ConnectionState) -> None:
        if state == ConnectionState.UNCONNECTED:
            if self._reassembler.in_progress:
                self._emit_error(TransportClosedError("Connection closed in the middle of a sentence"))
            self._reassembler.reset()
            self._clear_credentials()

        self._set_state(state)

        if state == ConnectionState.UNCONNECTED:
            self._set_login_state(LoginState.NO_LOGIN)
        elif state == ConnectionState.CONNECTED and self._state == state:
            self._start_login()

    def _on_transport_error(self, error: TransportError) -> None:
        self._emit_error(error)
        if self._transport.state == ConnectionState.UNCONNECTED:
            self._on_transport_state(ConnectionState.UNCONNECTED)

    def _on_ready_read(self) -> None:
        try:
            for words in self._reassembler.pump(self._transport.read):
                self._dispatch(Sentence.from_words(words, self.encoding))
                if self._state != ConnectionState.CONNECTED:
                    break
        except ProtocolError as exc:
            self._protocol_failure(exc)

    def _dispatch(self, sentence: Sentence) -> None:
        if self._login_state == LoginState.LOGGED_IN:
            logging.debug("Received %s tag=%r", sentence.command, sentence.tag)
            if self.on_sentence:
                self.on_sentence(sentence)
            return
        if sentence.is_empty:
            logging.debug("Ignoring empty sentence during login")
            return
        self._handle_login_sentence(sentence)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def _start_login(self) -> None:
        self._set_login_state(LoginState.NO_LOGIN)
        credentials = self._resolve_credentials()
        if credentials is None:
            self._emit_error(AuthenticationError("No credentials available for login"))
            self._transport.abort()
            return

        self._username = credentials.username
        self._password = bytearray(credentials.password.get_secret_value().encode(self.encoding))

        if self.login_method == LoginMethod.PLAIN:
            words = [LOGIN_COMMAND, f"=name={self._username}", b"=password=" + self._password]
            self._clear_credentials(keep_username=True)
            self._set_login_state(LoginState.CREDENTIALS_SENT)
            self._write(words)
            return

        self._set_login_state(LoginState.LOGIN_REQUESTED)
        self._write([LOGIN_COMMAND])

    def _resolve_credentials(self) -> Credentials | None:
        source = self.credentials
        if callable(source):
            source = source()
        return None if source is None else Credentials.coerce(source)

    def _handle_login_sentence(self, sentence: Sentence) -> None:
        state = self._login_state
        if state == LoginState.NO_LOGIN:
            logging.debug("Ignoring %s received before login started", sentence.command)
        elif state == LoginState.LOGIN_REQUESTED:
            self._answer_challenge(sentence)
        elif state == LoginState.CREDENTIALS_SENT:
            self._finish_login(sentence)
        else:
            raise IllegalStateError("Router is already logged in")

    def _answer_challenge(self, sentence: Sentence) -> None:
        problem = _check_challenge(sentence)
        if problem:
            self._protocol_failure(ProtocolError(problem))
            return

        challenge = bytes.fromhex(sentence.attribute("ret"))
        md5 = hashlib.md5()
        md5.update(b"\x00")
        md5.update(self._password)
        md5.update(challenge)
        response = RESPONSE_PREFIX + md5.hexdigest()
        self._clear_credentials(keep_username=True)

        self._set_login_state(LoginState.CREDENTIALS_SENT)
        self._write([LOGIN_COMMAND, f"=name={self._username}", f"=response={response}"])

    def _finish_login(self, sentence: Sentence) -> None:
        username, self._username = self._username, ""
        if sentence.result_type == ResultType.DONE:
            self._set_login_state(LoginState.LOGGED_IN)
            logging.info("Logged in as %s", username)
            return

        message = "Invalid username or password"
        remote = sentence.attribute("message")
        if remote:
            message = f"{message}: remote msg: {remote}"
        self._set_login_state(LoginState.NO_LOGIN)
        self._emit_error(AuthenticationError(message))
        self._reassembler.reset()
        self._transport.abort()

    def _protocol_failure(self, error: ProtocolError) -> None:
        self._emit_error(error)
        self._set_login_state(LoginState.NO_LOGIN)
        self._reassembler.reset()
        self._transport.abort()

    def _clear_credentials(self, keep_username: bool = False) -> None:
        self._password[:] = bytes(len(self._password))
        self._password = bytearray()
        if not keep_username:
            self._username = ""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, words: list[str | bytes]) -> None:
        self._write_bytes(pack_sentence(words, self.encoding))

    def _write_bytes(self, data: bytes) -> None:
        if not self.is_connected():
            logging.debug("Dropping %d bytes, socket is not connected", len(data))
            return
        self._transport.write(data)

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logging.debug("Connection state %s -> %s", self._state.name, state.name)
        self._state = state
        if self.on_state_changed:
            self.on_state_changed(state)

    def _set_login_state(self, state: LoginState) -> None:
        if state == self._login_state:
            return
        logging.debug("Login state %s -> %s", self._login_state.name, state.name)
        self._login_state = state
        if self.on_login_state_changed:
            self.on_login_state_changed(state)

    def _emit_error(self, error: ApiError) -> None:
        logging.debug("%s: %s", type(error).__name__, error)
        if self.on_error:
            self.on_error(error)


def _check_challenge(sentence: Sentence) -> str | None:
    """Return why ``sentence`` is not a valid login challenge, or None if it is."""
    if sentence.result_type != ResultType.DONE:
        return "Cannot login"
    if len(sentence.attributes) != 1:
        return "Unknown remote login sentence format: expected exactly one attribute"
    if "ret" not in sentence.attributes:
        return "Unknown remote login sentence format: missing 'ret' attribute"
    ret = sentence.attribute("ret")
    if len(ret) != CHALLENGE_HEX_LENGTH:
        return f"Unknown remote login sentence format: 'ret' doesn't contain {CHALLENGE_HEX_LENGTH} characters"
    if any(c not in string.hexdigits for c in ret):
        return "Unknown remote login sentence format: 'ret' is not hexadecimal"
    return None
