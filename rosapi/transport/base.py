"""Base transport interface for the RouterOS API client."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from ..constants import ConnectionState
from ..errors import TransportError


class Transport(ABC):
    """Reliable, ordered byte stream with readiness and state notifications.

    Implementations never block in ``read`` or ``write``; events are raised
    from ``poll`` (and from ``connect``/``disconnect``/``abort`` for the state
    changes they cause) on the caller's thread.
    """

    def __init__(self) -> None:
        self.on_state_changed: Callable[[ConnectionState], None] | None = None
        self.on_ready_read: Callable[[], None] | None = None
        self.on_error: Callable[[TransportError], None] | None = None
        self._state = ConnectionState.UNCONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logging.debug("Transport state %s -> %s", self._state.name, state.name)
        self._state = state
        if self.on_state_changed:
            self.on_state_changed(state)

    def _report_error(self, message: str) -> None:
        logging.debug("Transport error: %s", message)
        if self.on_error:
            self.on_error(TransportError(message))

    @abstractmethod
    def connect(self, host: str, port: int) -> None:
        """Start connecting; completion is reported as a state change."""
        pass

    @abstractmethod
    def read(self, n: int) -> bytes:
        """Return up to n received bytes, or b"" if none are available."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Queue data for sending."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Flush queued data, then close."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Close immediately, discarding queued data."""
        pass

    @abstractmethod
    def poll(self, timeout: float | None = None) -> None:
        """Wait up to ``timeout`` seconds for I/O and dispatch the resulting events."""
        pass
