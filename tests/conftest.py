"""Shared fixtures: scripted instrument transport and block builders."""

import logging
from typing import Dict, List, Optional

import pytest

from scope_dump.transport import Transport


def make_block(payload: bytes, delimiter: bytes = b"\n", digit_count: Optional[int] = None) -> bytes:
    """Frame payload as '#<d><length><payload><delimiter>'"""
    length = str(len(payload))
    if digit_count is not None:
        length = length.zfill(digit_count)
    return b"#" + str(len(length)).encode("ascii") + length.encode("ascii") + payload + delimiter


class FakeTransport(Transport):
    """
    Message oriented stand-in for the oscilloscope.

    Writing a command that has a scripted reply makes that reply the pending
    message; unread bytes of a previous reply are dropped. Reads hand out the
    pending message in pieces no larger than the requested size and, while
    fragment_sizes is non-empty, no larger than the next fragment size.
    """

    def __init__(self, replies: Optional[Dict[str, bytes]] = None,
                 fragment_sizes: Optional[List[int]] = None) -> None:
        super().__init__("fake-usbtmc0")
        self.replies = dict(replies or {})
        self.fragment_sizes = list(fragment_sizes or [])
        self.writes: List[str] = []
        self.read_requests: List[int] = []
        self.short_write = False
        self.disconnect_calls = 0
        self._pending = b""
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        self._connected = True
        return True

    def disconnect(self) -> None:
        self._connected = False
        self.disconnect_calls += 1

    def _write(self, data: bytes) -> int:
        command = data.decode("ascii")
        self.writes.append(command)
        if command in self.replies:
            self._pending = self.replies[command]
        if self.short_write:
            return len(data) - 1
        return len(data)

    def _read(self, max_bytes: int) -> bytes:
        self.read_requests.append(max_bytes)
        size = min(max_bytes, len(self._pending))
        if self.fragment_sizes:
            size = min(size, self.fragment_sizes.pop(0))
        chunk, self._pending = self._pending[:size], self._pending[size:]
        return chunk


class ChunkedStream:
    """Chunk reader over a byte string, optionally split at given sizes"""

    def __init__(self, data: bytes, fragment_sizes: Optional[List[int]] = None) -> None:
        self._data = data
        self._fragment_sizes = list(fragment_sizes or [])
        self.requests: List[int] = []

    @property
    def remaining(self) -> int:
        return len(self._data)

    def read(self, max_bytes: int) -> bytes:
        self.requests.append(max_bytes)
        size = min(max_bytes, len(self._data))
        if self._fragment_sizes:
            size = min(size, self._fragment_sizes.pop(0))
        chunk, self._data = self._data[:size], self._data[size:]
        return chunk


READY_REPLIES = {
    ":TRIG:STAT?": b"STOP\n",
    ":CHAN1:DISP?": b"1\n",
    ":WAV:YOR?": b"0.000000e+00\n",
    ":WAV:YINC?": b"1.000000e+00\n",
}


@pytest.fixture
def ready_replies():
    """Replies of a stopped scope with channel 1 on, offset 0 and scale 1"""
    return dict(READY_REPLIES)


@pytest.fixture
def fake_transport(ready_replies):
    transport = FakeTransport(ready_replies)
    transport.connect()
    return transport


@pytest.fixture(autouse=True)
def reset_cli_logging():
    """Drop the stderr handler main() installs so it never outlives capture"""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_scdd_handler", False):
            root.removeHandler(handler)
    root.setLevel(logging.WARNING)
