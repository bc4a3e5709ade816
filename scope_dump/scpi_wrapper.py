"""
SCPI WRAPPER

Synchronous SCPI command/query layer on top of a Transport. Every query is a
single write followed by exactly one read; there is no pipelining.

Three reply shapes are parsed:
- free text (one trailing newline stripped)
- a single ASCII floating point number
- a single ASCII boolean digit ('0' / '1')
"""

import logging
import re

import numpy as np

from scope_dump.transport import Transport

# Scratch size used for numeric replies (31 characters + terminator)
FLOAT_REPLY_SIZE = 32

# Leading decimal float as accepted by scanf("%f"), locale independent
_FLOAT_PREFIX = re.compile(
    rb"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


def parse_float_reply(reply: bytes) -> np.float32:
    """
    Parse the leading floating point number of an instrument reply.

    Returns float32 zero when no number can be parsed.
    """
    match = _FLOAT_PREFIX.match(reply)
    if match is None:
        return np.float32(0.0)
    return np.float32(float(match.group(1)))


class SCPIWrapper:
    """SCPI command/query layer with per-exchange debug logging"""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def transport(self) -> Transport:
        return self._transport

    def send_command(self, command: str) -> None:
        """Send SCPI command to instrument, no response expected"""
        self._logger.debug(f"WRITE: {command}")
        self._transport.write(command.encode("ascii"), operation="send_command")

    def query_text(self, command: str, max_length: int) -> str:
        """
        Send a query and return the text reply

        Args:
            command: SCPI query command
            max_length: Reply buffer size; at most max_length - 1 bytes are read

        Returns:
            Reply with a single trailing newline removed
        """
        if max_length < 2:
            raise ValueError(f"max_length must be at least 2, got {max_length}")

        self._logger.debug(f"QUERY: {command}")
        self._transport.write(command.encode("ascii"), operation="query_text")
        reply = self._transport.read(max_length - 1, operation="query_text")

        text = reply.decode("latin_1")
        if text.endswith("\n"):
            text = text[:-1]

        self._logger.debug(f"RESPONSE: {text!r}")
        return text

    def query_float(self, command: str) -> np.float32:
        """
        Send a query and parse the reply as a float

        Unparsable replies yield 0.0 (logged as a warning), never an error.
        """
        self._logger.debug(f"QUERY: {command}")
        self._transport.write(command.encode("ascii"), operation="query_float")
        reply = self._transport.read(FLOAT_REPLY_SIZE - 1, operation="query_float")

        if _FLOAT_PREFIX.match(reply) is None:
            self._logger.warning(f"Could not parse float reply to '{command}': {reply!r}, using 0.0")
        value = parse_float_reply(reply)

        self._logger.debug(f"RESPONSE: {value}")
        return value

    def query_bool(self, command: str) -> bool:
        """Send a query and read a one byte '0'/'1' reply"""
        self._logger.debug(f"QUERY: {command}")
        self._transport.write(command.encode("ascii"), operation="query_bool")
        reply = self._transport.read(1, operation="query_bool")

        value = reply[:1] != b"0"
        self._logger.debug(f"RESPONSE: {reply!r} -> {value}")
        return value

    def read_block_chunk(self, max_bytes: int) -> bytes:
        """Single bounded read of binary block data"""
        return self._transport.read(max_bytes, operation="read_block")
