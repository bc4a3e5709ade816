"""
Definite length block transfer decoder.

Decodes the binary reply to WAV:DATA?:

    #<d><n digits><payload of n bytes><delimiter>

where <d> is one ASCII digit (1-9) giving the number of length digits. The
reply arrives over bounded reads whose boundaries never line up with the
framing; payload bytes are streamed to a consumer as they arrive and the
single trailing delimiter byte is never passed on.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from scope_dump.errors import (
    InvalidDigitCountError,
    InvalidHeaderError,
    InvalidPayloadSizeError,
    ShortHeaderError,
    TransferStateError,
    TransportReadError,
)

# Maximum single transfer of the Linux USBTMC driver. Other sizes make the
# transfer fail and can hang the scope until power cycle.
USBTMC_BUFFER_SIZE = 4096

# USBTMC header size, the shortest first read that can hold a block header
MIN_HEADER_SIZE = 12

# Trailing delimiter byte after the payload
TRAILER_SIZE = 1

ChunkReader = Callable[[int], bytes]
ChunkConsumer = Callable[[memoryview], None]
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class BlockHeader:
    """Parsed '#<d><length>' prefix of a block transfer"""
    digit_count: int
    declared_payload_size: int

    @property
    def header_length(self) -> int:
        return 2 + self.digit_count


@dataclass
class TransferState:
    """Progress of one block transfer; terminal when nothing remains"""
    total_payload_bytes_remaining: int
    bytes_consumed: int = 0
    payload_bytes_emitted: int = 0

    @property
    def is_complete(self) -> bool:
        return self.total_payload_bytes_remaining == 0

    def consume(self, count: int) -> None:
        if count > self.total_payload_bytes_remaining:
            raise TransferStateError(
                "read_block",
                f"received {count} bytes with only {self.total_payload_bytes_remaining} remaining",
            )
        self.total_payload_bytes_remaining -= count
        self.bytes_consumed += count


def parse_block_header(data: bytes) -> BlockHeader:
    """
    Parse the block header at the start of the first read.

    Raises:
        ShortHeaderError: fewer than MIN_HEADER_SIZE bytes
        InvalidHeaderError: first byte is not '#'
        InvalidDigitCountError: digit count is not 1-9
        InvalidPayloadSizeError: length digits are not numeric or give zero
    """
    if len(data) < MIN_HEADER_SIZE:
        raise ShortHeaderError(
            "first read", f"got {len(data)} bytes, need at least {MIN_HEADER_SIZE}"
        )

    head = bytes(data[:MIN_HEADER_SIZE])

    if head[0:1] != b"#":
        raise InvalidHeaderError("first read", f"invalid header in response (starts with {head[0:1]!r})")

    digit_count = head[1] - ord("0")
    if not 1 <= digit_count <= 9:
        raise InvalidDigitCountError(
            "first read", f"invalid number of digits in response ({head[1:2]!r})"
        )

    size_field = head[2:2 + digit_count]
    if not size_field.isdigit() or int(size_field) == 0:
        raise InvalidPayloadSizeError("first read", f"invalid payload size in response ({size_field!r})")

    return BlockHeader(digit_count=digit_count, declared_payload_size=int(size_field))


class BlockTransferDecoder:
    """
    Reassemble a block transfer from bounded reads.

    The decoder owns a single read size equal to the USBTMC transfer size; the
    payload is never buffered as a whole, each read is handed to the consumer
    before the next one is issued.
    """

    def __init__(self, read_chunk: ChunkReader, consume: ChunkConsumer,
                 progress: Optional[ProgressCallback] = None) -> None:
        self._read_chunk = read_chunk
        self._consume = consume
        self._progress = progress
        self._logger = logging.getLogger(self.__class__.__name__)

    def _emit(self, state: TransferState, header: BlockHeader, chunk: memoryview) -> None:
        # Only bytes that still belong to the payload; the delimiter is dropped
        wanted = header.declared_payload_size - state.payload_bytes_emitted
        payload = chunk[:max(0, wanted)]
        if len(payload):
            self._consume(payload)
            state.payload_bytes_emitted += len(payload)

    def transfer(self) -> BlockHeader:
        """
        Run one complete block transfer.

        Returns:
            The parsed header; exactly header.declared_payload_size bytes were
            handed to the consumer
        """
        first = memoryview(self._read_chunk(USBTMC_BUFFER_SIZE))
        header = parse_block_header(first)
        self._logger.info(f"sample memory is {header.declared_payload_size} bytes")

        state = TransferState(total_payload_bytes_remaining=header.declared_payload_size + TRAILER_SIZE)

        body = first[header.header_length:]
        if len(body) > state.total_payload_bytes_remaining:
            self._logger.warning(
                f"First read holds {len(body) - state.total_payload_bytes_remaining} "
                f"bytes past the block delimiter, ignoring them"
            )
            body = body[:state.total_payload_bytes_remaining]

        state.consume(len(body))
        self._emit(state, header, body)
        self._report(state, header)

        while not state.is_complete:
            chunk = memoryview(self._read_chunk(min(state.total_payload_bytes_remaining, USBTMC_BUFFER_SIZE)))
            if not len(chunk):
                raise TransportReadError("read_block", "read in loop returned no data")
            state.consume(len(chunk))
            self._emit(state, header, chunk)
            self._report(state, header)

        if state.payload_bytes_emitted != header.declared_payload_size:
            raise TransferStateError(
                "read_block",
                f"emitted {state.payload_bytes_emitted} of {header.declared_payload_size} payload bytes",
            )

        self._logger.debug(f"Block transfer complete: {state.bytes_consumed} bytes after header")
        return header

    def _report(self, state: TransferState, header: BlockHeader) -> None:
        if self._progress is not None:
            self._progress(state.bytes_consumed, header.declared_payload_size + TRAILER_SIZE)
