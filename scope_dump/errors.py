"""Exception hierarchy for the scope data dumper.

Every failure that aborts a run derives from ScopeDumpError and carries the
operation that failed, so the command line front end can report
"<operation> failed: <cause>" without knowing which layer raised it.
"""

from typing import Optional


class ScopeDumpError(Exception):
    """Base class for all fatal run errors."""

    def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message
        self.cause = cause


class TransportError(ScopeDumpError):
    """Custom exception for instrument transport failures."""
    pass


class TransportWriteError(TransportError):
    """A command could not be written to the instrument in full."""
    pass


class TransportReadError(TransportError):
    """A read from the instrument failed or returned no data."""
    pass


class BlockTransferError(ScopeDumpError):
    """Custom exception for malformed binary block responses."""
    pass


class ShortHeaderError(BlockTransferError):
    pass


class InvalidHeaderError(BlockTransferError):
    pass


class InvalidDigitCountError(BlockTransferError):
    pass


class InvalidPayloadSizeError(BlockTransferError):
    pass


class TransferStateError(BlockTransferError):
    """Bookkeeping of a block transfer went out of bounds."""
    pass


class SinkWriteError(ScopeDumpError):
    """Converted samples could not be written to the output stream."""
    pass
