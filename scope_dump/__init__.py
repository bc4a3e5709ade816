#!/usr/bin/env python3
"""
Scope Data Dumper

Reads the full RAW sample memory of a Rigol MSO5000 series oscilloscope
channel over USBTMC and writes it as calibrated voltages.

Version: 0.1.0
License: AGPL-3.0-or-later
"""

__version__ = "0.1.0"
__license__ = "AGPL-3.0-or-later"
__description__ = "Waveform memory dumper for Rigol MSO5000 series oscilloscopes"

from .errors import (
    BlockTransferError,
    InvalidDigitCountError,
    InvalidHeaderError,
    InvalidPayloadSizeError,
    ScopeDumpError,
    ShortHeaderError,
    SinkWriteError,
    TransferStateError,
    TransportError,
    TransportReadError,
    TransportWriteError,
)
from .transport import Transport, UsbtmcTransport, VisaTransport, open_transport
from .scpi_wrapper import SCPIWrapper
from .block_transfer import BlockHeader, BlockTransferDecoder, TransferState, parse_block_header
from .sample_converter import CalibrationParameters, OutputMode, SampleConverter
from .rigol_oscilloscope import DumpResult, DumpStatus, RigolMSO5000, RigolMSO5000Error
from .config import DumpConfig

__all__ = [
    # Version information
    "__version__",
    "__license__",
    "__description__",

    # Transports and SCPI layer
    "Transport",
    "UsbtmcTransport",
    "VisaTransport",
    "open_transport",
    "SCPIWrapper",

    # Block transfer and conversion
    "BlockHeader",
    "BlockTransferDecoder",
    "TransferState",
    "parse_block_header",
    "CalibrationParameters",
    "OutputMode",
    "SampleConverter",

    # Oscilloscope driver
    "RigolMSO5000",
    "RigolMSO5000Error",
    "DumpResult",
    "DumpStatus",
    "DumpConfig",

    # Errors
    "ScopeDumpError",
    "TransportError",
    "TransportWriteError",
    "TransportReadError",
    "BlockTransferError",
    "ShortHeaderError",
    "InvalidHeaderError",
    "InvalidDigitCountError",
    "InvalidPayloadSizeError",
    "TransferStateError",
    "SinkWriteError",
]
