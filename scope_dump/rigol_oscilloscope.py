"""
Rigol MSO5000 Oscilloscope Waveform Dump

Reads the full RAW sample memory of one channel from a stopped MSO5000 and
streams it, converted to volts, into an already open output stream.

Sequence:
1. :TRIG:STAT? must read STOP (RAW memory is only complete when halted)
2. :CHAN<n>:DISP? must be 1 (the channel must have been part of the capture)
3. :WAV:YOR? / :WAV:YINC? give the calibration
4. :WAV:SOUR, WAV:MODE RAW, WAV:FORM BYTE, WAV:STAR 1 configure readout
5. WAV:DATA? returns one definite length block
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional

from scope_dump.block_transfer import BlockTransferDecoder, ProgressCallback
from scope_dump.errors import ScopeDumpError
from scope_dump.sample_converter import CalibrationParameters, OutputMode, SampleConverter
from scope_dump.scpi_wrapper import SCPIWrapper
from scope_dump.transport import Transport

# Reply buffer for :TRIG:STAT? (RUN, STOP, TD, WAIT, AUTO)
TRIGGER_STATUS_REPLY_SIZE = 10


class RigolMSO5000Error(ScopeDumpError):
    """Custom exception for Rigol MSO5000 oscilloscope errors."""
    pass


class DumpStatus(str, Enum):
    """Outcome of a dump run."""
    COMPLETED = "COMPLETED"
    NOT_STOPPED = "NOT_STOPPED"
    CHANNEL_INACTIVE = "CHANNEL_INACTIVE"


@dataclass
class DumpResult:
    """Summary of a finished dump"""
    status: DumpStatus
    channel: int
    calibration: Optional[CalibrationParameters] = None
    declared_payload_size: int = 0
    samples_written: int = 0


class RigolMSO5000:
    """Rigol MSO5000 series waveform memory reader"""

    MAX_CHANNELS = 4

    def __init__(self, transport: Transport, channel: int = 1) -> None:
        """
        Args:
            transport: Connected (or connectable) instrument transport
            channel: Analog channel 1-4 to read
        """
        if not isinstance(channel, int) or not (1 <= channel <= self.MAX_CHANNELS):
            raise ValueError(f"Channel must be 1-{self.MAX_CHANNELS}, got {channel}")

        self._scpi_wrapper = SCPIWrapper(transport)
        self._channel = channel
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def channel(self) -> int:
        return self._channel

    @property
    def is_connected(self) -> bool:
        return self._scpi_wrapper.transport.is_connected

    def _require_connection(self, operation: str) -> None:
        if not self.is_connected:
            raise RigolMSO5000Error(operation, "oscilloscope not connected")

    # ============================================================================
    # PRECONDITIONS
    # ============================================================================

    def get_trigger_status(self) -> str:
        """Query trigger status (RUN, STOP, TD, WAIT, AUTO)"""
        self._require_connection("get_trigger_status")
        return self._scpi_wrapper.query_text(":TRIG:STAT?", TRIGGER_STATUS_REPLY_SIZE)

    def is_channel_displayed(self) -> bool:
        self._require_connection("is_channel_displayed")
        return self._scpi_wrapper.query_bool(f":CHAN{self._channel:1d}:DISP?")

    def check_preconditions(self) -> DumpStatus:
        """
        Check that RAW memory of the channel can be read.

        Returns:
            DumpStatus.COMPLETED when ready, otherwise the reason not to proceed
        """
        trigger_status = self.get_trigger_status()
        if trigger_status != "STOP":
            self._logger.warning(f"scope is not in STOP mode (trigger status {trigger_status!r})")
            return DumpStatus.NOT_STOPPED

        if not self.is_channel_displayed():
            self._logger.warning(f"channel {self._channel} is not active")
            return DumpStatus.CHANNEL_INACTIVE

        return DumpStatus.COMPLETED

    # ============================================================================
    # WAVEFORM SUBSYSTEM
    # ============================================================================

    def get_calibration(self) -> CalibrationParameters:
        """Query vertical origin and increment of the selected waveform source"""
        self._require_connection("get_calibration")
        offset = self._scpi_wrapper.query_float(":WAV:YOR?")
        scale = self._scpi_wrapper.query_float(":WAV:YINC?")
        self._logger.info(f"Calibration: offset={offset}, scale={scale}")
        return CalibrationParameters(offset=offset, scale=scale)

    def configure_raw_readout(self) -> None:
        """Select channel, RAW mode, BYTE format, starting at the first point"""
        self._require_connection("configure_raw_readout")
        self._scpi_wrapper.send_command(f":WAV:SOUR CHAN{self._channel:1d}")
        self._scpi_wrapper.send_command("WAV:MODE RAW")
        self._scpi_wrapper.send_command("WAV:FORM BYTE")
        self._scpi_wrapper.send_command("WAV:STAR 1")

    def dump_waveform(self, sink: BinaryIO, output_mode: OutputMode = OutputMode.TEXT_DECIMAL,
                      progress: Optional[ProgressCallback] = None) -> DumpResult:
        """
        Read RAW sample memory and stream converted values to sink.

        check_preconditions() must have returned COMPLETED before calling this.

        Args:
            sink: Open binary output stream
            output_mode: Text lines or raw float32 values
            progress: Optional callback receiving (bytes_done, bytes_total)

        Returns:
            DumpResult with status COMPLETED
        """
        calibration = self.get_calibration()
        self.configure_raw_readout()

        converter = SampleConverter(calibration, sink, output_mode)
        decoder = BlockTransferDecoder(self._scpi_wrapper.read_block_chunk, converter.write, progress)

        self._scpi_wrapper.send_command("WAV:DATA?")
        header = decoder.transfer()
        converter.flush()

        self._logger.info(f"Wrote {converter.samples_written} samples from channel {self._channel}")
        return DumpResult(
            status=DumpStatus.COMPLETED,
            channel=self._channel,
            calibration=calibration,
            declared_payload_size=header.declared_payload_size,
            samples_written=converter.samples_written,
        )
