"""Raw byte sample to voltage conversion and serialization."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Union

import numpy as np

from scope_dump.errors import SinkWriteError

# Raw sample value of the vertical center of the screen
RAW_SAMPLE_CENTER = 128


class OutputMode(str, Enum):
    """Serialization of converted samples."""
    TEXT_DECIMAL = "TEXT_DECIMAL"
    RAW_BINARY_FLOAT = "RAW_BINARY_FLOAT"


@dataclass(frozen=True)
class CalibrationParameters:
    """Vertical origin and increment reported by :WAV:YOR? and :WAV:YINC?"""
    offset: np.float32
    scale: np.float32

    def __post_init__(self) -> None:
        object.__setattr__(self, "offset", np.float32(self.offset))
        object.__setattr__(self, "scale", np.float32(self.scale))


class SampleConverter:
    """
    Convert raw unsigned byte samples to volts and stream them to a sink.

    value = (raw - (128 + offset)) * scale, evaluated in float32.
    """

    def __init__(self, calibration: CalibrationParameters, sink: BinaryIO,
                 output_mode: OutputMode = OutputMode.TEXT_DECIMAL) -> None:
        self._calibration = calibration
        self._sink = sink
        self._output_mode = OutputMode(output_mode)
        self._origin = np.float32(RAW_SAMPLE_CENTER) + calibration.offset
        self._samples_written = 0
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def samples_written(self) -> int:
        return self._samples_written

    def convert(self, raw: Union[bytes, memoryview]) -> np.ndarray:
        """Convert a run of raw samples to a float32 voltage array"""
        samples = np.frombuffer(raw, dtype=np.uint8).astype(np.float32)
        return (samples - self._origin) * self._calibration.scale

    def serialize(self, values: np.ndarray) -> bytes:
        if self._output_mode is OutputMode.RAW_BINARY_FLOAT:
            return values.astype(np.float32, copy=False).tobytes()
        return "".join("%.2f\n" % value for value in values.tolist()).encode("ascii")

    def write(self, raw: Union[bytes, memoryview]) -> None:
        """
        Convert a run of raw samples and write it to the sink.

        Raises:
            SinkWriteError: If the sink rejects the write
        """
        if not len(raw):
            return

        data = self.serialize(self.convert(raw))
        try:
            self._sink.write(data)
        except (OSError, ValueError) as e:
            self._logger.error(f"Writing {len(data)} bytes to output failed: {e}")
            raise SinkWriteError("write output", "write failed", e) from e

        self._samples_written += len(raw)

    def flush(self) -> None:
        """
        Push buffered output to the sink's underlying file.

        Raises:
            SinkWriteError: If the buffered data cannot be written
        """
        try:
            self._sink.flush()
        except (OSError, ValueError) as e:
            self._logger.error(f"Flushing output failed: {e}")
            raise SinkWriteError("flush output", "flush failed", e) from e
